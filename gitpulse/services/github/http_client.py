"""
Shared HTTP client for GitHub API operations.

Provides a singleton AsyncClient with connection pooling for all GitHub API calls,
plus the authenticated request helpers every read operation goes through.
No retries happen here: retry and abort policy belongs to the batch layer.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from gitpulse.config import settings
from gitpulse.services.github.constants import DEFAULT_ACCEPT
from gitpulse.services.github.exceptions import GitHubAPIError
from gitpulse.services.github.helpers import (
    RateLimitInfo,
    handle_error_response,
    parse_next_link,
)

logger = logging.getLogger(__name__)

# Module-level singleton client
_client: httpx.AsyncClient | None = None


@dataclass
class GitHubPage:
    """One page of a paginated GitHub list endpoint."""

    data: Any
    next_url: str | None
    rate_limit_remaining: int | None = None


def get_github_client() -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client for GitHub API calls.

    The client is shared across all fetchers to maximize connection reuse.
    Auth headers are passed per-request, not stored on the client.

    Returns:
        Shared httpx.AsyncClient configured for GitHub API
    """
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=5.0),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            http2=True,  # Enable HTTP/2 for GitHub API
            follow_redirects=True,  # Renamed/transferred repos answer with 301
        )
        logger.debug("Created new GitHub HTTP client with connection pooling")
    return _client


async def close_github_client() -> None:
    """
    Close the shared HTTP client.

    Call on app shutdown for graceful termination.
    """
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
        _client = None
        logger.debug("Closed GitHub HTTP client")


def build_headers(token: str, accept: str | None = None) -> dict[str, str]:
    """Common headers: bearer auth, media type, API version and client identifier."""
    return {
        "Authorization": f"Bearer {token}",
        "Accept": accept or DEFAULT_ACCEPT,
        "X-GitHub-Api-Version": settings.github_api_version,
        "User-Agent": settings.user_agent,
    }


def _resolve_url(path: str) -> str:
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{settings.github_api_url}/{path.lstrip('/')}"


async def _send(
    path: str,
    token: str,
    params: dict[str, Any] | None,
    accept: str | None,
) -> httpx.Response:
    url = _resolve_url(path)
    client = get_github_client()
    try:
        return await client.get(url, headers=build_headers(token, accept), params=params)
    except httpx.RequestError as e:
        raise GitHubAPIError(f"GitHub request failed: {e.__class__.__name__} ({url})") from e


def _decode_json(response: httpx.Response, path: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise GitHubAPIError(
            f"GitHub returned invalid JSON for {path} (HTTP {response.status_code})",
            response.status_code,
        ) from e


async def github_request(
    path: str,
    token: str,
    *,
    params: dict[str, Any] | None = None,
    accept: str | None = None,
) -> Any | None:
    """
    Issue an authenticated GET and return the decoded JSON body.

    Args:
        path: API-relative path ("/orgs/acme/repos") or absolute URL
        token: GitHub bearer token
        params: Query parameters
        accept: Override for the Accept media type

    Returns:
        Decoded JSON, or None for 404 (absence is a normal outcome for
        existence lookups) and 204

    Raises:
        GitHubAuthError, GitHubRateLimitError, GitHubAPIError
    """
    response = await _send(path, token, params, accept)
    if response.status_code in (204, 404):
        return None
    handle_error_response(response, path)
    return _decode_json(response, path)


async def github_get_page(
    path: str,
    token: str,
    *,
    params: dict[str, Any] | None = None,
    accept: str | None = None,
) -> GitHubPage | None:
    """
    Fetch one page of a paginated endpoint, exposing the Link rel="next" URL.

    The next URL already carries every query parameter, so callers pass
    `params` only for the first page.

    Returns:
        GitHubPage, or None on 404
    """
    response = await _send(path, token, params, accept)
    if response.status_code == 404:
        return None
    handle_error_response(response, path)

    rate_info = RateLimitInfo(response)
    data = _decode_json(response, path) if response.status_code != 204 else []
    return GitHubPage(
        data=data,
        next_url=parse_next_link(response.headers.get("Link")),
        rate_limit_remaining=int(rate_info.remaining) if rate_info.remaining else None,
    )


async def github_paginate(
    path: str,
    token: str,
    *,
    params: dict[str, Any] | None = None,
    max_pages: int,
    accept: str | None = None,
) -> list[Any] | None:
    """
    Collect every item of a paginated endpoint, one page at a time.

    Pages are requested strictly in order: page N+1 is only requested once
    page N resolved, since the next URL comes from page N's Link header.
    Search responses ({"items": [...]}) are unwrapped.

    Args:
        path: First page path or URL
        token: GitHub bearer token
        params: Query parameters for the first page
        max_pages: Safety ceiling on the number of pages fetched
        accept: Override for the Accept media type

    Returns:
        Items from all fetched pages, or None if the first page is a 404
    """
    items: list[Any] = []
    url: str | None = path
    page_params = params
    pages = 0

    while url is not None:
        if pages >= max_pages:
            logger.info(f"Page ceiling reached for {path} ({max_pages} pages, {len(items)} items)")
            break
        page = await github_get_page(url, token, params=page_params, accept=accept)
        pages += 1
        if page is None:
            if pages == 1:
                return None
            break

        data = page.data
        if isinstance(data, dict):
            data = data.get("items", [])
        if not isinstance(data, list) or not data:
            break
        items.extend(data)

        url = page.next_url
        page_params = None  # next URL already carries the query string

    return items
