"""
GitHub API helper utilities.

Provides rate limit detection, pagination link parsing, and error response
classification for GitHub API calls.
"""

import logging
import re

import httpx

from gitpulse.services.github.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubRateLimitError,
)

logger = logging.getLogger(__name__)

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')


class RateLimitInfo:
    """Rate limit information from GitHub API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("X-RateLimit-Remaining")
        self.reset = response.headers.get("X-RateLimit-Reset")
        self.retry_after = response.headers.get("Retry-After")

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def retry_after_seconds(self) -> int | None:
        """Get Retry-After as integer seconds, or None if absent or not numeric."""
        if self.retry_after and self.retry_after.isdigit():
            return int(self.retry_after)
        return None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0


def parse_next_link(link_header: str | None) -> str | None:
    """
    Extract the rel="next" URL from a GitHub Link header.

    Args:
        link_header: Raw Link header, e.g.
            '<https://api.github.com/orgs/acme/repos?page=2>; rel="next", <...>; rel="last"'

    Returns:
        The next page URL, or None when this is the last page
    """
    if not link_header:
        return None
    match = _NEXT_LINK_RE.search(link_header)
    return match.group(1) if match else None


def _body_message(response: httpx.Response) -> str:
    """Best-effort extraction of GitHub's error `message` field."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("message") or "")
    return ""


def is_rate_limited(response: httpx.Response) -> bool:
    """
    Check whether a 403/429 response is a rate limit rather than a permission error.

    GitHub signals primary limits with X-RateLimit-Remaining: 0 and secondary
    (abuse) limits with Retry-After and/or a "secondary rate limit" message.
    """
    if response.status_code == 429:
        return True
    rate_info = RateLimitInfo(response)
    if rate_info.is_exhausted or rate_info.retry_after is not None:
        return True
    return "rate limit" in _body_message(response).lower()


def handle_error_response(response: httpx.Response, context: str) -> None:
    """
    Classify a non-success GitHub API response.

    404 is not handled here: callers treat absence as a normal outcome.

    Args:
        response: The HTTP response from GitHub API
        context: Resource description for error messages (e.g. "acme/widgets")

    Raises:
        GitHubRateLimitError: 403/429 with a rate-limit signal
        GitHubAuthError: 401, or 403 without a rate-limit signal
        GitHubAPIError: Any other non-2xx status
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    if status in (403, 429) and is_rate_limited(response):
        rate_info = RateLimitInfo(response)
        logger.warning(
            f"GitHub rate limit hit ({context}): remaining={rate_info.remaining}, "
            f"reset={rate_info.reset}, retry_after={rate_info.retry_after}"
        )
        raise GitHubRateLimitError(
            status_code=status,
            rate_limit_reset=rate_info.reset_timestamp,
            retry_after=rate_info.retry_after_seconds,
        )
    elif status == 401:
        raise GitHubAuthError()
    elif status == 403:
        raise GitHubAuthError(
            "Access forbidden. Make sure your token has the required permissions.",
            403,
        )
    raise GitHubAPIError(f"GitHub API error: {status} ({context})", status)
