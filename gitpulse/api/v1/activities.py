"""
Activity endpoints.

User activity is available both as a plain JSON response and as an NDJSON
stream that reports progress while the fetch runs:

    {"event": "progress", "processed": 3, "total": 12, "percentage": 25, ...}
    {"event": "progress", ...}
    {"event": "result", "activities": [...], "repos": [...], "stats": {...}}

A failed stream ends with {"event": "error", "category": ..., "message": ...};
rate-limit errors carry whatever was fetched before the limit as `partial`.
"""

import json
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from gitpulse.api.deps import get_github_service
from gitpulse.core.exceptions import to_http_exception
from gitpulse.services.github import (
    ActivityResult,
    FetchHandle,
    GitHubAPIError,
    GitHubAuthError,
    GitHubRateLimitError,
    GitHubService,
    start_fetch,
)

router = APIRouter(tags=["activities"])
logger = logging.getLogger(__name__)


def _since(days: int | None) -> datetime | None:
    return datetime.now(UTC) - timedelta(days=days) if days else None


def _error_event(error: GitHubAPIError) -> dict[str, Any]:
    event: dict[str, Any] = {
        "event": "error",
        "message": error.message,
        "status_code": error.status_code,
    }
    if isinstance(error, GitHubRateLimitError):
        event["category"] = "rate_limit"
        event["retry_after"] = error.retry_after
        event["rate_limit_reset"] = error.rate_limit_reset
        event["partial"] = error.partial.to_dict() if error.partial is not None else None
    elif isinstance(error, GitHubAuthError):
        event["category"] = "auth"
    else:
        event["category"] = "api"
    return event


async def _ndjson_events(handle: FetchHandle[ActivityResult]) -> AsyncIterator[str]:
    async for progress in handle.progress:
        yield json.dumps({"event": "progress", **progress.to_dict()}) + "\n"
    try:
        result = await handle.result()
    except GitHubAPIError as e:
        logger.warning(f"Streamed fetch failed: {e.message}")
        yield json.dumps(_error_event(e)) + "\n"
        return
    yield json.dumps({"event": "result", **result.to_dict()}) + "\n"


@router.get("/orgs/{org}/users/{username}/activities")
async def get_user_activities(
    org: str,
    username: str,
    days: int | None = Query(None, ge=1, le=365, description="Lookback window in days"),
    strategy: Literal["search", "repos"] | None = Query(
        None, description="search: org-wide search queries; repos: per-repo crawl"
    ),
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """A user's activity across every repository of an organization."""
    try:
        result = await github.fetch_user_activities(
            org, username, since=_since(days), strategy=strategy
        )
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return result.to_dict()


@router.get("/orgs/{org}/users/{username}/activities/stream")
async def stream_user_activities(
    org: str,
    username: str,
    days: int | None = Query(None, ge=1, le=365, description="Lookback window in days"),
    strategy: Literal["search", "repos"] | None = Query(None),
    github: GitHubService = Depends(get_github_service),
) -> StreamingResponse:
    """Same fetch as /activities, streamed as NDJSON progress events plus a final result."""
    since = _since(days)
    handle = start_fetch(
        lambda on_progress: github.fetch_user_activities(
            org, username, on_progress, since=since, strategy=strategy
        )
    )
    return StreamingResponse(_ndjson_events(handle), media_type="application/x-ndjson")


@router.get("/orgs/{org}/repos/{repo}/activities")
async def get_repo_activities(
    org: str,
    repo: str,
    days: int | None = Query(None, ge=1, le=365, description="Lookback window in days"),
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """Events, commits, PRs, reviews, comments and releases of one repository."""
    try:
        result = await github.fetch_repo_activities(org, repo, since=_since(days))
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return result.to_dict()


@router.get("/users/{username}/events")
async def get_user_events(
    username: str,
    org: str | None = Query(None, description="Only keep events in this organization"),
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """A user's events feed, with the public feed merged in when sparse."""
    try:
        result = await github.fetch_user_events(username, org)
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return result.to_dict()


@router.get("/orgs/{org}/repos/{repo}/files/history")
async def get_file_history(
    org: str,
    repo: str,
    path: str = Query(..., min_length=1, description="File path within the repository"),
    branch: str | None = Query(None, description="Branch to walk; the default branch if omitted"),
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """Commits that touched one file, newest first."""
    try:
        result = await github.fetch_file_commits(org, repo, path, branch)
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return result.to_dict()
