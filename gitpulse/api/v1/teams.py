"""Team endpoints: lookups, recent repo activity, member activity and leaderboard."""

import logging
from dataclasses import asdict
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, Query

from gitpulse.api.deps import get_github_service
from gitpulse.core.exceptions import NotFoundError, ValidationError, to_http_exception
from gitpulse.services.github import (
    LEADERBOARD_METRICS,
    TIME_WINDOWS,
    GitHubAPIError,
    GitHubService,
    build_leaderboard,
)
from gitpulse.services.github.aggregator import window_start

router = APIRouter(prefix="/orgs/{org}/teams", tags=["teams"])
logger = logging.getLogger(__name__)


@router.get("")
async def list_teams(
    org: str,
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """The caller's teams in the organization (all org teams as a fallback)."""
    try:
        teams = await github.fetch_user_teams(org)
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return {"teams": [asdict(t) for t in teams]}


@router.get("/{team_slug}")
async def get_team(
    org: str,
    team_slug: str,
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    try:
        team = await github.fetch_team_info(org, team_slug)
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    if team is None:
        raise NotFoundError("Team")
    return asdict(team)


@router.get("/{team_slug}/members")
async def list_team_members(
    org: str,
    team_slug: str,
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    try:
        members = await github.fetch_team_members(org, team_slug)
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return {"members": [asdict(m) for m in members]}


@router.get("/{team_slug}/repos")
async def list_team_repos(
    org: str,
    team_slug: str,
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    try:
        repos = await github.fetch_team_repos(org, team_slug)
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return {"repos": [asdict(r) for r in repos]}


@router.get("/{team_slug}/activities/recent")
async def get_team_recent_activities(
    org: str,
    team_slug: str,
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """Activity in the team's repositories over the recent window (24h by default)."""
    try:
        repos = await github.fetch_team_repos(org, team_slug)
        result = await github.fetch_team_repo_activities_last_24_hours(
            org, [r.full_name for r in repos]
        )
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return result.to_dict()


@router.get("/{team_slug}/members/activities")
async def get_team_member_activities(
    org: str,
    team_slug: str,
    days: int = Query(30, ge=1, le=365, description="Lookback window in days"),
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """Search-based activity of every team member."""
    try:
        members = await github.fetch_team_members(org, team_slug)
        result = await github.fetch_team_member_activities(
            org,
            [m.login for m in members],
            since=datetime.now(UTC) - timedelta(days=days),
        )
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return result.to_dict()


@router.get("/{team_slug}/leaderboard")
async def get_team_leaderboard(
    org: str,
    team_slug: str,
    metric: str = Query("total", description="Rank by: " + ", ".join(LEADERBOARD_METRICS)),
    window: str = Query("month", description="Time window: " + ", ".join(TIME_WINDOWS)),
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """Team members ranked by the chosen metric within the chosen window."""
    if metric not in LEADERBOARD_METRICS:
        raise ValidationError(f"Unknown metric '{metric}'")
    if window not in TIME_WINDOWS:
        raise ValidationError(f"Unknown window '{window}'")

    now = datetime.now(UTC)
    since = window_start(window, now) or now - timedelta(
        days=github.settings.default_lookback_days
    )

    try:
        members = await github.fetch_team_members(org, team_slug)
        result = await github.fetch_team_member_activities(
            org, [m.login for m in members], since=since
        )
    except GitHubAPIError as e:
        raise to_http_exception(e) from e

    entries = build_leaderboard(result.activities, metric, window, now=now)
    return {
        "entries": entries,
        "total_contributors": len(entries),
        "metric": metric,
        "window": window,
    }
