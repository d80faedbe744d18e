"""Organization endpoints: the caller's orgs, an org's repositories and their contents."""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Query

from gitpulse.api.deps import get_github_service
from gitpulse.core.exceptions import NotFoundError, to_http_exception
from gitpulse.services.github import GitHubAPIError, GitHubService

router = APIRouter(prefix="/orgs", tags=["orgs"])
logger = logging.getLogger(__name__)


@router.get("")
async def list_orgs(
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """Organizations the authenticated user belongs to."""
    try:
        orgs = await github.fetch_user_orgs()
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return {"orgs": [asdict(o) for o in orgs]}


@router.get("/{org}/repos")
async def list_org_repos(
    org: str,
    refresh: bool = Query(False, description="Bypass the cached repository snapshot"),
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """Every repository the caller can see in the organization."""
    try:
        repos = await github.fetch_all_org_repos(org, refresh=refresh)
    except GitHubAPIError as e:
        logger.warning(f"Repository enumeration failed for {org}: {e.message}")
        raise to_http_exception(e) from e
    return {"org": org, "repos": [asdict(r) for r in repos], "total": len(repos)}


@router.get("/{org}/repos/{repo}/branches/{branch:path}")
async def check_branch(
    org: str,
    repo: str,
    branch: str,
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """Whether a branch exists; a missing branch answers 200 with exists=false."""
    try:
        exists = await github.branch_exists(org, repo, branch)
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    return {"repo": f"{org}/{repo}", "branch": branch, "exists": exists}


@router.get("/{org}/repos/{repo}/files/content")
async def get_file_content(
    org: str,
    repo: str,
    path: str = Query(..., min_length=1, description="File path within the repository"),
    ref: str = Query(..., min_length=1, description="Commit sha, branch or tag"),
    github: GitHubService = Depends(get_github_service),
) -> dict[str, Any]:
    """A text file's content as of a commit."""
    try:
        file = await github.fetch_file_at_commit(org, repo, path, ref)
    except GitHubAPIError as e:
        raise to_http_exception(e) from e
    if file is None:
        raise NotFoundError("File", detail=f"'{path}' does not exist as a text file at {ref}")
    return asdict(file)
