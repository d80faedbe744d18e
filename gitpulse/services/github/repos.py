"""
GitHub organization, membership and team lookups.

Provides:
- Repository enumeration for an organization (all-or-nothing)
- Token validation and the caller's organizations
- Team listing, membership and team repositories
- Branch existence and file-at-commit lookups
"""

import base64
import logging
from typing import Any
from urllib.parse import quote

from gitpulse.config import Settings
from gitpulse.config import settings as default_settings
from gitpulse.services.github.cache import (
    ActivityCache,
    ActivityCacheKey,
    ScopeKind,
    activity_cache,
    token_fingerprint,
)
from gitpulse.services.github.exceptions import GitHubAPIError
from gitpulse.services.github.http_client import github_paginate, github_request
from gitpulse.services.github.types import (
    OrgSummary,
    RepoFile,
    RepoSummary,
    TeamMember,
    TeamSummary,
    TokenValidation,
)

logger = logging.getLogger(__name__)


def normalize_repo(data: dict[str, Any]) -> RepoSummary:
    """Convert a GitHub repository object to RepoSummary."""
    return RepoSummary(
        name=data["name"],
        full_name=data["full_name"],
        description=data.get("description"),
        language=data.get("language"),
        stargazers_count=data.get("stargazers_count", 0),
        forks_count=data.get("forks_count", 0),
        open_issues_count=data.get("open_issues_count", 0),
        private=data.get("private", False),
        url=data.get("html_url"),
        default_branch=data.get("default_branch") or "main",
        pushed_at=data.get("pushed_at"),
        updated_at=data.get("updated_at"),
    )


def normalize_team(data: dict[str, Any]) -> TeamSummary:
    """Convert a GitHub team object to TeamSummary."""
    return TeamSummary(
        id=data["id"],
        name=data["name"],
        slug=data["slug"],
        description=data.get("description"),
        privacy=data.get("privacy"),
        members_count=data.get("members_count"),
        repos_count=data.get("repos_count"),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
    )


class GitHubOrgOperations:
    """
    Organization-level read operations for the GitHub API.

    Repository enumeration is strict: downstream scope selection depends on
    a complete repo list, so any page failure propagates. The other lookups
    treat a 404 as "nothing there".
    """

    def __init__(
        self,
        token: str,
        settings: Settings | None = None,
        cache: ActivityCache | None = None,
    ):
        self.token = token
        self.settings = settings or default_settings
        self.cache = cache if cache is not None else activity_cache

    async def list_org_repos(self, org: str, *, refresh: bool = False) -> list[RepoSummary]:
        """
        List every repository the caller can see in an organization.

        Follows Link rel="next" until exhausted or `max_repo_pages` is reached,
        most recently pushed first.

        Args:
            org: Organization login
            refresh: Bypass the cached snapshot

        Returns:
            List of RepoSummary

        Raises:
            GitHubAPIError: Organization not found (404) or any page failure
        """
        key = ActivityCacheKey(
            ScopeKind.ORG_REPOS, org.lower(), "", viewer=token_fingerprint(self.token)
        )
        if not refresh:
            cached = self.cache.get(key)
            if cached is not None:
                repos: list[RepoSummary] = cached
                return repos

        raw = await github_paginate(
            f"/orgs/{org}/repos",
            self.token,
            params={"type": "all", "sort": "pushed", "per_page": self.settings.page_size},
            max_pages=self.settings.max_repo_pages,
        )
        if raw is None:
            raise GitHubAPIError(
                f"Organization '{org}' not found or you don't have access to it.", 404
            )

        repos = [normalize_repo(r) for r in raw]
        logger.info(f"Enumerated {len(repos)} repositories in {org}")
        self.cache.set(key, repos)
        return repos

    async def fetch_user_orgs(self) -> list[OrgSummary]:
        """Organizations the authenticated user belongs to."""
        raw = await github_paginate(
            "/user/orgs",
            self.token,
            params={"per_page": self.settings.page_size},
            max_pages=self.settings.max_pages,
        )
        return [
            OrgSummary(
                login=o["login"],
                avatar_url=o.get("avatar_url"),
                description=o.get("description"),
            )
            for o in raw or []
        ]

    async def validate_token(self) -> TokenValidation:
        """
        Check a token against /user.

        Never raises for GitHub errors: auth and rate-limit failures come back
        as `valid=False` with a human-readable error.
        """
        try:
            user = await github_request("/user", self.token)
        except GitHubAPIError as e:
            return TokenValidation(valid=False, error=e.message)

        if user is None:
            return TokenValidation(valid=False, error="Authenticated user not found")
        return TokenValidation(
            valid=True,
            user={
                "login": user.get("login"),
                "name": user.get("name"),
                "avatar_url": user.get("avatar_url"),
            },
        )

    async def list_user_teams(self, org: str) -> list[TeamSummary]:
        """
        Teams the caller belongs to in `org`.

        Falls back to every team in the organization when the caller's own
        team list has none there (e.g. the token lacks read:org).
        """
        raw = await github_paginate(
            "/user/teams",
            self.token,
            params={"per_page": self.settings.page_size},
            max_pages=self.settings.max_pages,
        )
        mine = [
            t
            for t in raw or []
            if ((t.get("organization") or {}).get("login") or "").lower() == org.lower()
        ]
        if mine:
            return [normalize_team(t) for t in mine]

        logger.debug(f"No user teams in {org}, falling back to organization teams")
        org_teams = await github_paginate(
            f"/orgs/{org}/teams",
            self.token,
            params={"per_page": self.settings.page_size},
            max_pages=self.settings.max_pages,
        )
        return [normalize_team(t) for t in org_teams or []]

    async def get_team(self, org: str, team_slug: str) -> TeamSummary | None:
        data = await github_request(f"/orgs/{org}/teams/{team_slug}", self.token)
        return normalize_team(data) if data else None

    async def list_team_members(self, org: str, team_slug: str) -> list[TeamMember]:
        raw = await github_paginate(
            f"/orgs/{org}/teams/{team_slug}/members",
            self.token,
            params={"per_page": self.settings.page_size},
            max_pages=self.settings.max_pages,
        )
        return [
            TeamMember(
                login=m["login"],
                id=m.get("id"),
                avatar_url=m.get("avatar_url"),
                url=m.get("html_url"),
                type=m.get("type"),
            )
            for m in raw or []
        ]

    async def list_team_repos(self, org: str, team_slug: str) -> list[RepoSummary]:
        raw = await github_paginate(
            f"/orgs/{org}/teams/{team_slug}/repos",
            self.token,
            params={"per_page": self.settings.page_size},
            max_pages=self.settings.max_pages,
        )
        return [normalize_repo(r) for r in raw or []]

    # ─────────────────────────────────────────────────────────────────────────
    # Repository contents
    # ─────────────────────────────────────────────────────────────────────────

    async def branch_exists(self, org: str, repo: str, branch: str) -> bool:
        """Whether `branch` exists in the repository; a 404 simply means no."""
        data = await github_request(f"/repos/{org}/{repo}/branches/{branch}", self.token)
        return data is not None

    async def fetch_file_at_commit(
        self, org: str, repo: str, path: str, ref: str
    ) -> RepoFile | None:
        """
        Fetch a file's content as of a commit, branch or tag.

        Args:
            org: Organization login
            repo: Repository name
            path: File path within the repository
            ref: Commit sha, branch or tag

        Returns:
            RepoFile with decoded content, or None if the file is absent at
            that ref, is not a regular file, is too large, or is binary
        """
        data = await github_request(
            f"/repos/{org}/{repo}/contents/{quote(path.lstrip('/'))}",
            self.token,
            params={"ref": ref},
        )
        if not isinstance(data, dict) or data.get("type") != "file":
            return None

        size = data.get("size", 0)
        content_b64 = data.get("content")
        if size > self.settings.max_file_bytes or not content_b64:
            return None

        try:
            content = base64.b64decode(content_b64).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None

        return RepoFile(path=path, ref=ref, content=content, size=size, sha=data["sha"])
