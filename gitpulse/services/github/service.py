"""
GitHub activity service facade.

Composes the organization operations and the activity fetcher behind one
object, and exposes the pipeline's outbound contract as module-level
coroutines that take the token as their first argument:

    result = await fetch_user_activities(token, "acme", "alice", on_progress)
"""

from collections.abc import Sequence
from datetime import datetime

from gitpulse.config import Settings
from gitpulse.config import settings as default_settings
from gitpulse.services.github.activities import GitHubActivityFetcher
from gitpulse.services.github.cache import ActivityCache, activity_cache
from gitpulse.services.github.progress import ProgressCallback
from gitpulse.services.github.repos import GitHubOrgOperations
from gitpulse.services.github.types import (
    Activity,
    ActivityResult,
    OrgSummary,
    RepoFile,
    RepoSummary,
    TeamMember,
    TeamSummary,
    TokenValidation,
)


class GitHubService:
    """Entry point for every GitHub read the dashboard makes with one token."""

    def __init__(
        self,
        token: str,
        settings: Settings | None = None,
        cache: ActivityCache | None = None,
    ):
        self.token = token
        self.settings = settings or default_settings
        self.cache = cache if cache is not None else activity_cache
        self.orgs = GitHubOrgOperations(token, self.settings, self.cache)
        self.activities = GitHubActivityFetcher(token, self.settings, self.cache, self.orgs)

    # Organization

    async def validate_token(self) -> TokenValidation:
        return await self.orgs.validate_token()

    async def fetch_user_orgs(self) -> list[OrgSummary]:
        return await self.orgs.fetch_user_orgs()

    async def fetch_all_org_repos(self, org: str, *, refresh: bool = False) -> list[RepoSummary]:
        return await self.orgs.list_org_repos(org, refresh=refresh)

    # Teams

    async def fetch_user_teams(self, org: str) -> list[TeamSummary]:
        return await self.orgs.list_user_teams(org)

    async def fetch_team_info(self, org: str, team_slug: str) -> TeamSummary | None:
        return await self.orgs.get_team(org, team_slug)

    async def fetch_team_members(self, org: str, team_slug: str) -> list[TeamMember]:
        return await self.orgs.list_team_members(org, team_slug)

    async def fetch_team_repos(self, org: str, team_slug: str) -> list[RepoSummary]:
        return await self.orgs.list_team_repos(org, team_slug)

    # Repository contents

    async def branch_exists(self, org: str, repo: str, branch: str) -> bool:
        return await self.orgs.branch_exists(org, repo, branch)

    async def fetch_file_at_commit(
        self, org: str, repo: str, path: str, ref: str
    ) -> RepoFile | None:
        return await self.orgs.fetch_file_at_commit(org, repo, path, ref)

    # Activity

    async def fetch_user_activities(
        self,
        org: str,
        username: str,
        on_progress: ProgressCallback | None = None,
        *,
        since: datetime | None = None,
        strategy: str | None = None,
    ) -> ActivityResult:
        return await self.activities.fetch_user_activities(
            org, username, on_progress, since=since, strategy=strategy
        )

    async def fetch_repo_activities(
        self,
        org: str,
        repo: str,
        on_progress: ProgressCallback | None = None,
        *,
        since: datetime | None = None,
    ) -> ActivityResult:
        return await self.activities.fetch_repo_activities(org, repo, on_progress, since=since)

    async def fetch_team_repo_activities_last_24_hours(
        self,
        org: str,
        repos: Sequence[str],
        on_progress: ProgressCallback | None = None,
    ) -> ActivityResult:
        return await self.activities.fetch_team_repo_activities_last_24_hours(
            org, repos, on_progress
        )

    async def fetch_team_member_activities(
        self,
        org: str,
        members: Sequence[str],
        on_progress: ProgressCallback | None = None,
        *,
        since: datetime | None = None,
    ) -> ActivityResult:
        return await self.activities.fetch_team_member_activities(
            org, members, on_progress, since=since
        )

    async def fetch_user_events(
        self,
        username: str,
        org: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ActivityResult:
        return await self.activities.fetch_user_events(username, org, on_progress)

    async def fetch_commit_details(self, org: str, repo: str, sha: str) -> Activity | None:
        return await self.activities.fetch_commit_details(org, repo, sha)

    async def fetch_push_commits(
        self, org: str, repo: str, before: str | None, after: str
    ) -> list[Activity]:
        return await self.activities.fetch_push_commits(org, repo, before, after)

    async def fetch_file_commits(
        self,
        org: str,
        repo: str,
        path: str,
        branch: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ActivityResult:
        return await self.activities.fetch_file_commits(org, repo, path, branch, on_progress)


# ─────────────────────────────────────────────────────────────────────────────
# Token-first module functions
# ─────────────────────────────────────────────────────────────────────────────


async def fetch_user_activities(
    token: str,
    org: str,
    username: str,
    on_progress: ProgressCallback | None = None,
    *,
    since: datetime | None = None,
    strategy: str | None = None,
) -> ActivityResult:
    return await GitHubService(token).fetch_user_activities(
        org, username, on_progress, since=since, strategy=strategy
    )


async def fetch_all_org_repos(token: str, org: str) -> list[RepoSummary]:
    return await GitHubService(token).fetch_all_org_repos(org)


async def validate_token(token: str) -> TokenValidation:
    return await GitHubService(token).validate_token()


async def fetch_user_orgs(token: str) -> list[OrgSummary]:
    return await GitHubService(token).fetch_user_orgs()


async def fetch_team_repo_activities_last_24_hours(
    token: str,
    org: str,
    repos: Sequence[str],
    on_progress: ProgressCallback | None = None,
) -> ActivityResult:
    return await GitHubService(token).fetch_team_repo_activities_last_24_hours(
        org, repos, on_progress
    )


async def fetch_user_events(
    token: str,
    username: str,
    org: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> ActivityResult:
    return await GitHubService(token).fetch_user_events(username, org, on_progress)
