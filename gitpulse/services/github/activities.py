"""
GitHub activity fetching.

Retrieves and normalizes activity for a scope (one user, one repo, a set of
team repos, a set of team members) within a bounded lookback window.

Every scope fetch follows the same shape:
    cache check -> units of work -> run_batched -> aggregate -> cache write

The user scope prefers GitHub's search endpoints (one paginated query per
activity kind across the whole org) over a per-repo crawl; the crawl stays
available as the "repos" strategy for tokens without search access.

Failure policy per unit:
- 404, or 409 on an empty repository: empty unit
- rate limit: remaining units skipped, GitHubRateLimitError raised with the
  completed units attached as `partial`; nothing is cached
- auth error: propagates
- anything else: recorded in ActivityResult.failures; nothing is cached
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from gitpulse.config import Settings
from gitpulse.config import settings as default_settings
from gitpulse.services.github.aggregator import PR_TYPES, aggregate, filter_since
from gitpulse.services.github.batch import BatchResult, run_batched
from gitpulse.services.github.cache import (
    ActivityCache,
    ActivityCacheKey,
    ScopeKind,
    activity_cache,
    repo_set_signature,
    token_fingerprint,
)
from gitpulse.services.github.constants import MIN_USER_EVENTS, NULL_SHA
from gitpulse.services.github.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubRateLimitError,
)
from gitpulse.services.github.http_client import (
    github_get_page,
    github_paginate,
    github_request,
)
from gitpulse.services.github.normalizer import ActivitySource, normalize, normalize_many
from gitpulse.services.github.progress import ProgressCallback, ProgressTracker
from gitpulse.services.github.repos import GitHubOrgOperations
from gitpulse.services.github.types import (
    Activity,
    ActivityResult,
    ActivityType,
    BatchFailure,
    RepoSummary,
)

logger = logging.getLogger(__name__)

STRATEGIES = ("search", "repos")


def full_repo_name(org: str, repo: str) -> str:
    """Owner-qualify a repo name ("widgets" -> "acme/widgets")."""
    return repo if "/" in repo else f"{org}/{repo}"


def repos_from_activities(activities: Sequence[Activity]) -> list[RepoSummary]:
    """Repositories observed in an activity list, sorted by name."""
    names = sorted({a.repo for a in activities})
    return [RepoSummary(name=name.split("/")[-1], full_name=name) for name in names]


def drop_event_overlaps(
    units: list[list[Activity]], since: datetime | None = None
) -> list[list[Activity]]:
    """
    Drop listed commits and PRs that an event in the same fetch already covers.

    A commit whose sha a push carries, and a PR-list entry whose number has a
    pull request event, would otherwise count the same change twice. Events
    older than `since` cover nothing, since they are filtered out later.
    """
    pushed: set[str] = set()
    pr_events: set[tuple[str, int]] = set()
    for unit in units:
        for activity in unit:
            if since is not None and activity.date < since:
                continue
            if activity.type == ActivityType.PUSH:
                if activity.sha:
                    pushed.add(activity.sha)
                pushed.update(c.sha for c in activity.commits)
            elif activity.type in PR_TYPES and activity.number is not None:
                if not activity.id.endswith(f":pr:{activity.number}"):
                    pr_events.add((activity.repo, activity.number))

    def covered(activity: Activity) -> bool:
        if activity.type == ActivityType.COMMIT:
            return activity.sha in pushed
        return (
            activity.type in PR_TYPES
            and activity.id == f"{activity.repo}:pr:{activity.number}"
            and (activity.repo, activity.number) in pr_events
        )

    return [[a for a in unit if not covered(a)] for unit in units]


class GitHubActivityFetcher:
    """
    Scope fetchers over the GitHub REST and search APIs.

    Args:
        token: GitHub bearer token
        settings: Tunables (batch sizes, page ceilings, lookback); defaults
            to the application settings
        cache: Activity cache; defaults to the process-wide cache
        orgs: Organization operations used for repo enumeration
    """

    def __init__(
        self,
        token: str,
        settings: Settings | None = None,
        cache: ActivityCache | None = None,
        orgs: GitHubOrgOperations | None = None,
    ):
        self.token = token
        self.settings = settings or default_settings
        self.cache = cache if cache is not None else activity_cache
        self.orgs = orgs or GitHubOrgOperations(token, self.settings, self.cache)
        self._viewer = token_fingerprint(token)

    # ─────────────────────────────────────────────────────────────────────────
    # Shared plumbing
    # ─────────────────────────────────────────────────────────────────────────

    def _key(
        self, scope: ScopeKind, org: str, parameter: str, window: str = ""
    ) -> ActivityCacheKey:
        return ActivityCacheKey(
            scope=scope,
            org=org.lower(),
            parameter=parameter.lower(),
            window=window,
            viewer=self._viewer,
        )

    def _default_since(self) -> datetime:
        return datetime.now(UTC) - timedelta(days=self.settings.default_lookback_days)

    def _from_cache(
        self, key: ActivityCacheKey, on_progress: ProgressCallback | None
    ) -> ActivityResult | None:
        cached: ActivityResult | None = self.cache.get(key)
        if cached is None:
            return None
        ProgressTracker(0, on_progress).cached()
        cached.cached = True
        return cached

    async def _list(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        max_pages: int | None = None,
    ) -> list[Any]:
        """Paginated list where 404 and 409 (empty repository) mean "no items"."""
        try:
            raw = await github_paginate(
                path,
                self.token,
                params={"per_page": self.settings.page_size, **(params or {})},
                max_pages=max_pages or self.settings.max_pages,
            )
        except GitHubAPIError as e:
            if e.status_code == 409:
                logger.debug(f"Empty repository for {path}")
                return []
            raise
        return raw or []

    def _finish(
        self,
        batch: BatchResult[list[Activity]],
        repos: list[RepoSummary],
        key: ActivityCacheKey,
        tracker: ProgressTracker,
        *,
        since: datetime | None = None,
        extra_failures: list[BatchFailure] | None = None,
        derive_repos: bool = False,
    ) -> ActivityResult:
        """Aggregate a batch, then raise on rate limit or write through the cache."""
        aggregated = aggregate([filter_since(unit, since) for unit in batch.results])
        failures = [*(extra_failures or []), *batch.failures]
        result = ActivityResult(
            activities=aggregated.activities,
            repos=repos_from_activities(aggregated.activities) if derive_repos else repos,
            stats=aggregated.stats,
            failures=failures,
        )

        if batch.rate_limit is not None:
            error = batch.rate_limit
            error.partial = result
            raise error

        if not failures:
            self.cache.set(key, result)
        else:
            logger.info(f"Not caching {key}: {len(failures)} unit(s) failed")

        tracker.complete(f"Loaded {len(result.activities)} activities")
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Units of work
    # ─────────────────────────────────────────────────────────────────────────

    async def _search_commits(self, org: str, username: str, since: datetime) -> list[Activity]:
        raw = await self._list(
            "/search/commits",
            {
                "q": f"author:{username} org:{org} committer-date:>={since.date().isoformat()}",
                "sort": "committer-date",
                "order": "desc",
            },
        )
        return normalize_many(raw, ActivitySource.SEARCH_COMMIT)

    async def _search_pull_requests(
        self, org: str, username: str, since: datetime
    ) -> list[Activity]:
        raw = await self._list(
            "/search/issues",
            {
                "q": f"is:pr author:{username} org:{org} created:>={since.date().isoformat()}",
                "sort": "created",
                "order": "desc",
            },
        )
        return normalize_many(raw, ActivitySource.SEARCH_ISSUE)

    async def _search_user(self, org: str, username: str, since: datetime) -> list[Activity]:
        commits = await self._search_commits(org, username, since)
        prs = await self._search_pull_requests(org, username, since)
        return commits + prs

    async def _crawl_user_repo(self, repo: str, username: str, since: datetime) -> list[Activity]:
        """One repo's commits by `username` and the PRs they authored."""
        commits = await self._list(
            f"/repos/{repo}/commits",
            {"author": username, "since": since.isoformat()},
        )
        pulls = await self._list(
            f"/repos/{repo}/pulls",
            {"state": "all", "sort": "updated", "direction": "desc"},
        )
        authored = [
            pr
            for pr in normalize_many(pulls, ActivitySource.PULL_REQUEST, repo=repo)
            if pr.author and pr.author.lower() == username.lower()
        ]
        return normalize_many(commits, ActivitySource.COMMIT, repo=repo) + authored

    async def _recent_repo_events(self, repo: str, cutoff: datetime) -> list[Activity]:
        """Repo events newer than `cutoff`; stops paging once a page reaches past it."""
        activities: list[Activity] = []
        url: str | None = f"/repos/{repo}/events"
        params: dict[str, Any] | None = {"per_page": self.settings.page_size}
        pages = 0

        while url is not None and pages < self.settings.max_pages:
            page = await github_get_page(url, self.token, params=params)
            pages += 1
            if page is None or not isinstance(page.data, list) or not page.data:
                break
            normalized = normalize_many(page.data, ActivitySource.EVENT, repo=repo)
            activities.extend(normalized)
            if any(a.date < cutoff for a in normalized):
                break
            url, params = page.next_url, None

        return filter_since(activities, cutoff)

    # ─────────────────────────────────────────────────────────────────────────
    # Scopes
    # ─────────────────────────────────────────────────────────────────────────

    async def fetch_user_activities(
        self,
        org: str,
        username: str,
        on_progress: ProgressCallback | None = None,
        *,
        since: datetime | None = None,
        strategy: str | None = None,
    ) -> ActivityResult:
        """
        Fetch a user's activity across an organization.

        Args:
            org: Organization login
            username: User login
            on_progress: Progress listener
            since: Start of the lookback window (default: settings.default_lookback_days)
            strategy: "search" (org-wide search queries) or "repos" (per-repo crawl)

        Returns:
            ActivityResult whose `repos` is the full enumerated repo list,
            regardless of per-repo failures

        Raises:
            GitHubAuthError: Token rejected
            GitHubRateLimitError: Rate limited; `partial` holds completed units
            GitHubAPIError: Repository enumeration failed
        """
        strategy = strategy or self.settings.fetch_strategy
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown fetch strategy: {strategy}")
        since = since or self._default_since()

        key = self._key(ScopeKind.USER, org, username, f"{strategy}:{since.date().isoformat()}")
        cached = self._from_cache(key, on_progress)
        if cached is not None:
            return cached

        tracker = ProgressTracker(1, on_progress)
        tracker.report(f"Fetching repositories in {org}...")
        repos = await self.orgs.list_org_repos(org)
        kinds = ["commits", "pull requests"]
        tracker.add_units(len(kinds) if strategy == "search" else len(repos))
        tracker.advance(status=f"Found {len(repos)} repositories")

        if strategy == "search":

            async def search_unit(kind: str) -> list[Activity]:
                if kind == "commits":
                    return await self._search_commits(org, username, since)
                return await self._search_pull_requests(org, username, since)

            batch = await run_batched(
                kinds,
                search_unit,
                len(kinds),
                describe=lambda kind: f"{kind} by {username}",
                tracker=tracker,
            )
        else:
            batch = await run_batched(
                repos,
                lambda repo: self._crawl_user_repo(repo.full_name, username, since),
                self.settings.repo_batch_size,
                describe=lambda repo: repo.full_name,
                delay=self.settings.batch_delay_seconds,
                tracker=tracker,
            )

        return self._finish(batch, repos, key, tracker, since=since)

    async def fetch_repo_activities(
        self,
        org: str,
        repo: str,
        on_progress: ProgressCallback | None = None,
        *,
        since: datetime | None = None,
    ) -> ActivityResult:
        """
        Comprehensive activity for one repository.

        Combines the events feed, commits, pull requests, issue comments and
        releases, then the reviews of the most recently updated PRs.
        Listed commits and PRs that an event already covers are dropped.
        """
        full_name = full_repo_name(org, repo)
        since = since or self._default_since()
        key = self._key(ScopeKind.REPO, org, full_name, since.date().isoformat())
        cached = self._from_cache(key, on_progress)
        if cached is not None:
            return cached

        since_param = since.isoformat()
        pulls_raw: list[dict[str, Any]] = []

        async def source_unit(source: str) -> list[Activity]:
            if source == "events":
                raw = await self._list(f"/repos/{full_name}/events")
                return normalize_many(raw, ActivitySource.EVENT, repo=full_name)
            if source == "commits":
                raw = await self._list(f"/repos/{full_name}/commits", {"since": since_param})
                return normalize_many(raw, ActivitySource.COMMIT, repo=full_name)
            if source == "pull requests":
                raw = await self._list(
                    f"/repos/{full_name}/pulls",
                    {"state": "all", "sort": "updated", "direction": "desc"},
                )
                pulls_raw.extend(raw)
                return normalize_many(raw, ActivitySource.PULL_REQUEST, repo=full_name)
            if source == "issue comments":
                raw = await self._list(
                    f"/repos/{full_name}/issues/comments",
                    {"since": since_param, "sort": "created", "direction": "desc"},
                )
                return normalize_many(raw, ActivitySource.ISSUE_COMMENT, repo=full_name)
            raw = await self._list(f"/repos/{full_name}/releases")
            return normalize_many(raw, ActivitySource.RELEASE, repo=full_name)

        sources = ["events", "commits", "pull requests", "issue comments", "releases"]
        # One extra unit stands in for the review stage until the PR list is known
        tracker = ProgressTracker(len(sources) + 1, on_progress)
        batch = await run_batched(
            sources,
            source_unit,
            self.settings.repo_batch_size,
            describe=lambda source: f"{full_name} {source}",
            tracker=tracker,
        )
        if batch.rate_limit is None:
            recent_prs = pulls_raw[: self.settings.review_pr_limit]
            if recent_prs:
                tracker.add_units(len(recent_prs) - 1)
            else:
                tracker.advance(status="No pull requests to review")

            async def review_unit(pr: dict[str, Any]) -> list[Activity]:
                raw = await self._list(f"/repos/{full_name}/pulls/{pr['number']}/reviews")
                return normalize_many(raw, ActivitySource.REVIEW, repo=full_name, context=pr)

            reviews = await run_batched(
                recent_prs,
                review_unit,
                self.settings.review_batch_size,
                describe=lambda pr: f"{full_name} PR #{pr['number']} reviews",
                delay=self.settings.batch_delay_seconds,
                tracker=tracker,
            )
            batch.results.extend(reviews.results)
            batch.failures.extend(reviews.failures)
            batch.skipped.extend(reviews.skipped)
            batch.rate_limit = reviews.rate_limit

        batch.results = drop_event_overlaps(batch.results, since)
        repos = [RepoSummary(name=full_name.split("/")[-1], full_name=full_name)]
        return self._finish(batch, repos, key, tracker, since=since)

    async def fetch_team_repo_activities_last_24_hours(
        self,
        org: str,
        repos: Sequence[str],
        on_progress: ProgressCallback | None = None,
    ) -> ActivityResult:
        """
        Recent activity across a set of team repositories.

        Uses each repo's events feed, keeping events inside the recent window
        (settings.recent_window_hours, 24 by default).
        """
        full_names = [full_repo_name(org, r) for r in repos]
        hours = self.settings.recent_window_hours
        key = self._key(ScopeKind.TEAM_REPOS, org, repo_set_signature(full_names), f"{hours}h")
        cached = self._from_cache(key, on_progress)
        if cached is not None:
            return cached

        cutoff = datetime.now(UTC) - timedelta(hours=hours)
        tracker = ProgressTracker(len(full_names), on_progress)
        batch = await run_batched(
            full_names,
            lambda name: self._recent_repo_events(name, cutoff),
            self.settings.repo_batch_size,
            describe=lambda name: name,
            delay=self.settings.batch_delay_seconds,
            tracker=tracker,
        )
        summaries = [RepoSummary(name=n.split("/")[-1], full_name=n) for n in full_names]
        return self._finish(batch, summaries, key, tracker, since=cutoff)

    async def fetch_user_events(
        self,
        username: str,
        org: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ActivityResult:
        """
        A user's events feed, optionally restricted to one organization.

        When the authenticated feed returns fewer than MIN_USER_EVENTS events
        the public feed is merged in as well.
        """
        key = self._key(ScopeKind.USER_EVENTS, org or "", username)
        cached = self._from_cache(key, on_progress)
        if cached is not None:
            return cached

        tracker = ProgressTracker(2, on_progress)
        tracker.report(f"Fetching events for {username}...")
        units: list[list[Activity]] = []
        failures: list[BatchFailure] = []
        rate_limit: GitHubRateLimitError | None = None

        events = await self._list(f"/users/{username}/events")
        units.append(normalize_many(events, ActivitySource.EVENT))
        tracker.advance(status=f"Fetched {len(events)} events")

        if len(events) < MIN_USER_EVENTS:
            try:
                public = await self._list(f"/users/{username}/events/public")
                units.append(normalize_many(public, ActivitySource.EVENT))
            except GitHubRateLimitError as e:
                rate_limit = e
            except GitHubAuthError:
                raise
            except GitHubAPIError as e:
                logger.warning(f"Public events fallback failed for {username}: {e.message}")
                failures.append(
                    BatchFailure(
                        label=f"{username} public events",
                        error=e.message,
                        status_code=e.status_code,
                    )
                )
        tracker.advance(status="Merged public events")

        if org:
            prefix = f"{org.lower()}/"
            units = [[a for a in unit if a.repo.lower().startswith(prefix)] for unit in units]

        batch: BatchResult[list[Activity]] = BatchResult(results=units, rate_limit=rate_limit)
        return self._finish(
            batch, [], key, tracker, extra_failures=failures, derive_repos=True
        )

    async def fetch_team_member_activities(
        self,
        org: str,
        members: Sequence[str],
        on_progress: ProgressCallback | None = None,
        *,
        since: datetime | None = None,
    ) -> ActivityResult:
        """Search-based activity for each team member, in member batches."""
        since = since or self._default_since()
        key = self._key(
            ScopeKind.TEAM_MEMBERS, org, repo_set_signature(members), since.date().isoformat()
        )
        cached = self._from_cache(key, on_progress)
        if cached is not None:
            return cached

        tracker = ProgressTracker(len(members), on_progress)
        batch = await run_batched(
            list(members),
            lambda member: self._search_user(org, member, since),
            self.settings.member_batch_size,
            describe=lambda member: member,
            delay=self.settings.batch_delay_seconds,
            tracker=tracker,
        )
        return self._finish(batch, [], key, tracker, since=since, derive_repos=True)

    async def fetch_file_commits(
        self,
        org: str,
        repo: str,
        path: str,
        branch: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ActivityResult:
        """
        Commit history of a single file, newest first.

        Pages through /commits?path= up to settings.max_file_history_pages.
        A missing repo, branch or path yields an empty history.
        """
        full_name = full_repo_name(org, repo)
        # File paths and branch names are case-sensitive, so they are not lower-cased
        key = ActivityCacheKey(
            scope=ScopeKind.FILE_HISTORY,
            org=org.lower(),
            parameter=f"{full_name.lower()}:{path}",
            window=branch or "",
            viewer=self._viewer,
        )
        cached = self._from_cache(key, on_progress)
        if cached is not None:
            return cached

        params = {"path": path}
        if branch:
            params["sha"] = branch

        async def history_unit(target: str) -> list[Activity]:
            raw = await self._list(
                f"/repos/{full_name}/commits",
                params,
                max_pages=self.settings.max_file_history_pages,
            )
            return normalize_many(raw, ActivitySource.COMMIT, repo=full_name)

        tracker = ProgressTracker(1, on_progress)
        batch = await run_batched(
            [path],
            history_unit,
            1,
            describe=lambda target: f"{full_name} {target} history",
            tracker=tracker,
        )
        repos = [RepoSummary(name=full_name.split("/")[-1], full_name=full_name)]
        return self._finish(batch, repos, key, tracker)

    # ─────────────────────────────────────────────────────────────────────────
    # Enrichment
    # ─────────────────────────────────────────────────────────────────────────

    async def fetch_commit_details(self, org: str, repo: str, sha: str) -> Activity | None:
        """Single commit with line stats and changed-file count, or None if missing."""
        full_name = full_repo_name(org, repo)
        data = await github_request(f"/repos/{full_name}/commits/{sha}", self.token)
        if data is None:
            return None
        return normalize(data, ActivitySource.COMMIT_DETAIL, repo=full_name)

    async def fetch_push_commits(
        self, org: str, repo: str, before: str | None, after: str
    ) -> list[Activity]:
        """
        Commits contained in a push.

        A null `before` sha means the push created the branch; only the head
        commit is returned then, since there is no base to compare against.
        """
        if not before or before == NULL_SHA:
            head = await self.fetch_commit_details(org, repo, after)
            return [head] if head is not None else []

        full_name = full_repo_name(org, repo)
        data = await github_request(f"/repos/{full_name}/compare/{before}...{after}", self.token)
        if not data:
            return []
        return normalize_many(data.get("commits"), ActivitySource.COMMIT, repo=full_name)
