"""
GitHub activity pipeline package.

Re-exports the public types and entry points.
Usage: `from gitpulse.services.github import GitHubService, ActivityResult`

Module structure:
- service.py: GitHubService facade and token-first module functions
- activities.py: Scope fetchers (user, repo, team repos, team members, events)
- repos.py: Repository enumeration, orgs, token validation, teams
- batch.py: Bounded-concurrency batch runner with abort signal
- aggregator.py: Dedup, sort, statistics and leaderboard helpers
- normalizer.py: Raw payload -> Activity mapping
- progress.py: Progress values, tracker and async channel
- cache.py: Freshness-windowed activity cache
- http_client.py: Shared AsyncClient and request/pagination helpers
- helpers.py: Rate limit detection and error classification
- types.py: Data types
- exceptions.py: Custom exceptions
- constants.py: API constants
"""

from gitpulse.services.github.activities import GitHubActivityFetcher
from gitpulse.services.github.aggregator import (
    LEADERBOARD_METRICS,
    TIME_WINDOWS,
    AggregateResult,
    aggregate,
    build_leaderboard,
    compute_streak,
    filter_since,
    rank_actors,
)
from gitpulse.services.github.batch import BatchResult, UnitResult, run_batched
from gitpulse.services.github.cache import (
    ActivityCache,
    ActivityCacheKey,
    CacheEntry,
    ScopeKind,
    activity_cache,
    repo_set_signature,
)
from gitpulse.services.github.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubRateLimitError,
)
from gitpulse.services.github.helpers import RateLimitInfo, handle_error_response
from gitpulse.services.github.http_client import close_github_client
from gitpulse.services.github.normalizer import ActivitySource, normalize
from gitpulse.services.github.progress import (
    FetchHandle,
    Progress,
    ProgressCallback,
    ProgressChannel,
    ProgressTracker,
    start_fetch,
)
from gitpulse.services.github.repos import GitHubOrgOperations
from gitpulse.services.github.service import (
    GitHubService,
    fetch_all_org_repos,
    fetch_team_repo_activities_last_24_hours,
    fetch_user_activities,
    fetch_user_events,
    fetch_user_orgs,
    validate_token,
)
from gitpulse.services.github.types import (
    Activity,
    ActivityResult,
    ActivityStats,
    ActivityType,
    ActorStats,
    BatchFailure,
    Label,
    OrgSummary,
    PushCommit,
    RepoFile,
    RepoSummary,
    TeamMember,
    TeamSummary,
    TokenValidation,
)

__all__ = [
    # Service (main entry point)
    "GitHubService",
    "fetch_user_activities",
    "fetch_all_org_repos",
    "validate_token",
    "fetch_user_orgs",
    "fetch_team_repo_activities_last_24_hours",
    "fetch_user_events",
    # Operation classes (for direct use if needed)
    "GitHubActivityFetcher",
    "GitHubOrgOperations",
    # Pipeline stages
    "ActivitySource",
    "normalize",
    "run_batched",
    "BatchResult",
    "UnitResult",
    "aggregate",
    "AggregateResult",
    "build_leaderboard",
    "compute_streak",
    "filter_since",
    "rank_actors",
    "LEADERBOARD_METRICS",
    "TIME_WINDOWS",
    # Progress
    "Progress",
    "ProgressCallback",
    "ProgressChannel",
    "ProgressTracker",
    "FetchHandle",
    "start_fetch",
    # Cache
    "ActivityCache",
    "ActivityCacheKey",
    "CacheEntry",
    "ScopeKind",
    "activity_cache",
    "repo_set_signature",
    # HTTP client lifecycle
    "close_github_client",
    # Utilities
    "handle_error_response",
    "RateLimitInfo",
    # Exceptions
    "GitHubAPIError",
    "GitHubAuthError",
    "GitHubRateLimitError",
    # Types
    "Activity",
    "ActivityResult",
    "ActivityStats",
    "ActivityType",
    "ActorStats",
    "BatchFailure",
    "Label",
    "OrgSummary",
    "PushCommit",
    "RepoFile",
    "RepoSummary",
    "TeamMember",
    "TeamSummary",
    "TokenValidation",
]
