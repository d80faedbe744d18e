"""Data types for GitHub activity data."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ActivityType(str, Enum):
    """Closed set of normalized activity types.

    UNKNOWN is the fail-closed variant: new GitHub event shapes render
    generically instead of breaking normalization.
    """

    COMMIT = "commit"
    PUSH = "push"

    PR_OPENED = "pr_opened"
    PR_CLOSED = "pr_closed"
    PR_MERGED = "pr_merged"
    PR_REOPENED = "pr_reopened"

    REVIEW_APPROVED = "review_approved"
    REVIEW_CHANGES_REQUESTED = "review_changes_requested"
    REVIEW_COMMENTED = "review_commented"
    REVIEW_DISMISSED = "review_dismissed"

    PR_COMMENT = "pr_comment"
    ISSUE_COMMENT = "issue_comment"
    COMMIT_COMMENT = "commit_comment"
    REVIEW_COMMENT = "review_comment"

    BRANCH_CREATED = "branch_created"
    BRANCH_DELETED = "branch_deleted"
    TAG_CREATED = "tag_created"
    TAG_DELETED = "tag_deleted"

    RELEASE_PUBLISHED = "release_published"

    ISSUE_OPENED = "issue_opened"
    ISSUE_CLOSED = "issue_closed"
    ISSUE_REOPENED = "issue_reopened"

    REPO_FORKED = "repo_forked"
    REPO_STARRED = "repo_starred"
    REPO_WIKI = "repo_wiki"
    MEMBER_ADDED = "member_added"

    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "ActivityType":
        """Map a raw type string to a member, falling back to UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def category(self) -> str:
        """Presentation group: commit, pull_request, review, comment, branch, tag,
        release, issue, repository or other."""
        return _CATEGORIES.get(self, "other")


_CATEGORIES: dict[ActivityType, str] = {
    ActivityType.COMMIT: "commit",
    ActivityType.PUSH: "commit",
    ActivityType.PR_OPENED: "pull_request",
    ActivityType.PR_CLOSED: "pull_request",
    ActivityType.PR_MERGED: "pull_request",
    ActivityType.PR_REOPENED: "pull_request",
    ActivityType.REVIEW_APPROVED: "review",
    ActivityType.REVIEW_CHANGES_REQUESTED: "review",
    ActivityType.REVIEW_COMMENTED: "review",
    ActivityType.REVIEW_DISMISSED: "review",
    ActivityType.PR_COMMENT: "comment",
    ActivityType.ISSUE_COMMENT: "comment",
    ActivityType.COMMIT_COMMENT: "comment",
    ActivityType.REVIEW_COMMENT: "comment",
    ActivityType.BRANCH_CREATED: "branch",
    ActivityType.BRANCH_DELETED: "branch",
    ActivityType.TAG_CREATED: "tag",
    ActivityType.TAG_DELETED: "tag",
    ActivityType.RELEASE_PUBLISHED: "release",
    ActivityType.ISSUE_OPENED: "issue",
    ActivityType.ISSUE_CLOSED: "issue",
    ActivityType.ISSUE_REOPENED: "issue",
    ActivityType.REPO_FORKED: "repository",
    ActivityType.REPO_STARRED: "repository",
    ActivityType.REPO_WIKI: "repository",
    ActivityType.MEMBER_ADDED: "repository",
}


@dataclass
class Label:
    """Issue/PR label."""

    name: str
    color: str | None = None


@dataclass
class PushCommit:
    """Commit nested inside a push event."""

    sha: str
    short_sha: str
    message: str
    author: str | None
    url: str | None = None


@dataclass
class Activity:
    """One normalized unit of developer activity."""

    id: str  # Deterministic, e.g. "acme/widgets:commit:{sha}"
    type: ActivityType
    date: datetime  # Timezone-aware; sort key
    repo: str  # owner/repo
    author: str | None
    message: str  # Single-line, length-bounded summary
    avatar_url: str | None = None
    full_message: str | None = None
    url: str | None = None

    # Commit / push
    sha: str | None = None
    short_sha: str | None = None
    branch: str | None = None
    commits: list[PushCommit] = field(default_factory=list)
    commit_count: int | None = None

    # Pull request / issue
    number: int | None = None
    title: str | None = None
    state: str | None = None
    base_branch: str | None = None
    merged_at: str | None = None
    draft: bool | None = None
    additions: int | None = None
    deletions: int | None = None
    changed_files: int | None = None
    labels: list[Label] = field(default_factory=list)

    # Comment / review
    body: str | None = None
    review_state: str | None = None
    path: str | None = None
    line: int | None = None

    # Release / tag
    tag_name: str | None = None

    @property
    def category(self) -> str:
        return self.type.category

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view (ISO 8601 date, enum as its value)."""
        data = asdict(self)
        data["type"] = self.type.value
        data["category"] = self.category
        data["date"] = self.date.isoformat()
        return data


@dataclass
class RepoSummary:
    """Repository visible to the caller in an organization."""

    name: str
    full_name: str
    description: str | None = None
    language: str | None = None
    stargazers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    private: bool = False
    url: str | None = None
    default_branch: str = "main"
    pushed_at: str | None = None
    updated_at: str | None = None


@dataclass
class OrgSummary:
    """Organization the authenticated user belongs to."""

    login: str
    avatar_url: str | None = None
    description: str | None = None


@dataclass
class TeamSummary:
    """GitHub team within an organization."""

    id: int
    name: str
    slug: str
    description: str | None = None
    privacy: str | None = None
    members_count: int | None = None
    repos_count: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class TeamMember:
    """Member of a GitHub team."""

    login: str
    id: int | None = None
    avatar_url: str | None = None
    url: str | None = None
    type: str | None = None


@dataclass
class RepoFile:
    """Decoded content of a file at a given ref."""

    path: str
    ref: str
    content: str
    size: int
    sha: str


@dataclass
class TokenValidation:
    """Result of validating a token against /user."""

    valid: bool
    user: dict[str, Any] | None = None
    error: str | None = None


@dataclass
class BatchFailure:
    """A unit of work that failed without aborting its batch."""

    label: str
    error: str
    status_code: int | None = None


@dataclass
class ActorStats:
    """Per-actor tally used for leaderboard ranking."""

    login: str
    avatar_url: str | None = None
    commits: int = 0
    prs: int = 0
    merges: int = 0
    reviews: int = 0
    approvals: int = 0
    comments: int = 0
    branches: int = 0
    tags: int = 0
    releases: int = 0
    issues: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    repos_active: int = 0
    total: int = 0
    last_active: datetime | None = None
    is_inactive: bool = True

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_active"] = self.last_active.isoformat() if self.last_active else None
        return data


@dataclass
class ActivityStats:
    """Summary statistics over an aggregated activity list."""

    total_activities: int = 0
    total_commits: int = 0
    total_prs: int = 0
    active_repos: list[str] = field(default_factory=list)
    by_type: dict[str, int] = field(default_factory=dict)
    daily_counts: dict[str, int] = field(default_factory=dict)  # "YYYY-MM-DD" -> count
    actors: list[ActorStats] = field(default_factory=list)

    @property
    def active_repo_count(self) -> int:
        return len(self.active_repos)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_activities": self.total_activities,
            "total_commits": self.total_commits,
            "total_prs": self.total_prs,
            "active_repos": list(self.active_repos),
            "active_repo_count": self.active_repo_count,
            "by_type": dict(self.by_type),
            "daily_counts": dict(self.daily_counts),
            "actors": [a.to_dict() for a in self.actors],
        }


@dataclass
class ActivityResult:
    """Outcome of one scope fetch."""

    activities: list[Activity]
    repos: list[RepoSummary]
    stats: ActivityStats
    failures: list[BatchFailure] = field(default_factory=list)
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "activities": [a.to_dict() for a in self.activities],
            "repos": [asdict(r) for r in self.repos],
            "stats": self.stats.to_dict(),
            "failures": [asdict(f) for f in self.failures],
            "cached": self.cached,
        }
