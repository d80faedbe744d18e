"""
Aggregation of per-unit activity results.

Concatenates units, deduplicates by activity id, sorts newest first, and
computes the summary statistics and per-actor tallies that the dashboard
and leaderboard consume.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Any

from gitpulse.services.github.constants import INACTIVE_AFTER_DAYS
from gitpulse.services.github.types import Activity, ActivityStats, ActivityType, ActorStats

PR_TYPES = {
    ActivityType.PR_OPENED,
    ActivityType.PR_CLOSED,
    ActivityType.PR_MERGED,
    ActivityType.PR_REOPENED,
}
REVIEW_TYPES = {
    ActivityType.REVIEW_APPROVED,
    ActivityType.REVIEW_CHANGES_REQUESTED,
    ActivityType.REVIEW_COMMENTED,
    ActivityType.REVIEW_DISMISSED,
}
COMMENT_TYPES = {
    ActivityType.PR_COMMENT,
    ActivityType.ISSUE_COMMENT,
    ActivityType.COMMIT_COMMENT,
    ActivityType.REVIEW_COMMENT,
}
BRANCH_TYPES = {ActivityType.BRANCH_CREATED, ActivityType.BRANCH_DELETED}
TAG_TYPES = {ActivityType.TAG_CREATED, ActivityType.TAG_DELETED}
ISSUE_TYPES = {ActivityType.ISSUE_OPENED, ActivityType.ISSUE_CLOSED, ActivityType.ISSUE_REOPENED}

# Leaderboard metric name -> ActorStats attribute
LEADERBOARD_METRICS: dict[str, str] = {
    "total": "total",
    "commits": "commits",
    "prs": "prs",
    "merges": "merges",
    "reviews": "reviews",
    "approvals": "approvals",
    "comments": "comments",
    "lines_added": "lines_added",
    "releases": "releases",
    "repos_active": "repos_active",
}
DEFAULT_METRIC = "total"

# Leaderboard window name -> lookback ("today" starts at UTC midnight, None is unbounded)
TIME_WINDOWS: dict[str, timedelta | None] = {
    "today": timedelta(0),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "3months": timedelta(days=90),
    "6months": timedelta(days=182),
    "year": timedelta(days=365),
    "all": None,
}
DEFAULT_WINDOW = "all"


@dataclass
class AggregateResult:
    """Deduplicated, sorted activity list plus its statistics."""

    activities: list[Activity] = field(default_factory=list)
    stats: ActivityStats = field(default_factory=ActivityStats)


def dedupe(units: Iterable[Iterable[Activity]]) -> list[Activity]:
    """Concatenate units and collapse duplicate ids (last seen wins)."""
    by_id: dict[str, Activity] = {}
    for unit in units:
        for activity in unit:
            by_id.pop(activity.id, None)
            by_id[activity.id] = activity
    return list(by_id.values())


def sort_activities(activities: list[Activity]) -> list[Activity]:
    """Newest first; equal timestamps order by id so output is deterministic."""
    by_id = sorted(activities, key=lambda a: a.id)
    return sorted(by_id, key=lambda a: a.date, reverse=True)


def aggregate(
    units: Iterable[Iterable[Activity]], *, now: datetime | None = None
) -> AggregateResult:
    """
    Merge per-unit results into one activity stream.

    Args:
        units: One activity list per unit of work (repo, member, page)
        now: Reference time for actor inactivity (defaults to current UTC time)

    Returns:
        AggregateResult with deduplicated activities sorted by date descending
    """
    activities = sort_activities(dedupe(units))
    return AggregateResult(activities=activities, stats=compute_stats(activities, now=now))


def push_commit_count(push: Activity) -> int:
    """Commits carried by a push; a push always carries at least its head commit."""
    return push.commit_count or 1


def compute_stats(activities: list[Activity], *, now: datetime | None = None) -> ActivityStats:
    """Counts by type, active repos, daily counts and per-actor tallies."""
    by_type: dict[str, int] = defaultdict(int)
    daily_counts: dict[str, int] = defaultdict(int)
    repos: set[str] = set()
    total_commits = 0
    total_prs = 0

    for activity in activities:
        by_type[activity.type.value] += 1
        daily_counts[activity.date.astimezone(UTC).date().isoformat()] += 1
        repos.add(activity.repo)
        if activity.type == ActivityType.COMMIT:
            total_commits += 1
        elif activity.type == ActivityType.PUSH:
            total_commits += push_commit_count(activity)
        elif activity.type in PR_TYPES:
            total_prs += 1

    return ActivityStats(
        total_activities=len(activities),
        total_commits=total_commits,
        total_prs=total_prs,
        active_repos=sorted(repos),
        by_type=dict(by_type),
        daily_counts=dict(sorted(daily_counts.items())),
        actors=compute_actor_stats(activities, now=now),
    )


def compute_actor_stats(
    activities: Iterable[Activity], *, now: datetime | None = None
) -> list[ActorStats]:
    """
    Per-actor tallies, sorted by total descending then login ascending.

    Activities without an author are not attributed to anyone.
    """
    now = now or datetime.now(UTC)
    inactive_before = now - timedelta(days=INACTIVE_AFTER_DAYS)
    actors: dict[str, ActorStats] = {}
    actor_repos: dict[str, set[str]] = defaultdict(set)

    for activity in activities:
        login = activity.author
        if not login:
            continue
        actor = actors.get(login)
        if actor is None:
            actor = actors[login] = ActorStats(login=login)
        if actor.avatar_url is None and activity.avatar_url:
            actor.avatar_url = activity.avatar_url
        actor_repos[login].add(activity.repo)
        if actor.last_active is None or activity.date > actor.last_active:
            actor.last_active = activity.date

        kind = activity.type
        if kind == ActivityType.COMMIT:
            actor.commits += 1
            actor.lines_added += activity.additions or 0
            actor.lines_removed += activity.deletions or 0
        elif kind == ActivityType.PUSH:
            actor.commits += push_commit_count(activity)
        elif kind in PR_TYPES:
            actor.prs += 1
            if kind == ActivityType.PR_MERGED:
                actor.merges += 1
        elif kind in REVIEW_TYPES:
            actor.reviews += 1
            if kind == ActivityType.REVIEW_APPROVED:
                actor.approvals += 1
        elif kind in COMMENT_TYPES:
            actor.comments += 1
        elif kind in BRANCH_TYPES:
            actor.branches += 1
        elif kind in TAG_TYPES:
            actor.tags += 1
        elif kind == ActivityType.RELEASE_PUBLISHED:
            actor.releases += 1
        elif kind in ISSUE_TYPES:
            actor.issues += 1

    for login, actor in actors.items():
        actor.repos_active = len(actor_repos[login])
        actor.total = actor.commits + actor.prs + actor.reviews + actor.comments + actor.merges
        actor.is_inactive = actor.last_active is None or actor.last_active < inactive_before

    return sorted(actors.values(), key=lambda a: (-a.total, a.login))


# ---------------------------------------------------------------------------
# Leaderboard helpers
# ---------------------------------------------------------------------------


def window_start(window: str, now: datetime | None = None) -> datetime | None:
    """Earliest timestamp included by a named time window (None = unbounded)."""
    now = now or datetime.now(UTC)
    lookback = TIME_WINDOWS.get(window)
    if window == "today":
        return now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)
    if lookback is None:
        return None
    return now - lookback


def filter_since(activities: Iterable[Activity], since: datetime | None) -> list[Activity]:
    """Activities at or after `since`; all of them when `since` is None."""
    if since is None:
        return list(activities)
    return [a for a in activities if a.date >= since]


def rank_actors(actors: Iterable[ActorStats], metric: str) -> list[ActorStats]:
    """
    Order actors for a leaderboard.

    Sorted by the metric descending, then total descending, then login
    ascending. Unknown metrics fall back to "total".
    """
    attribute = LEADERBOARD_METRICS.get(metric, LEADERBOARD_METRICS[DEFAULT_METRIC])
    return sorted(
        actors,
        key=lambda a: (-getattr(a, attribute), -a.total, a.login),
    )


def compute_streak(daily_counts: dict[str, int], today: date | None = None) -> int:
    """Consecutive active days ending today or yesterday."""
    if not daily_counts:
        return 0

    today = today or datetime.now(UTC).date()
    yesterday = today - timedelta(days=1)
    active_dates = {day for day, count in daily_counts.items() if count > 0}

    # Start counting from today or yesterday
    if today.isoformat() in active_dates:
        current = today
    elif yesterday.isoformat() in active_dates:
        current = yesterday
    else:
        return 0

    streak = 0
    while current.isoformat() in active_dates:
        streak += 1
        current -= timedelta(days=1)

    return streak


def build_leaderboard(
    activities: list[Activity],
    metric: str = DEFAULT_METRIC,
    window: str = DEFAULT_WINDOW,
    *,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """
    Ranked leaderboard entries for the activities inside `window`.

    Each entry is the actor's tally plus `rank` (1-based) and `streak_days`.
    """
    now = now or datetime.now(UTC)
    in_window = filter_since(activities, window_start(window, now))

    daily_by_actor: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for activity in in_window:
        if activity.author:
            day = activity.date.astimezone(UTC).date().isoformat()
            daily_by_actor[activity.author][day] += 1

    ranked = rank_actors(compute_actor_stats(in_window, now=now), metric)
    today = now.astimezone(UTC).date()

    entries = []
    for i, actor in enumerate(ranked):
        entry = actor.to_dict()
        entry["rank"] = i + 1
        entry["streak_days"] = compute_streak(daily_by_actor[actor.login], today)
        entries.append(entry)
    return entries
