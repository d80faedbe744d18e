"""
Normalization of raw GitHub payloads into Activity records.

Each payload shape (events feed, commit list, search results, PR list,
reviews, comments, releases) has a dedicated mapping function. Malformed
payloads map to None and are skipped; they never abort a batch.

Activity ids are derived from stable source fields and scoped by repository,
so the same commit, review or comment normalizes to the same id whether it
came from a user feed, a search, or a repo crawl.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from gitpulse.services.github.constants import (
    NULL_SHA,
    SHORT_SHA_LENGTH,
    SUMMARY_MAX_LENGTH,
)
from gitpulse.services.github.types import Activity, ActivityType, Label, PushCommit

logger = logging.getLogger(__name__)


class ActivitySource(str, Enum):
    """Which API payload shape a raw record came from."""

    EVENT = "event"
    COMMIT = "commit"
    SEARCH_COMMIT = "search_commit"
    COMMIT_DETAIL = "commit_detail"
    PULL_REQUEST = "pull_request"
    SEARCH_ISSUE = "search_issue"
    REVIEW = "review"
    ISSUE_COMMENT = "issue_comment"
    REVIEW_COMMENT = "review_comment"
    COMMIT_COMMENT = "commit_comment"
    RELEASE = "release"


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware datetime, or None if unparseable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def summarize(text: str | None, limit: int = SUMMARY_MAX_LENGTH) -> str:
    """First line of `text`, capped at `limit` characters."""
    if not text:
        return ""
    first_line = text.strip().split("\n", 1)[0].strip()
    if len(first_line) <= limit:
        return first_line
    return first_line[: limit - 3].rstrip() + "..."


def short_sha(sha: str | None) -> str | None:
    return sha[:SHORT_SHA_LENGTH] if sha else None


def _labels(raw_labels: list[dict[str, Any]] | None) -> list[Label]:
    return [Label(name=lbl["name"], color=lbl.get("color")) for lbl in raw_labels or []]


def _login(user: dict[str, Any] | None) -> str | None:
    return user.get("login") if user else None


def _avatar(user: dict[str, Any] | None) -> str | None:
    return user.get("avatar_url") if user else None


def _number_from_url(url: str | None) -> int | None:
    """Trailing number of an API URL like .../issues/42 or .../pulls/42."""
    if not url:
        return None
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else None


def _repo_from_api_url(url: str | None) -> str | None:
    """owner/repo from https://api.github.com/repos/{owner}/{repo}[/...]."""
    if not url or "/repos/" not in url:
        return None
    parts = url.split("/repos/", 1)[1].split("/")
    if len(parts) < 2:
        return None
    return f"{parts[0]}/{parts[1]}"


def _pr_type(merged: bool, state: str | None) -> ActivityType:
    if merged:
        return ActivityType.PR_MERGED
    if state == "open":
        return ActivityType.PR_OPENED
    return ActivityType.PR_CLOSED


def _review_type(state: str | None) -> ActivityType:
    state = (state or "").lower()
    if state == "approved":
        return ActivityType.REVIEW_APPROVED
    if state == "changes_requested":
        return ActivityType.REVIEW_CHANGES_REQUESTED
    if state == "dismissed":
        return ActivityType.REVIEW_DISMISSED
    return ActivityType.REVIEW_COMMENTED


def _review_verb(activity_type: ActivityType) -> str:
    if activity_type == ActivityType.REVIEW_APPROVED:
        return "Approved"
    if activity_type == ActivityType.REVIEW_CHANGES_REQUESTED:
        return "Requested changes on"
    if activity_type == ActivityType.REVIEW_DISMISSED:
        return "Dismissed review on"
    return "Reviewed"


# ---------------------------------------------------------------------------
# REST / search shapes
# ---------------------------------------------------------------------------


def _from_commit(raw: dict[str, Any], repo: str) -> Activity | None:
    """Commit object from /repos/{o}/{r}/commits, /commits/{sha} or search."""
    sha = raw["sha"]
    commit = raw["commit"]
    message = commit.get("message") or ""
    git_author = commit.get("author") or {}
    git_committer = commit.get("committer") or {}
    date = parse_timestamp(git_author.get("date") or git_committer.get("date"))
    if date is None:
        return None

    stats = raw.get("stats") or {}
    files = raw.get("files")
    return Activity(
        id=f"{repo}:commit:{sha}",
        type=ActivityType.COMMIT,
        date=date,
        repo=repo,
        author=_login(raw.get("author")) or git_author.get("name"),
        avatar_url=_avatar(raw.get("author")),
        message=summarize(message) or "No message",
        full_message=message,
        url=raw.get("html_url"),
        sha=sha,
        short_sha=short_sha(sha),
        additions=stats.get("additions"),
        deletions=stats.get("deletions"),
        changed_files=len(files) if files is not None else None,
    )


def _from_search_commit(raw: dict[str, Any], repo: str | None) -> Activity | None:
    """Item from /search/commits; carries its own repository."""
    return _from_commit(raw, raw["repository"]["full_name"])


def _from_pull_request(raw: dict[str, Any], repo: str) -> Activity | None:
    """PR object from /repos/{o}/{r}/pulls."""
    date = parse_timestamp(raw.get("created_at"))
    if date is None:
        return None
    merged_at = raw.get("merged_at")
    head = raw.get("head") or {}
    base = raw.get("base") or {}
    return Activity(
        id=f"{repo}:pr:{raw['number']}",
        type=_pr_type(bool(merged_at), raw.get("state")),
        date=date,
        repo=repo,
        author=_login(raw.get("user")),
        avatar_url=_avatar(raw.get("user")),
        message=summarize(raw.get("title")),
        full_message=raw.get("title"),
        body=raw.get("body"),
        url=raw.get("html_url"),
        number=raw["number"],
        title=raw.get("title"),
        state="merged" if merged_at else raw.get("state"),
        branch=head.get("ref"),
        base_branch=base.get("ref"),
        merged_at=merged_at,
        draft=raw.get("draft"),
        additions=raw.get("additions"),
        deletions=raw.get("deletions"),
        changed_files=raw.get("changed_files"),
        labels=_labels(raw.get("labels")),
    )


def _from_search_issue(raw: dict[str, Any], repo: str | None) -> Activity | None:
    """Item from /search/issues; PRs share ids with the /pulls list shape."""
    repo = _repo_from_api_url(raw.get("repository_url")) or repo
    if repo is None:
        return None
    date = parse_timestamp(raw.get("created_at"))
    if date is None:
        return None

    pull_request = raw.get("pull_request")
    number = raw["number"]
    if pull_request is not None:
        merged_at = pull_request.get("merged_at")
        activity_id = f"{repo}:pr:{number}"
        activity_type = _pr_type(bool(merged_at), raw.get("state"))
        state = "merged" if merged_at else raw.get("state")
    else:
        merged_at = None
        activity_id = f"{repo}:issue:{number}"
        activity_type = (
            ActivityType.ISSUE_OPENED if raw.get("state") == "open" else ActivityType.ISSUE_CLOSED
        )
        state = raw.get("state")

    return Activity(
        id=activity_id,
        type=activity_type,
        date=date,
        repo=repo,
        author=_login(raw.get("user")),
        avatar_url=_avatar(raw.get("user")),
        message=summarize(raw.get("title")),
        full_message=raw.get("title"),
        body=raw.get("body"),
        url=raw.get("html_url"),
        number=number,
        title=raw.get("title"),
        state=state,
        merged_at=merged_at,
        draft=raw.get("draft"),
        labels=_labels(raw.get("labels")),
    )


def _from_review(
    raw: dict[str, Any], repo: str, pull_request: dict[str, Any] | None
) -> Activity | None:
    """Review from /pulls/{n}/reviews; `pull_request` is the parent PR."""
    date = parse_timestamp(raw.get("submitted_at"))
    if date is None:
        return None  # Pending reviews have no submitted_at
    pr = pull_request or {}
    number = pr.get("number") or _number_from_url(raw.get("pull_request_url"))
    activity_type = _review_type(raw.get("state"))
    title = pr.get("title")
    message = f"{_review_verb(activity_type)} PR #{number}"
    if title:
        message = f"{message}: {title}"
    return Activity(
        id=f"{repo}:review:{raw['id']}",
        type=activity_type,
        date=date,
        repo=repo,
        author=_login(raw.get("user")),
        avatar_url=_avatar(raw.get("user")),
        message=summarize(message),
        full_message=message,
        body=raw.get("body") or None,
        url=raw.get("html_url") or pr.get("html_url"),
        number=number,
        title=title,
        review_state=(raw.get("state") or "").lower() or None,
    )


def _from_issue_comment(raw: dict[str, Any], repo: str) -> Activity | None:
    """Comment from /repos/{o}/{r}/issues/comments."""
    date = parse_timestamp(raw.get("created_at"))
    if date is None:
        return None
    number = _number_from_url(raw.get("issue_url"))
    is_pr = "/pull/" in (raw.get("html_url") or "")
    kind = "PR" if is_pr else "issue"
    message = f"Commented on {kind} #{number}"
    return Activity(
        id=f"{repo}:comment:{raw['id']}",
        type=ActivityType.PR_COMMENT if is_pr else ActivityType.ISSUE_COMMENT,
        date=date,
        repo=repo,
        author=_login(raw.get("user")),
        avatar_url=_avatar(raw.get("user")),
        message=message,
        full_message=message,
        body=raw.get("body"),
        url=raw.get("html_url"),
        number=number,
    )


def _from_review_comment(raw: dict[str, Any], repo: str) -> Activity | None:
    """Inline diff comment from /repos/{o}/{r}/pulls/comments."""
    date = parse_timestamp(raw.get("created_at"))
    if date is None:
        return None
    number = _number_from_url(raw.get("pull_request_url"))
    message = f"Commented on PR #{number} review"
    return Activity(
        id=f"{repo}:review-comment:{raw['id']}",
        type=ActivityType.REVIEW_COMMENT,
        date=date,
        repo=repo,
        author=_login(raw.get("user")),
        avatar_url=_avatar(raw.get("user")),
        message=message,
        full_message=message,
        body=raw.get("body"),
        url=raw.get("html_url"),
        number=number,
        path=raw.get("path"),
        line=raw.get("line"),
    )


def _from_commit_comment(raw: dict[str, Any], repo: str) -> Activity | None:
    """Comment from /repos/{o}/{r}/comments."""
    date = parse_timestamp(raw.get("created_at"))
    if date is None:
        return None
    commit_id = raw.get("commit_id")
    message = f"Commented on commit {short_sha(commit_id)}"
    return Activity(
        id=f"{repo}:commit-comment:{raw['id']}",
        type=ActivityType.COMMIT_COMMENT,
        date=date,
        repo=repo,
        author=_login(raw.get("user")),
        avatar_url=_avatar(raw.get("user")),
        message=message,
        full_message=message,
        body=raw.get("body"),
        url=raw.get("html_url"),
        sha=commit_id,
        short_sha=short_sha(commit_id),
        path=raw.get("path"),
        line=raw.get("line"),
    )


def _from_release(raw: dict[str, Any], repo: str) -> Activity | None:
    """Release from /repos/{o}/{r}/releases."""
    date = parse_timestamp(raw.get("published_at") or raw.get("created_at"))
    if date is None:
        return None
    name = raw.get("name") or raw.get("tag_name")
    return Activity(
        id=f"{repo}:release:{raw['id']}",
        type=ActivityType.RELEASE_PUBLISHED,
        date=date,
        repo=repo,
        author=_login(raw.get("author")),
        avatar_url=_avatar(raw.get("author")),
        message=summarize(f"Released: {name}"),
        full_message=f"Released: {name}",
        body=raw.get("body"),
        url=raw.get("html_url"),
        tag_name=raw.get("tag_name"),
        title=raw.get("name"),
        draft=raw.get("draft"),
    )


# ---------------------------------------------------------------------------
# Events feed (/users/{u}/events, /repos/{o}/{r}/events)
# ---------------------------------------------------------------------------


def _push_message(commits: list[dict[str, Any]], size: int, branch: str | None) -> str:
    if commits and commits[0].get("message"):
        return summarize(commits[0]["message"])
    if size > 0:
        return f"{size} commit{'s' if size > 1 else ''} to {branch}"
    return f"Push to {branch}"


def _push_url(repo: str, branch: str | None, head: str | None, before: str | None, size: int) -> str:
    if size > 1 and before and head and before != NULL_SHA:
        return f"https://github.com/{repo}/compare/{before[:7]}...{head[:7]}"
    if head:
        return f"https://github.com/{repo}/commit/{head}"
    return f"https://github.com/{repo}/tree/{branch}"


def _from_event(raw: dict[str, Any], repo: str | None) -> Activity | None:
    """Event from the GitHub events API."""
    repo = (raw.get("repo") or {}).get("name") or repo
    if repo is None:
        return None
    date = parse_timestamp(raw.get("created_at"))
    if date is None:
        return None

    event_type = raw["type"]
    event_id = raw["id"]
    payload = raw.get("payload") or {}
    actor = raw.get("actor")

    def make(activity_id: str, activity_type: ActivityType, message: str, **fields: Any) -> Activity:
        return Activity(
            id=activity_id,
            type=activity_type,
            date=date,
            repo=repo,
            author=_login(actor),
            avatar_url=_avatar(actor),
            message=summarize(message),
            **fields,
        )

    event_key = f"{repo}:event:{event_id}"

    if event_type == "PushEvent":
        ref = payload.get("ref") or ""
        branch = ref.removeprefix("refs/heads/") or None
        raw_commits = payload.get("commits") or []
        size = payload.get("size") or len(raw_commits)
        head = payload.get("head")
        before = payload.get("before")
        return make(
            event_key,
            ActivityType.PUSH,
            _push_message(raw_commits, size, branch),
            full_message=f"{size} commits to {branch}" if size > 1 else None,
            branch=branch,
            url=_push_url(repo, branch, head, before, size),
            sha=head,
            short_sha=short_sha(head),
            commit_count=size,
            commits=[
                PushCommit(
                    sha=c["sha"],
                    short_sha=c["sha"][:SHORT_SHA_LENGTH],
                    message=c.get("message") or "",
                    author=(c.get("author") or {}).get("name")
                    or (c.get("author") or {}).get("email"),
                    url=f"https://github.com/{repo}/commit/{c['sha']}",
                )
                for c in raw_commits
            ],
        )

    if event_type == "PullRequestEvent":
        pr = payload.get("pull_request") or {}
        action = payload.get("action")
        merged = bool(pr.get("merged") or pr.get("merged_at"))
        if action == "closed":
            activity_type = ActivityType.PR_MERGED if merged else ActivityType.PR_CLOSED
        elif action == "reopened":
            activity_type = ActivityType.PR_REOPENED
        else:
            activity_type = ActivityType.PR_OPENED
        return make(
            event_key,
            activity_type,
            pr.get("title") or f"PR #{pr.get('number')}",
            full_message=pr.get("title"),
            body=pr.get("body"),
            number=pr.get("number"),
            title=pr.get("title"),
            url=pr.get("html_url"),
            state="merged" if merged else pr.get("state"),
            branch=(pr.get("head") or {}).get("ref"),
            base_branch=(pr.get("base") or {}).get("ref"),
            merged_at=pr.get("merged_at"),
            additions=pr.get("additions"),
            deletions=pr.get("deletions"),
            changed_files=pr.get("changed_files"),
            labels=_labels(pr.get("labels")),
        )

    if event_type == "PullRequestReviewEvent":
        review = payload["review"]
        pr = payload.get("pull_request") or {}
        activity_type = _review_type(review.get("state"))
        message = f"{_review_verb(activity_type)} PR #{pr.get('number')}: {pr.get('title')}"
        return make(
            f"{repo}:review:{review['id']}",
            activity_type,
            message,
            full_message=message,
            body=review.get("body") or None,
            number=pr.get("number"),
            title=pr.get("title"),
            url=review.get("html_url") or pr.get("html_url"),
            review_state=(review.get("state") or "").lower() or None,
        )

    if event_type == "PullRequestReviewCommentEvent":
        comment = payload["comment"]
        pr = payload.get("pull_request") or {}
        message = f"Commented on PR #{pr.get('number')} review"
        return make(
            f"{repo}:review-comment:{comment['id']}",
            ActivityType.REVIEW_COMMENT,
            message,
            full_message=message,
            body=comment.get("body"),
            number=pr.get("number"),
            title=pr.get("title"),
            url=comment.get("html_url"),
            path=comment.get("path"),
            line=comment.get("line"),
        )

    if event_type == "IssueCommentEvent":
        comment = payload["comment"]
        issue = payload.get("issue") or {}
        is_pr = "pull_request" in issue
        message = f"Commented on {'PR' if is_pr else 'issue'} #{issue.get('number')}: {issue.get('title')}"
        return make(
            f"{repo}:comment:{comment['id']}",
            ActivityType.PR_COMMENT if is_pr else ActivityType.ISSUE_COMMENT,
            message,
            full_message=message,
            body=comment.get("body"),
            number=issue.get("number"),
            title=issue.get("title"),
            url=comment.get("html_url"),
        )

    if event_type == "CommitCommentEvent":
        comment = payload["comment"]
        commit_id = comment.get("commit_id")
        return make(
            f"{repo}:commit-comment:{comment['id']}",
            ActivityType.COMMIT_COMMENT,
            f"Commented on commit {short_sha(commit_id)}",
            body=comment.get("body"),
            url=comment.get("html_url"),
            sha=commit_id,
            short_sha=short_sha(commit_id),
            path=comment.get("path"),
            line=comment.get("line"),
        )

    if event_type in ("CreateEvent", "DeleteEvent"):
        ref_type = payload.get("ref_type")
        ref = payload.get("ref")
        created = event_type == "CreateEvent"
        verb = "Created" if created else "Deleted"
        if ref_type == "branch":
            return make(
                event_key,
                ActivityType.BRANCH_CREATED if created else ActivityType.BRANCH_DELETED,
                f"{verb} branch: {ref}",
                branch=ref,
                url=(
                    f"https://github.com/{repo}/tree/{ref}"
                    if created
                    else f"https://github.com/{repo}/branches"
                ),
            )
        if ref_type == "tag":
            return make(
                event_key,
                ActivityType.TAG_CREATED if created else ActivityType.TAG_DELETED,
                f"{verb} tag: {ref}",
                tag_name=ref,
                url=(
                    f"https://github.com/{repo}/releases/tag/{ref}"
                    if created
                    else f"https://github.com/{repo}/tags"
                ),
            )
        return make(event_key, ActivityType.UNKNOWN, f"{verb} {ref_type or 'ref'} {ref or ''}")

    if event_type == "ReleaseEvent":
        release = payload["release"]
        name = release.get("name") or release.get("tag_name")
        return make(
            f"{repo}:release:{release['id']}",
            ActivityType.RELEASE_PUBLISHED,
            f"Released: {name}",
            full_message=f"Released: {name}",
            body=release.get("body"),
            url=release.get("html_url"),
            tag_name=release.get("tag_name"),
            title=release.get("name"),
            draft=release.get("draft"),
        )

    if event_type == "IssuesEvent":
        issue = payload.get("issue") or {}
        action = payload.get("action")
        if action == "closed":
            activity_type, verb = ActivityType.ISSUE_CLOSED, "Closed"
        elif action == "reopened":
            activity_type, verb = ActivityType.ISSUE_REOPENED, "Reopened"
        elif action == "opened":
            activity_type, verb = ActivityType.ISSUE_OPENED, "Opened"
        else:
            activity_type, verb = ActivityType.ISSUE_OPENED, "Updated"
        return make(
            event_key,
            activity_type,
            f"{verb} issue #{issue.get('number')}: {issue.get('title')}",
            body=issue.get("body"),
            number=issue.get("number"),
            title=issue.get("title"),
            url=issue.get("html_url"),
            state=issue.get("state"),
            labels=_labels(issue.get("labels")),
        )

    if event_type == "ForkEvent":
        forkee = payload.get("forkee") or {}
        return make(
            event_key,
            ActivityType.REPO_FORKED,
            f"Forked repository to {forkee.get('full_name')}",
            url=forkee.get("html_url"),
        )

    if event_type == "WatchEvent":
        return make(event_key, ActivityType.REPO_STARRED, "Starred the repository")

    if event_type == "GollumEvent":
        pages = payload.get("pages") or []
        count = len(pages)
        return make(
            event_key,
            ActivityType.REPO_WIKI,
            f"Updated {count} wiki page{'s' if count != 1 else ''}",
            url=pages[0].get("html_url") if pages else None,
        )

    if event_type == "MemberEvent":
        member = payload.get("member") or {}
        return make(
            event_key,
            ActivityType.MEMBER_ADDED,
            f"Added {member.get('login')} as a collaborator",
        )

    label = event_type.removesuffix("Event") or "Activity"
    return make(event_key, ActivityType.UNKNOWN, f"{label} in {repo}")


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_SIMPLE_MAPPERS: dict[ActivitySource, Callable[[dict[str, Any], Any], Activity | None]] = {
    ActivitySource.EVENT: _from_event,
    ActivitySource.COMMIT: _from_commit,
    ActivitySource.COMMIT_DETAIL: _from_commit,
    ActivitySource.SEARCH_COMMIT: _from_search_commit,
    ActivitySource.PULL_REQUEST: _from_pull_request,
    ActivitySource.SEARCH_ISSUE: _from_search_issue,
    ActivitySource.ISSUE_COMMENT: _from_issue_comment,
    ActivitySource.REVIEW_COMMENT: _from_review_comment,
    ActivitySource.COMMIT_COMMENT: _from_commit_comment,
    ActivitySource.RELEASE: _from_release,
}

# Shapes that do not carry their own repository
_NEEDS_REPO = {
    ActivitySource.COMMIT,
    ActivitySource.COMMIT_DETAIL,
    ActivitySource.PULL_REQUEST,
    ActivitySource.REVIEW,
    ActivitySource.ISSUE_COMMENT,
    ActivitySource.REVIEW_COMMENT,
    ActivitySource.COMMIT_COMMENT,
    ActivitySource.RELEASE,
}


def normalize(
    raw: Any,
    source: ActivitySource,
    *,
    repo: str | None = None,
    context: dict[str, Any] | None = None,
) -> Activity | None:
    """
    Map one raw GitHub payload to an Activity.

    Args:
        raw: Decoded JSON object from the API
        source: Which payload shape `raw` is
        repo: Owner-qualified repository name, required for shapes that
            don't embed it (commit lists, PR lists, comments, releases)
        context: Parent object where a shape needs one (the PR for reviews)

    Returns:
        Activity, or None when the payload is malformed or has no valid date
    """
    if not isinstance(raw, dict):
        return None
    if source in _NEEDS_REPO and not repo:
        logger.debug(f"Dropping {source.value} payload without repository context")
        return None

    try:
        if source == ActivitySource.REVIEW:
            return _from_review(raw, repo, context)  # type: ignore[arg-type]
        return _SIMPLE_MAPPERS[source](raw, repo)
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        logger.debug(f"Dropping malformed {source.value} payload: {e!r}")
        return None


def normalize_many(
    raws: Any,
    source: ActivitySource,
    *,
    repo: str | None = None,
    context: dict[str, Any] | None = None,
) -> list[Activity]:
    """Normalize a list of payloads, skipping the ones that map to None."""
    if not isinstance(raws, list):
        return []
    activities = []
    for raw in raws:
        activity = normalize(raw, source, repo=repo, context=context)
        if activity is not None:
            activities.append(activity)
    return activities
