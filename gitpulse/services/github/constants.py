"""Constants for GitHub service."""

DEFAULT_ACCEPT = "application/vnd.github+json"

# `before` sha of a push that created the branch
NULL_SHA = "0" * 40

# Caller-facing one-line summaries are capped at this length
SUMMARY_MAX_LENGTH = 100

SHORT_SHA_LENGTH = 7

# Below this many events, user event fetches also consult the public feed
MIN_USER_EVENTS = 10

# Inactive after this many days without activity
INACTIVE_AFTER_DAYS = 182

# Display labels per activity type value. Types missing here render with
# DEFAULT_ACTIVITY_LABEL.
ACTIVITY_LABELS: dict[str, str] = {
    "commit": "Commit",
    "push": "Push",
    "pr_opened": "PR Opened",
    "pr_closed": "PR Closed",
    "pr_merged": "PR Merged",
    "pr_reopened": "PR Reopened",
    "review_approved": "Approved",
    "review_changes_requested": "Changes Requested",
    "review_commented": "Reviewed",
    "review_dismissed": "Review Dismissed",
    "pr_comment": "PR Comment",
    "issue_comment": "Issue Comment",
    "commit_comment": "Commit Comment",
    "review_comment": "Review Comment",
    "branch_created": "Branch Created",
    "branch_deleted": "Branch Deleted",
    "tag_created": "Tag Created",
    "tag_deleted": "Tag Deleted",
    "release_published": "Release",
    "issue_opened": "Issue Opened",
    "issue_closed": "Issue Closed",
    "issue_reopened": "Issue Reopened",
    "repo_forked": "Forked",
    "repo_starred": "Starred",
    "repo_wiki": "Wiki",
    "member_added": "Member Added",
}

DEFAULT_ACTIVITY_LABEL = "Activity"
