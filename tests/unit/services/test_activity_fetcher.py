"""Unit tests for the scope fetchers: batching, partial results, caching, progress.

All GitHub traffic goes through FakeGitHub; unrouted paths answer 404.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from gitpulse.config import Settings
from gitpulse.services.github.activities import GitHubActivityFetcher
from gitpulse.services.github.cache import ActivityCache
from gitpulse.services.github.constants import NULL_SHA
from gitpulse.services.github.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubRateLimitError,
)
from gitpulse.services.github.progress import Progress
from gitpulse.services.github.types import ActivityType
from tests.helpers.factories import (
    commit_json,
    event_json,
    issue_comment_json,
    pull_json,
    push_event_json,
    release_json,
    repo_json,
    review_json,
    search_commit_json,
    search_issue_json,
)
from tests.helpers.mock_factories import (
    CLIENT_PATH,
    TOKEN,
    make_fake_github,
    make_response,
    rate_limited_response,
)

SINCE = datetime(2026, 10, 1, tzinfo=UTC)


def _fetcher(cache: ActivityCache | None = None, **overrides: Any) -> GitHubActivityFetcher:
    options = {"repo_batch_size": 2, "member_batch_size": 2, "batch_delay_seconds": 0}
    options.update(overrides)
    return GitHubActivityFetcher(TOKEN, Settings(**options), cache or ActivityCache())


def _sha(n: int) -> str:
    return f"{n:040x}"


def _iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def _assert_monotonic(updates: list[Progress]) -> None:
    percentages = [u.percentage for u in updates]
    assert percentages == sorted(percentages)
    assert all(0 <= p <= 100 for p in percentages)


# ═══════════════════════════════════════════════════════════════════════════
# User scope: search strategy
# ═══════════════════════════════════════════════════════════════════════════


class TestUserActivitiesSearch:
    def _routes(self) -> dict[str, Any]:
        return {
            "/orgs/acme/repos": [repo_json("widgets"), repo_json("gadgets")],
            "/search/commits": {"total_count": 1, "items": [search_commit_json("acme/widgets")]},
            "/search/issues": {"total_count": 1, "items": [search_issue_json("acme/gadgets", 7)]},
        }

    @pytest.mark.anyio
    async def test_merges_commit_and_pr_searches(self):
        fake = make_fake_github(self._routes())
        updates: list[Progress] = []

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_user_activities(
                "acme", "alice", updates.append, since=SINCE, strategy="search"
            )

        assert [a.type for a in result.activities] == [ActivityType.COMMIT, ActivityType.PR_OPENED]
        assert [r.full_name for r in result.repos] == ["acme/widgets", "acme/gadgets"]
        assert result.stats.total_commits == 1
        assert result.stats.total_prs == 1
        assert result.failures == []
        assert result.cached is False

        commit_query = next(p for path, p in fake.calls if path == "/search/commits")["q"]
        assert commit_query == "author:alice org:acme committer-date:>=2026-10-01"

        _assert_monotonic(updates)
        assert updates[-1].percentage == 100

    @pytest.mark.anyio
    async def test_second_fetch_served_from_cache(self):
        fake = make_fake_github(self._routes())
        fetcher = _fetcher()
        updates: list[Progress] = []

        with patch(CLIENT_PATH, return_value=fake.client):
            first = await fetcher.fetch_user_activities("acme", "alice", since=SINCE)
            calls_after_first = len(fake.calls)
            second = await fetcher.fetch_user_activities(
                "ACME", "Alice", updates.append, since=SINCE
            )

        assert len(fake.calls) == calls_after_first
        assert second.cached is True
        assert [a.id for a in second.activities] == [a.id for a in first.activities]
        assert len(updates) == 1
        assert updates[0].cached is True
        assert updates[0].percentage == 100

    @pytest.mark.anyio
    async def test_stale_cache_refetches(self):
        clock = [0.0]
        cache = ActivityCache(ttl=300, timer=lambda: clock[0])
        fake = make_fake_github(self._routes())
        fetcher = _fetcher(cache)

        with patch(CLIENT_PATH, return_value=fake.client):
            await fetcher.fetch_user_activities("acme", "alice", since=SINCE)
            clock[0] += 301
            result = await fetcher.fetch_user_activities("acme", "alice", since=SINCE)

        assert result.cached is False
        assert fake.paths().count("/search/commits") == 2

    @pytest.mark.anyio
    async def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown fetch strategy"):
            await _fetcher().fetch_user_activities("acme", "alice", strategy="telepathy")


# ═══════════════════════════════════════════════════════════════════════════
# User scope: repo crawl strategy
# ═══════════════════════════════════════════════════════════════════════════


class TestUserActivitiesRepoCrawl:
    @pytest.mark.anyio
    async def test_missing_repo_contributes_nothing(self):
        fake = make_fake_github(
            {
                "/orgs/acme/repos": [repo_json("widgets"), repo_json("gadgets")],
                "/repos/acme/widgets/commits": [commit_json()],
                "/repos/acme/widgets/pulls": [pull_json(42), pull_json(43, login="bob")],
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_user_activities(
                "acme", "alice", since=SINCE, strategy="repos"
            )

        assert [a.id for a in result.activities] == [
            "acme/widgets:commit:a1b2c3d4e5f6a7b8c9d0a1b2c3d4e5f6a7b8c9d0",
            "acme/widgets:pr:42",
        ]
        assert result.failures == []
        assert len(result.repos) == 2
        assert fake.requested("/repos/acme/gadgets/commits")

        commit_params = next(p for path, p in fake.calls if path == "/repos/acme/widgets/commits")
        assert commit_params["author"] == "alice"
        assert commit_params["since"] == SINCE.isoformat()

    @pytest.mark.anyio
    async def test_rate_limit_keeps_started_group_and_skips_the_rest(self):
        routes: dict[str, Any] = {
            "/orgs/acme/repos": [repo_json(f"r{i}") for i in range(1, 6)],
        }
        for i in range(1, 6):
            routes[f"/repos/acme/r{i}/commits"] = [commit_json(sha=_sha(i))]
            routes[f"/repos/acme/r{i}/pulls"] = []
        routes["/repos/acme/r3/commits"] = rate_limited_response()
        fake = make_fake_github(routes)
        fetcher = _fetcher()

        with patch(CLIENT_PATH, return_value=fake.client):
            with pytest.raises(GitHubRateLimitError) as exc_info:
                await fetcher.fetch_user_activities("acme", "alice", since=SINCE, strategy="repos")

        partial = exc_info.value.partial
        assert partial is not None
        # r4 shares r3's group, so it was already in flight and its result is kept
        assert sorted(a.repo for a in partial.activities) == ["acme/r1", "acme/r2", "acme/r4"]
        assert len(partial.repos) == 5
        assert exc_info.value.rate_limit_reset == 1700000000
        assert fake.requested("/repos/acme/r4")
        assert not fake.requested("/repos/acme/r5")
        # Only the repository list was cached, not the partial result
        assert fetcher.cache.stats()["size"] == 1

    @pytest.mark.anyio
    async def test_failed_repo_is_reported_and_not_cached(self):
        fake = make_fake_github(
            {
                "/orgs/acme/repos": [repo_json("widgets"), repo_json("gadgets")],
                "/repos/acme/widgets/commits": [commit_json()],
                "/repos/acme/widgets/pulls": [],
                "/repos/acme/gadgets/commits": make_response(500, {"message": "boom"}),
            }
        )
        fetcher = _fetcher()

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await fetcher.fetch_user_activities(
                "acme", "alice", since=SINCE, strategy="repos"
            )

        assert len(result.activities) == 1
        assert [(f.label, f.status_code) for f in result.failures] == [("acme/gadgets", 500)]
        assert fetcher.cache.stats()["size"] == 1

    @pytest.mark.anyio
    async def test_non_json_body_fails_only_that_repo(self):
        fake = make_fake_github(
            {
                "/orgs/acme/repos": [repo_json("widgets"), repo_json("gadgets")],
                "/repos/acme/widgets/commits": [commit_json()],
                "/repos/acme/widgets/pulls": [],
                "/repos/acme/gadgets/commits": httpx.Response(200, text="<html>proxy error</html>"),
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_user_activities(
                "acme", "alice", since=SINCE, strategy="repos"
            )

        assert len(result.activities) == 1
        assert len(result.failures) == 1
        assert result.failures[0].label == "acme/gadgets"
        assert "invalid JSON" in result.failures[0].error

    @pytest.mark.anyio
    async def test_rejected_token_aborts(self):
        fake = make_fake_github(
            {
                "/orgs/acme/repos": [repo_json("widgets")],
                "/repos/acme/widgets/commits": make_response(401, {"message": "Bad credentials"}),
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            with pytest.raises(GitHubAuthError):
                await _fetcher().fetch_user_activities(
                    "acme", "alice", since=SINCE, strategy="repos"
                )

    @pytest.mark.anyio
    async def test_enumeration_failure_propagates(self):
        fake = make_fake_github()

        with patch(CLIENT_PATH, return_value=fake.client):
            with pytest.raises(GitHubAPIError, match="not found"):
                await _fetcher().fetch_user_activities("ghost", "alice", strategy="repos")

    @pytest.mark.anyio
    async def test_progress_is_monotonic_and_completes(self):
        routes: dict[str, Any] = {"/orgs/acme/repos": [repo_json(f"r{i}") for i in range(1, 6)]}
        fake = make_fake_github(routes)
        updates: list[Progress] = []

        with patch(CLIENT_PATH, return_value=fake.client):
            await _fetcher().fetch_user_activities(
                "acme", "alice", updates.append, since=SINCE, strategy="repos"
            )

        _assert_monotonic(updates)
        assert updates[-1].percentage == 100
        assert updates[-1].total == 6
        # Enumeration, then one emission per group of two repos
        assert [u.percentage for u in updates[:5]] == [0, 16, 50, 83, 100]


# ═══════════════════════════════════════════════════════════════════════════
# Repo scope
# ═══════════════════════════════════════════════════════════════════════════


def _review_event() -> dict[str, Any]:
    return event_json(
        "PullRequestReviewEvent",
        {
            "review": {"id": 555, "state": "approved"},
            "pull_request": {"number": 42, "title": "Add widget cache"},
        },
        event_id="31000000002",
        login="bob",
        created_at="2026-10-18T10:00:00Z",
    )


class TestRepoActivities:
    def _routes(self) -> dict[str, Any]:
        return {
            "/repos/acme/widgets/events": [push_event_json(), _review_event()],
            "/repos/acme/widgets/commits": [commit_json()],
            "/repos/acme/widgets/pulls": [pull_json(42)],
            "/repos/acme/widgets/issues/comments": [issue_comment_json()],
            "/repos/acme/widgets/releases": [release_json()],
            "/repos/acme/widgets/pulls/42/reviews": [review_json()],
        }

    @pytest.mark.anyio
    async def test_combines_sources_and_dedupes_reviews(self):
        fake = make_fake_github(self._routes())

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_repo_activities("acme", "widgets", since=SINCE)

        types = sorted(a.type.value for a in result.activities)
        assert types == [
            "commit",
            "pr_comment",
            "pr_opened",
            "push",
            "release_published",
            "review_approved",
        ]
        assert len({a.id for a in result.activities}) == len(result.activities)
        assert [r.full_name for r in result.repos] == ["acme/widgets"]
        assert fake.requested("/repos/acme/widgets/pulls/42/reviews")

    @pytest.mark.anyio
    async def test_events_win_over_listed_commits_and_prs(self):
        pr_event = event_json(
            "PullRequestEvent",
            {"action": "opened", "pull_request": {"number": 42, "title": "Add widget cache"}},
            event_id="1",
        )
        fake = make_fake_github(
            {
                "/repos/acme/widgets/events": [pr_event, push_event_json(event_id="2")],
                "/repos/acme/widgets/commits": [commit_json(sha="2" * 40)],
                "/repos/acme/widgets/pulls": [pull_json(42)],
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_repo_activities("acme", "widgets", since=SINCE)

        prs = [(a.id, a.type) for a in result.activities if a.number == 42]
        assert prs == [("acme/widgets:event:1", ActivityType.PR_OPENED)]
        assert ActivityType.COMMIT not in {a.type for a in result.activities}
        assert result.stats.total_prs == 1
        assert result.stats.total_commits == 1
        [alice] = result.stats.actors
        assert (alice.commits, alice.prs) == (1, 1)

    @pytest.mark.anyio
    async def test_push_outside_window_does_not_hide_commit(self):
        old_push = push_event_json(event_id="2", created_at="2026-09-01T12:00:00Z")
        fake = make_fake_github(
            {
                "/repos/acme/widgets/events": [old_push],
                "/repos/acme/widgets/commits": [commit_json(sha="2" * 40)],
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_repo_activities("acme", "widgets", since=SINCE)

        assert [a.type for a in result.activities] == [ActivityType.COMMIT]

    @pytest.mark.anyio
    async def test_empty_repository_is_not_a_failure(self):
        routes = self._routes()
        routes["/repos/acme/widgets/commits"] = make_response(
            409, {"message": "Git Repository is empty."}
        )
        fake = make_fake_github(routes)

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_repo_activities("acme", "widgets", since=SINCE)

        assert result.failures == []
        assert ActivityType.COMMIT not in {a.type for a in result.activities}

    @pytest.mark.anyio
    async def test_review_rate_limit_keeps_source_results(self):
        routes = self._routes()
        routes["/repos/acme/widgets/pulls/42/reviews"] = rate_limited_response()
        fake = make_fake_github(routes)

        with patch(CLIENT_PATH, return_value=fake.client):
            with pytest.raises(GitHubRateLimitError) as exc_info:
                await _fetcher().fetch_repo_activities("acme", "widgets", since=SINCE)

        partial = exc_info.value.partial
        assert partial is not None
        assert len(partial.activities) == 6  # the review still arrives via the events feed

    @pytest.mark.anyio
    async def test_review_stage_is_limited_to_recent_prs(self):
        routes = self._routes()
        routes["/repos/acme/widgets/pulls"] = [pull_json(n) for n in (45, 44, 43, 42)]
        fake = make_fake_github(routes)

        with patch(CLIENT_PATH, return_value=fake.client):
            await _fetcher(review_pr_limit=2).fetch_repo_activities("acme", "widgets", since=SINCE)

        review_paths = [p for p in fake.paths() if p.endswith("/reviews")]
        assert review_paths == [
            "/repos/acme/widgets/pulls/45/reviews",
            "/repos/acme/widgets/pulls/44/reviews",
        ]


# ═══════════════════════════════════════════════════════════════════════════
# Team scopes
# ═══════════════════════════════════════════════════════════════════════════


class TestTeamRepoActivities:
    @pytest.mark.anyio
    async def test_keeps_only_the_recent_window(self):
        now = datetime.now(UTC)
        recent = _iso(now - timedelta(hours=1))
        old = _iso(now - timedelta(hours=48))
        fake = make_fake_github(
            {
                "/repos/acme/widgets/events": [
                    event_json("WatchEvent", event_id="1", created_at=recent),
                    event_json("WatchEvent", event_id="2", created_at=old),
                ],
                "/repos/acme/gadgets/events": [
                    event_json("WatchEvent", event_id="3", repo="acme/gadgets", created_at=recent),
                ],
            }
        )
        fetcher = _fetcher()

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await fetcher.fetch_team_repo_activities_last_24_hours(
                "acme", ["widgets", "acme/gadgets"]
            )
            again = await fetcher.fetch_team_repo_activities_last_24_hours(
                "acme", ["acme/gadgets", "ACME/widgets"]
            )

        assert sorted(a.id for a in result.activities) == [
            "acme/gadgets:event:3",
            "acme/widgets:event:1",
        ]
        assert again.cached is True

    @pytest.mark.anyio
    async def test_stops_paging_past_the_window(self):
        now = datetime.now(UTC)
        next_url = "https://api.github.com/repos/acme/widgets/events/page2"
        fake = make_fake_github(
            {
                "/repos/acme/widgets/events": make_response(
                    200,
                    [event_json("WatchEvent", created_at=_iso(now - timedelta(hours=30)))],
                    {"Link": f'<{next_url}>; rel="next"'},
                ),
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_team_repo_activities_last_24_hours("acme", ["widgets"])

        assert result.activities == []
        assert not fake.requested("/events/page2")


class TestTeamMemberActivities:
    @pytest.mark.anyio
    async def test_one_search_unit_per_member(self):
        def commits(params: dict[str, Any]) -> httpx.Response:
            login = params["q"].split()[0].removeprefix("author:")
            sha = _sha(1 if login == "alice" else 2)
            item = search_commit_json("acme/widgets", sha=sha, login=login)
            return make_response(200, {"total_count": 1, "items": [item]})

        fake = make_fake_github(
            {"/search/commits": commits, "/search/issues": {"total_count": 0, "items": []}}
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_team_member_activities(
                "acme", ["alice", "bob"], since=SINCE
            )

        assert sorted(a.author for a in result.activities) == ["alice", "bob"]
        assert [r.full_name for r in result.repos] == ["acme/widgets"]
        assert [a.login for a in result.stats.actors] == ["alice", "bob"]


class TestFileHistory:
    HISTORY = "/repos/acme/widgets/commits"

    @pytest.mark.anyio
    async def test_commits_touching_the_file_on_a_branch(self):
        fake = make_fake_github(
            {
                self.HISTORY: [
                    commit_json(sha=_sha(2), date="2026-10-18T09:30:00Z"),
                    commit_json(sha=_sha(1), date="2026-10-10T09:30:00Z", login="bob"),
                ]
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_file_commits("acme", "widgets", "src/App.py", "dev")

        assert [a.id for a in result.activities] == [
            f"acme/widgets:commit:{_sha(2)}",
            f"acme/widgets:commit:{_sha(1)}",
        ]
        assert {a.type for a in result.activities} == {ActivityType.COMMIT}
        params = fake.calls[0][1]
        assert params["path"] == "src/App.py"
        assert params["sha"] == "dev"
        assert [r.full_name for r in result.repos] == ["acme/widgets"]

    @pytest.mark.anyio
    async def test_default_branch_sends_no_sha(self):
        fake = make_fake_github({self.HISTORY: [commit_json()]})

        with patch(CLIENT_PATH, return_value=fake.client):
            await _fetcher().fetch_file_commits("acme", "widgets", "README.md")

        assert "sha" not in fake.calls[0][1]

    @pytest.mark.anyio
    async def test_missing_path_is_empty_history(self):
        fake = make_fake_github()

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_file_commits("acme", "widgets", "nope.txt", "main")

        assert result.activities == []
        assert result.failures == []

    @pytest.mark.anyio
    async def test_stops_at_page_ceiling(self):
        next_url = "https://api.github.com/repos/acme/widgets/commits?page=next"
        served: list[int] = []

        def page(params: dict[str, Any]) -> httpx.Response:
            served.append(len(served) + 1)
            return make_response(
                200, [commit_json(sha=_sha(len(served)))], {"Link": f'<{next_url}>; rel="next"'}
            )

        fake = make_fake_github({self.HISTORY: page})

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher(max_file_history_pages=2).fetch_file_commits(
                "acme", "widgets", "src/app.py"
            )

        assert served == [1, 2]
        assert len(result.activities) == 2

    @pytest.mark.anyio
    async def test_paths_differing_in_case_are_cached_apart(self):
        fake = make_fake_github({self.HISTORY: [commit_json()]})
        fetcher = _fetcher()

        with patch(CLIENT_PATH, return_value=fake.client):
            await fetcher.fetch_file_commits("acme", "widgets", "README.md")
            lower = await fetcher.fetch_file_commits("acme", "widgets", "readme.md")
            again = await fetcher.fetch_file_commits("ACME", "widgets", "README.md")

        assert lower.cached is False
        assert again.cached is True
        assert len(fake.calls) == 2


# ═══════════════════════════════════════════════════════════════════════════
# User events
# ═══════════════════════════════════════════════════════════════════════════


class TestUserEvents:
    def _sparse_feed(self) -> list[dict[str, Any]]:
        return [
            event_json("WatchEvent", event_id="1"),
            event_json("WatchEvent", event_id="2", repo="other/thing"),
        ]

    @pytest.mark.anyio
    async def test_sparse_feed_merges_public_events(self):
        fake = make_fake_github(
            {
                "/users/alice/events": self._sparse_feed(),
                "/users/alice/events/public": [
                    event_json("WatchEvent", event_id="1"),
                    push_event_json(event_id="3", repo="acme/gadgets"),
                ],
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_user_events("alice", "acme")

        assert sorted(a.id for a in result.activities) == [
            "acme/gadgets:event:3",
            "acme/widgets:event:1",
        ]
        assert [r.full_name for r in result.repos] == ["acme/gadgets", "acme/widgets"]

    @pytest.mark.anyio
    async def test_without_org_keeps_every_repo(self):
        fake = make_fake_github({"/users/alice/events": self._sparse_feed()})

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_user_events("alice")

        assert len(result.activities) == 2

    @pytest.mark.anyio
    async def test_full_feed_skips_public_fallback(self):
        feed = [event_json("WatchEvent", event_id=str(i)) for i in range(10)]
        fake = make_fake_github({"/users/alice/events": feed})

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_user_events("alice", "acme")

        assert len(result.activities) == 10
        assert not fake.requested("/events/public")

    @pytest.mark.anyio
    async def test_fallback_rate_limit_keeps_primary_feed(self):
        fake = make_fake_github(
            {
                "/users/alice/events": self._sparse_feed(),
                "/users/alice/events/public": rate_limited_response(),
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            with pytest.raises(GitHubRateLimitError) as exc_info:
                await _fetcher().fetch_user_events("alice", "acme")

        assert [a.id for a in exc_info.value.partial.activities] == ["acme/widgets:event:1"]

    @pytest.mark.anyio
    async def test_fallback_failure_is_reported(self):
        fake = make_fake_github(
            {
                "/users/alice/events": self._sparse_feed(),
                "/users/alice/events/public": make_response(503, {"message": "unavailable"}),
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _fetcher().fetch_user_events("alice")

        assert [f.label for f in result.failures] == ["alice public events"]
        assert len(result.activities) == 2


# ═══════════════════════════════════════════════════════════════════════════
# Enrichment
# ═══════════════════════════════════════════════════════════════════════════


class TestCommitEnrichment:
    @pytest.mark.anyio
    async def test_commit_details(self):
        sha = _sha(7)
        fake = make_fake_github(
            {
                f"/repos/acme/widgets/commits/{sha}": commit_json(
                    sha=sha, stats={"additions": 12, "deletions": 3}, files=[{}, {}]
                )
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            activity = await _fetcher().fetch_commit_details("acme", "widgets", sha)

        assert activity is not None
        assert activity.additions == 12
        assert activity.changed_files == 2

    @pytest.mark.anyio
    async def test_missing_commit(self):
        fake = make_fake_github()

        with patch(CLIENT_PATH, return_value=fake.client):
            assert await _fetcher().fetch_commit_details("acme", "widgets", "dead") is None

    @pytest.mark.anyio
    async def test_branch_creating_push_returns_head_only(self):
        head = _sha(9)
        fake = make_fake_github({f"/repos/acme/widgets/commits/{head}": commit_json(sha=head)})

        with patch(CLIENT_PATH, return_value=fake.client):
            commits = await _fetcher().fetch_push_commits("acme", "widgets", NULL_SHA, head)

        assert [c.sha for c in commits] == [head]
        assert not fake.requested("/compare/")

    @pytest.mark.anyio
    async def test_push_commits_from_compare(self):
        before, after = _sha(1), _sha(3)
        fake = make_fake_github(
            {
                f"/repos/acme/widgets/compare/{before}...{after}": {
                    "commits": [commit_json(sha=_sha(2)), commit_json(sha=after)]
                }
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            commits = await _fetcher().fetch_push_commits("acme", "widgets", before, after)

        assert [c.sha for c in commits] == [_sha(2), after]
