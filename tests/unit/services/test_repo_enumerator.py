"""Unit tests for organization, token and team lookups."""

from __future__ import annotations

import base64
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from gitpulse.config import Settings
from gitpulse.services.github.cache import ActivityCache
from gitpulse.services.github.exceptions import GitHubAPIError
from gitpulse.services.github.repos import GitHubOrgOperations
from tests.helpers.factories import repo_json
from tests.helpers.mock_factories import (
    CLIENT_PATH,
    TOKEN,
    make_fake_github,
    make_response,
    rate_limited_response,
)

NEXT_PAGE = "https://api.github.com/orgs/acme/repos?page=2"


def _ops(token: str = TOKEN, cache: ActivityCache | None = None, **overrides: Any):
    return GitHubOrgOperations(token, Settings(**overrides), cache or ActivityCache())


def _two_pages(second: httpx.Response | None = None):
    """First request (with query params) links to a second page."""

    def route(params: dict[str, Any]) -> httpx.Response:
        if params:
            return make_response(
                200,
                [repo_json("widgets"), repo_json("gadgets")],
                {"Link": f'<{NEXT_PAGE}>; rel="next"'},
            )
        return second or make_response(200, [repo_json("gizmos")])

    return route


# ═══════════════════════════════════════════════════════════════════════════
# Repository enumeration
# ═══════════════════════════════════════════════════════════════════════════


class TestListOrgRepos:
    @pytest.mark.anyio
    async def test_follows_pagination(self):
        fake = make_fake_github({"/orgs/acme/repos": _two_pages()})

        with patch(CLIENT_PATH, return_value=fake.client):
            repos = await _ops().list_org_repos("acme")

        assert [r.full_name for r in repos] == ["acme/widgets", "acme/gadgets", "acme/gizmos"]
        assert fake.calls[0][1]["type"] == "all"
        assert fake.calls[0][1]["sort"] == "pushed"
        assert fake.calls[1][1] == {}

    @pytest.mark.anyio
    async def test_respects_page_ceiling(self):
        fake = make_fake_github({"/orgs/acme/repos": _two_pages()})

        with patch(CLIENT_PATH, return_value=fake.client):
            repos = await _ops(max_repo_pages=1).list_org_repos("acme")

        assert len(repos) == 2
        assert len(fake.calls) == 1

    @pytest.mark.anyio
    async def test_missing_org_raises_not_found(self):
        fake = make_fake_github()

        with patch(CLIENT_PATH, return_value=fake.client):
            with pytest.raises(GitHubAPIError, match="Organization 'ghost' not found") as exc_info:
                await _ops().list_org_repos("ghost")

        assert exc_info.value.status_code == 404

    @pytest.mark.anyio
    async def test_later_page_failure_fails_whole_enumeration(self):
        fake = make_fake_github(
            {"/orgs/acme/repos": _two_pages(make_response(502, {"message": "Bad Gateway"}))}
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            with pytest.raises(GitHubAPIError) as exc_info:
                await _ops().list_org_repos("acme")

        assert exc_info.value.status_code == 502

    @pytest.mark.anyio
    async def test_normalizes_repo_fields(self):
        fake = make_fake_github({"/orgs/acme/repos": [repo_json(default_branch=None)]})

        with patch(CLIENT_PATH, return_value=fake.client):
            [repo] = await _ops().list_org_repos("acme")

        assert repo.name == "widgets"
        assert repo.language == "Python"
        assert repo.stargazers_count == 7
        assert repo.url == "https://github.com/acme/widgets"
        assert repo.default_branch == "main"


class TestRepoListCaching:
    @pytest.mark.anyio
    async def test_second_call_is_served_from_cache(self):
        fake = make_fake_github({"/orgs/acme/repos": [repo_json()]})
        ops = _ops()

        with patch(CLIENT_PATH, return_value=fake.client):
            await ops.list_org_repos("acme")
            again = await ops.list_org_repos("ACME")

        assert len(again) == 1
        assert len(fake.calls) == 1

    @pytest.mark.anyio
    async def test_refresh_bypasses_cache(self):
        fake = make_fake_github({"/orgs/acme/repos": [repo_json()]})
        ops = _ops()

        with patch(CLIENT_PATH, return_value=fake.client):
            await ops.list_org_repos("acme")
            await ops.list_org_repos("acme", refresh=True)

        assert len(fake.calls) == 2

    @pytest.mark.anyio
    async def test_tokens_do_not_share_snapshots(self):
        fake = make_fake_github({"/orgs/acme/repos": [repo_json()]})
        cache = ActivityCache()

        with patch(CLIENT_PATH, return_value=fake.client):
            await _ops("token-a", cache).list_org_repos("acme")
            await _ops("token-b", cache).list_org_repos("acme")

        assert len(fake.calls) == 2


# ═══════════════════════════════════════════════════════════════════════════
# Token and orgs
# ═══════════════════════════════════════════════════════════════════════════


class TestValidateToken:
    @pytest.mark.anyio
    async def test_valid_token(self):
        fake = make_fake_github(
            {"/user": {"login": "alice", "name": "Alice", "avatar_url": "https://a/1", "id": 1}}
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _ops().validate_token()

        assert result.valid is True
        assert result.user == {"login": "alice", "name": "Alice", "avatar_url": "https://a/1"}
        assert result.error is None

    @pytest.mark.anyio
    async def test_rejected_token(self):
        fake = make_fake_github({"/user": make_response(401, {"message": "Bad credentials"})})

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _ops().validate_token()

        assert result.valid is False
        assert "Invalid or expired" in (result.error or "")

    @pytest.mark.anyio
    async def test_rate_limited_token_reports_reason(self):
        fake = make_fake_github({"/user": rate_limited_response()})

        with patch(CLIENT_PATH, return_value=fake.client):
            result = await _ops().validate_token()

        assert result.valid is False
        assert "rate limit" in (result.error or "")


class TestUserOrgs:
    @pytest.mark.anyio
    async def test_lists_orgs(self):
        fake = make_fake_github(
            {"/user/orgs": [{"login": "acme", "avatar_url": "https://a/acme", "description": None}]}
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            orgs = await _ops().fetch_user_orgs()

        assert [o.login for o in orgs] == ["acme"]


# ═══════════════════════════════════════════════════════════════════════════
# Teams
# ═══════════════════════════════════════════════════════════════════════════


def _team(slug: str, org: str = "acme") -> dict[str, Any]:
    return {
        "id": sum(map(ord, slug)),
        "name": slug.title(),
        "slug": slug,
        "privacy": "closed",
        "organization": {"login": org},
    }


class TestTeams:
    @pytest.mark.anyio
    async def test_user_teams_filtered_to_org(self):
        fake = make_fake_github({"/user/teams": [_team("platform"), _team("web", org="other")]})

        with patch(CLIENT_PATH, return_value=fake.client):
            teams = await _ops().list_user_teams("ACME")

        assert [t.slug for t in teams] == ["platform"]
        assert not fake.requested("/orgs/acme/teams")

    @pytest.mark.anyio
    async def test_falls_back_to_org_teams(self):
        fake = make_fake_github(
            {"/user/teams": [], "/orgs/acme/teams": [_team("platform"), _team("data")]}
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            teams = await _ops().list_user_teams("acme")

        assert [t.slug for t in teams] == ["platform", "data"]

    @pytest.mark.anyio
    async def test_missing_team_is_none(self):
        fake = make_fake_github()

        with patch(CLIENT_PATH, return_value=fake.client):
            assert await _ops().get_team("acme", "ghosts") is None

    @pytest.mark.anyio
    async def test_members_and_repos(self):
        fake = make_fake_github(
            {
                "/orgs/acme/teams/platform/members": [
                    {"login": "alice", "id": 1, "html_url": "https://github.com/alice", "type": "User"}
                ],
                "/orgs/acme/teams/platform/repos": [repo_json("widgets")],
            }
        )

        with patch(CLIENT_PATH, return_value=fake.client):
            members = await _ops().list_team_members("acme", "platform")
            repos = await _ops().list_team_repos("acme", "platform")

        assert members[0].login == "alice"
        assert members[0].url == "https://github.com/alice"
        assert [r.full_name for r in repos] == ["acme/widgets"]


# ═══════════════════════════════════════════════════════════════════════════
# Repository contents
# ═══════════════════════════════════════════════════════════════════════════

CONTENTS = "/repos/acme/widgets/contents/src/app.py"


def _file_json(text: str = "print('hi')\n", **overrides: Any) -> dict[str, Any]:
    data = {
        "type": "file",
        "path": "src/app.py",
        "sha": "f" * 40,
        "size": len(text.encode()),
        "encoding": "base64",
        "content": base64.b64encode(text.encode()).decode(),
    }
    data.update(overrides)
    return data


class TestBranchExists:
    @pytest.mark.anyio
    async def test_existing_branch(self):
        fake = make_fake_github({"/repos/acme/widgets/branches/main": {"name": "main"}})

        with patch(CLIENT_PATH, return_value=fake.client):
            assert await _ops().branch_exists("acme", "widgets", "main") is True

    @pytest.mark.anyio
    async def test_missing_branch_is_false(self):
        fake = make_fake_github()

        with patch(CLIENT_PATH, return_value=fake.client):
            assert await _ops().branch_exists("acme", "widgets", "gone") is False

    @pytest.mark.anyio
    async def test_server_error_propagates(self):
        fake = make_fake_github({"/repos/acme/widgets/branches/main": make_response(500)})

        with patch(CLIENT_PATH, return_value=fake.client):
            with pytest.raises(GitHubAPIError):
                await _ops().branch_exists("acme", "widgets", "main")


class TestFileAtCommit:
    @pytest.mark.anyio
    async def test_decodes_content_at_ref(self):
        fake = make_fake_github({CONTENTS: _file_json("line one\nline two\n")})

        with patch(CLIENT_PATH, return_value=fake.client):
            file = await _ops().fetch_file_at_commit("acme", "widgets", "src/app.py", "abc123")

        assert file is not None
        assert file.content == "line one\nline two\n"
        assert file.ref == "abc123"
        assert file.sha == "f" * 40
        assert fake.calls[0] == (CONTENTS, {"ref": "abc123"})

    @pytest.mark.anyio
    async def test_absent_at_ref_is_none(self):
        fake = make_fake_github()

        with patch(CLIENT_PATH, return_value=fake.client):
            assert await _ops().fetch_file_at_commit("acme", "widgets", "src/app.py", "abc") is None

    @pytest.mark.anyio
    async def test_directory_is_none(self):
        fake = make_fake_github({CONTENTS: [_file_json(path="src/app.py/x")]})

        with patch(CLIENT_PATH, return_value=fake.client):
            assert await _ops().fetch_file_at_commit("acme", "widgets", "src/app.py", "abc") is None

    @pytest.mark.anyio
    async def test_symlink_is_none(self):
        fake = make_fake_github({CONTENTS: _file_json(type="symlink")})

        with patch(CLIENT_PATH, return_value=fake.client):
            assert await _ops().fetch_file_at_commit("acme", "widgets", "src/app.py", "abc") is None

    @pytest.mark.anyio
    async def test_oversized_file_is_none(self):
        fake = make_fake_github({CONTENTS: _file_json("x" * 20)})

        with patch(CLIENT_PATH, return_value=fake.client):
            file = await _ops(max_file_bytes=10).fetch_file_at_commit(
                "acme", "widgets", "src/app.py", "abc"
            )

        assert file is None

    @pytest.mark.anyio
    async def test_binary_content_is_none(self):
        binary = base64.b64encode(b"\xff\xfe\x00\x01").decode()
        fake = make_fake_github({CONTENTS: _file_json(content=binary, size=4)})

        with patch(CLIENT_PATH, return_value=fake.client):
            assert await _ops().fetch_file_at_commit("acme", "widgets", "src/app.py", "abc") is None
