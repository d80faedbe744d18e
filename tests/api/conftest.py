"""API test fixtures: in-process ASGI clients with and without a bearer token.

GitHub itself is faked per test by patching the shared HTTP client
(see tests.helpers.mock_factories).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from gitpulse.main import app
from tests.helpers.mock_factories import TOKEN


@pytest.fixture
async def api_client() -> AsyncIterator[AsyncClient]:
    """Client that sends the caller's GitHub token on every request."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {TOKEN}"},
    ) as client:
        yield client


@pytest.fixture
async def anon_client() -> AsyncIterator[AsyncClient]:
    """Client without an Authorization header."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
