"""Root conftest: test infrastructure for all GitPulse tests.

Provides:
- anyio backend pinned to asyncio
- Autouse reset of the process-wide activity cache
- Autouse reset of the shared GitHub HTTP client singleton
"""

from __future__ import annotations

import pytest

from gitpulse.services.github import http_client
from gitpulse.services.github.cache import activity_cache


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_activity_cache():
    """Every test starts and ends with an empty activity cache."""
    activity_cache.clear()
    yield
    activity_cache.clear()


@pytest.fixture(autouse=True)
def _reset_http_client():
    """Drop any client singleton a test created so the next test builds its own."""
    yield
    http_client._client = None
