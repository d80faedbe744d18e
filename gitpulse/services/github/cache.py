"""
TTL caching for aggregated GitHub activity.

Provides an in-memory, time-boxed store keyed by fetch scope. A fresh entry
short-circuits the fetch entirely; an entry older than the freshness window
(5 minutes by default) is treated exactly like a miss.

Writes replace the whole value and values are deep-copied in both directions,
so concurrent fetches for the same key resolve to one complete snapshot
(last write wins) and callers can never mutate what the cache holds.
"""

import copy
import hashlib
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

from gitpulse.config import settings

logger = logging.getLogger(__name__)


class ScopeKind(str, Enum):
    """What a cached value was fetched for."""

    USER = "user"
    REPO = "repo"
    TEAM_REPOS = "team_repos"
    TEAM_MEMBERS = "team_members"
    USER_EVENTS = "user_events"
    ORG_REPOS = "org_repos"
    FILE_HISTORY = "file_history"


@dataclass(frozen=True)
class ActivityCacheKey:
    """
    Structured cache key.

    Two keys are equal only when every component matches, so a user login
    can never collide with a repo name or a team signature.

    Attributes:
        scope: Scope kind
        org: Organization login (empty for org-less scopes)
        parameter: User login, repo name, or repo/member set signature
        window: Lookback qualifier ("365d", "24h"), empty when not windowed
        viewer: Token fingerprint; results depend on what the token can see
    """

    scope: ScopeKind
    org: str
    parameter: str
    window: str = ""
    viewer: str = ""

    def __str__(self) -> str:
        parts = [self.scope.value, self.org, self.parameter]
        if self.window:
            parts.append(self.window)
        return ":".join(parts)


@dataclass
class CacheEntry:
    """A cached value together with when it was stored (cache timer units)."""

    key: ActivityCacheKey
    value: Any
    stored_at: float


def token_fingerprint(token: str) -> str:
    """Short, non-reversible identifier for a token, used to scope cache keys."""
    return hashlib.sha256(token.encode()).hexdigest()[:12]


def repo_set_signature(names: Iterable[str]) -> str:
    """
    Stable key parameter for a set of repos or members.

    Order- and case-insensitive: ["B", "a"] and ["a", "b"] share a signature.
    """
    normalized = sorted({name.lower() for name in names})
    digest = hashlib.md5(",".join(normalized).encode()).hexdigest()
    return f"{len(normalized)}-{digest[:12]}"


class ActivityCache:
    """Freshness-windowed activity cache backed by cachetools.TTLCache."""

    def __init__(
        self,
        ttl: float = 300,
        maxsize: int = 256,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._timer = timer
        self._cache: TTLCache[ActivityCacheKey, CacheEntry] = TTLCache(
            maxsize=maxsize, ttl=ttl, timer=timer
        )

    def entry(self, key: ActivityCacheKey) -> CacheEntry | None:
        """Return the fresh entry for `key` (value copied), or None."""
        stored = self._cache.get(key)
        if stored is None:
            logger.debug(f"Cache MISS: {key}")
            return None
        logger.debug(f"Cache HIT: {key}")
        return CacheEntry(key=key, value=copy.deepcopy(stored.value), stored_at=stored.stored_at)

    def get(self, key: ActivityCacheKey) -> Any | None:
        """Return the fresh value for `key`, or None on miss or staleness."""
        cached = self.entry(key)
        return cached.value if cached is not None else None

    def set(self, key: ActivityCacheKey, value: Any) -> None:
        """Store a snapshot of `value`, replacing any previous entry."""
        self._cache[key] = CacheEntry(
            key=key, value=copy.deepcopy(value), stored_at=self._timer()
        )
        logger.debug(f"Cache SET: {key}")

    def invalidate(self, key: ActivityCacheKey) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all entries. Useful for testing or an explicit reload."""
        self._cache.clear()
        logger.debug("Cleared activity cache")

    def stats(self) -> dict[str, float]:
        """Current cache statistics for monitoring."""
        return {"size": len(self._cache), "maxsize": self._cache.maxsize, "ttl": self.ttl}


activity_cache = ActivityCache(ttl=settings.cache_ttl_seconds, maxsize=settings.cache_maxsize)
