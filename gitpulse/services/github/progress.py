"""
Progress reporting for long-running activity fetches.

A fetch reports Progress values to a listener. The listener is either a plain
callable or a ProgressChannel, which turns the emissions into an async
iterator that a consumer (e.g. a streaming HTTP response) can drain while the
fetch runs:

    handle = start_fetch(lambda on_progress: fetcher.fetch_user_activities(
        org, username, on_progress
    ))
    async for progress in handle.progress:
        ...
    result = await handle.result()

Consumers must not assume a terminal 100% emission: a fetch that raises
closes the channel without one.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Progress:
    """Snapshot of how far a fetch has come."""

    processed: int
    total: int
    percentage: int  # 0..100, non-decreasing within one fetch
    status: str
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


ProgressCallback = Callable[[Progress], None]


class ProgressTracker:
    """
    Counts processed units and emits clamped, monotonic Progress values.

    Args:
        total: Number of units the fetch expects to process
        listener: Receives every emission; None disables reporting
    """

    def __init__(self, total: int, listener: ProgressCallback | None = None) -> None:
        self.total = max(total, 0)
        self.processed = 0
        self._listener = listener
        self._last_percentage = 0

    def _percentage(self) -> int:
        if self.total == 0:
            return 0
        return int(self.processed * 100 / self.total)

    def _emit(self, percentage: int, status: str, cached: bool = False) -> Progress:
        percentage = min(100, max(0, percentage, self._last_percentage))
        self._last_percentage = percentage
        progress = Progress(
            processed=min(self.processed, self.total) if self.total else self.processed,
            total=self.total,
            percentage=percentage,
            status=status,
            cached=cached,
        )
        if self._listener is not None:
            self._listener(progress)
        return progress

    def report(self, status: str) -> Progress:
        """Emit the current position with a new status message."""
        return self._emit(self._percentage(), status)

    def advance(self, count: int = 1, status: str = "") -> Progress:
        """Mark `count` more units processed and emit."""
        self.processed += max(count, 0)
        return self._emit(self._percentage(), status)

    def add_units(self, count: int) -> None:
        """Grow the expected total once it is known (e.g. after repo enumeration)."""
        self.total += max(count, 0)

    def complete(self, status: str = "Done") -> Progress:
        self.processed = self.total
        return self._emit(100, status)

    def cached(self, status: str = "Loaded from cache") -> Progress:
        self.processed = self.total
        return self._emit(100, status, cached=True)


class ProgressChannel:
    """
    asyncio.Queue-backed stream of Progress values.

    Instances are callable, so a channel can be passed anywhere a
    ProgressCallback is accepted. The producer closes the channel; iteration
    ends once every published value has been consumed.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, progress: Progress) -> None:
        if self._closed:
            logger.debug("Dropping progress published after channel close")
            return
        self._queue.put_nowait(progress)

    __call__ = publish

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> "ProgressChannel":
        return self

    async def __anext__(self) -> Progress:
        item = await self._queue.get()
        if item is self._CLOSED:
            # Keep the sentinel so repeated iteration also terminates
            self._queue.put_nowait(item)
            raise StopAsyncIteration
        progress: Progress = item
        return progress


@dataclass
class FetchHandle(Generic[T]):
    """A running fetch: its progress stream plus the task producing the result."""

    progress: ProgressChannel
    task: "asyncio.Task[T]"

    async def result(self) -> T:
        return await self.task

    def cancel(self) -> None:
        """Cancel the underlying fetch. Units already in flight are abandoned."""
        self.task.cancel()


def start_fetch(fetch: Callable[[ProgressCallback], Awaitable[T]]) -> FetchHandle[T]:
    """
    Run `fetch` as a task, wiring its progress reports into a channel.

    Must be called from a running event loop. The channel closes when the
    fetch finishes, whether it returns or raises.
    """
    channel = ProgressChannel()

    async def run() -> T:
        try:
            return await fetch(channel)
        finally:
            channel.close()

    task = asyncio.create_task(run())
    return FetchHandle(progress=channel, task=task)
