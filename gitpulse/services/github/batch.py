"""
Bounded-concurrency batch runner for GitHub fetch units.

Items run in fixed-size groups; each group is awaited fully with
asyncio.gather before the next one starts, so at most `concurrency`
requests are in flight against GitHub at any time.

Per-unit outcomes:
- success: value kept, in item order
- GitHubAPIError / httpx.HTTPError: recorded as a BatchFailure, siblings continue
- GitHubRateLimitError: abort signal set; units not yet started are skipped,
  later groups never start, completed units are kept
- GitHubAuthError: abort signal set and re-raised once the group settles
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx

from gitpulse.services.github.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubRateLimitError,
)
from gitpulse.services.github.progress import ProgressCallback, ProgressTracker
from gitpulse.services.github.types import BatchFailure

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")
T = TypeVar("T")


@dataclass
class UnitResult(Generic[T]):
    """Outcome of one unit: a value, a failure, or skipped."""

    item: Any
    label: str
    value: T | None = None
    failure: BatchFailure | None = None
    skipped: bool = False
    rate_limited: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None and not self.skipped


@dataclass
class BatchResult(Generic[T]):
    """Envelope of a whole batch run."""

    results: list[T] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    rate_limit: GitHubRateLimitError | None = None
    units: list[UnitResult[T]] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.rate_limit is not None


async def run_batched(
    items: Sequence[ItemT],
    worker: Callable[[ItemT], Awaitable[T]],
    concurrency: int,
    on_progress: ProgressCallback | None = None,
    *,
    describe: Callable[[ItemT], str] | None = None,
    delay: float = 0.0,
    tracker: ProgressTracker | None = None,
) -> BatchResult[T]:
    """
    Run `worker` over `items` in groups of `concurrency`.

    Args:
        items: Units of work (repos, members, PRs)
        worker: Coroutine function fetching one unit
        concurrency: Group size; values below 1 are treated as 1
        on_progress: Progress listener, used when no tracker is given
        describe: Human label for an item (defaults to str(item))
        delay: Seconds to pause between groups
        tracker: Shared tracker when the batch is one stage of a larger fetch

    Returns:
        BatchResult with values in item order

    Raises:
        GitHubAuthError: A unit's token was rejected
    """
    label_of = describe or str
    size = max(concurrency, 1)
    if tracker is None:
        tracker = ProgressTracker(len(items), on_progress)

    abort = asyncio.Event()
    batch: BatchResult[T] = BatchResult()
    auth_error: GitHubAuthError | None = None

    async def run_unit(item: ItemT) -> UnitResult[T]:
        nonlocal auth_error
        label = label_of(item)
        if abort.is_set():
            return UnitResult(item=item, label=label, skipped=True)
        try:
            return UnitResult(item=item, label=label, value=await worker(item))
        except GitHubRateLimitError as e:
            if batch.rate_limit is None:
                batch.rate_limit = e
            abort.set()
            return UnitResult(
                item=item,
                label=label,
                failure=BatchFailure(label=label, error=e.message, status_code=e.status_code),
                rate_limited=True,
            )
        except GitHubAuthError as e:
            if auth_error is None:
                auth_error = e
            abort.set()
            return UnitResult(
                item=item,
                label=label,
                failure=BatchFailure(label=label, error=e.message, status_code=e.status_code),
            )
        except GitHubAPIError as e:
            logger.warning(f"Batch unit failed ({label}): {e.message}")
            return UnitResult(
                item=item,
                label=label,
                failure=BatchFailure(label=label, error=e.message, status_code=e.status_code),
            )
        except httpx.HTTPError as e:
            logger.warning(f"Batch unit failed ({label}): {e!r}")
            return UnitResult(
                item=item,
                label=label,
                failure=BatchFailure(label=label, error=str(e) or e.__class__.__name__),
            )

    groups = [items[i : i + size] for i in range(0, len(items), size)]
    for index, group in enumerate(groups):
        if abort.is_set():
            for item in group:
                label = label_of(item)
                batch.units.append(UnitResult(item=item, label=label, skipped=True))
            continue

        outcomes = await asyncio.gather(*(run_unit(item) for item in group))
        batch.units.extend(outcomes)

        if auth_error is not None:
            raise auth_error

        completed = sum(1 for unit in outcomes if not unit.skipped)
        if completed:
            tracker.advance(completed, status=f"Fetched {label_of(group[-1])}")

        if not abort.is_set() and delay > 0 and index < len(groups) - 1:
            await asyncio.sleep(delay)

    for unit in batch.units:
        if unit.skipped:
            batch.skipped.append(unit.label)
        elif unit.failure is not None:
            if not unit.rate_limited:
                batch.failures.append(unit.failure)
        else:
            batch.results.append(unit.value)  # type: ignore[arg-type]

    if batch.rate_limit is not None:
        logger.warning(
            f"Rate limit hit: aborted batch after {len(batch.results)} unit(s), "
            f"skipped {len(batch.skipped)}"
        )
    return batch
