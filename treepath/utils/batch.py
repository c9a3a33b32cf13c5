"""Bounded-concurrency batch execution.

Cascades issue one store update per affected node. The updates are
independent of each other, so they run through a small worker pool: at most
``max_concurrency`` are in flight, every item is attempted even when some
fail, and failures are reported together at the end.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Result of a batch operation."""

    total: int
    successful: int
    failures: list[tuple[Any, Exception]] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def failed(self) -> int:
        """Number of items whose worker raised."""
        return len(self.failures)

    @property
    def ok(self) -> bool:
        """True when every item succeeded."""
        return not self.failures


T = TypeVar("T")


async def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[Any]],
    *,
    max_concurrency: int = 5,
    key: Callable[[T], Any] | None = None,
) -> BatchResult:
    """Run ``worker`` over ``items`` with at most ``max_concurrency`` in flight.

    Args:
        items: Work items.
        worker: Coroutine function applied to each item.
        max_concurrency: Maximum concurrent workers.
        key: Maps an item to the identifier reported on failure
            (defaults to the item itself).

    Returns:
        BatchResult listing every ``(key, exception)`` failure.

    Example:
        result = await run_bounded(rewrites, apply_rewrite, max_concurrency=5, key=lambda r: r.node_id)
        if not result.ok:
            raise CascadeRewriteError("reparent", result.failures)
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    start_time = time.perf_counter()
    semaphore = asyncio.Semaphore(max_concurrency)
    work = list(items)
    label = key or (lambda item: item)

    async def run_one(item: T) -> tuple[Any, Exception] | None:
        async with semaphore:
            try:
                await worker(item)
            except Exception as e:
                logger.warning(
                    "Batch item failed",
                    extra={"item": str(label(item)), "error": str(e)},
                )
                return (label(item), e)
            return None

    outcomes = await asyncio.gather(*(run_one(item) for item in work))
    failures = [outcome for outcome in outcomes if outcome is not None]

    return BatchResult(
        total=len(work),
        successful=len(work) - len(failures),
        failures=failures,
        duration_seconds=time.perf_counter() - start_time,
    )
