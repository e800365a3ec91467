"""Fixed-size concurrent batches with a pause between them.

WakaTime rate-limits per client IP, so sync fans out a batch at a time
instead of all users at once. A failing item never takes its siblings down:
each batch is gathered with ``return_exceptions=True`` and failures are
reported through ``on_error``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

# WakaTime allows roughly 10 requests per second
DEFAULT_BATCH_SIZE = 9
DEFAULT_BATCH_DELAY_SECONDS = 1.0

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchOutcome(Generic[T, R]):
    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_in_batches(
    items: Sequence[T],
    handler: Callable[[T], Awaitable[R]],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
    on_error: Callable[[BaseException, T], None] | None = None,
) -> list[BatchOutcome[T, R]]:
    """Run ``handler`` over ``items`` batch by batch, in input order.

    Returns one outcome per item. Item errors are reported, never raised.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    outcomes: list[BatchOutcome[T, R]] = []
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        results = await asyncio.gather(
            *(handler(item) for item in batch),
            return_exceptions=True,
        )

        for item, result in zip(batch, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                outcomes.append(BatchOutcome(item=item, error=result))
                if on_error is not None:
                    try:
                        on_error(result, item)
                    except Exception:
                        logger.exception("Batch error callback failed for %r", item)
                else:
                    logger.error("Batch item failed: %r", item, exc_info=result)
            else:
                outcomes.append(BatchOutcome(item=item, result=result))

        if start + batch_size < len(items) and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

    return outcomes
