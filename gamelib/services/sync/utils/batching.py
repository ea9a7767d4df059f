"""Fixed-size concurrent batches with a pause between batches.

This is the only backpressure the sync pipeline applies against rate-limited
APIs: at most batch_size calls in flight, and delay seconds of quiet between
consecutive batches (none after the last one).
"""
import asyncio
from typing import Any, Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[Any]]


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive lists of at most size elements."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    batch_size: int,
    delay: float = 0.0,
    sleep: Sleep = asyncio.sleep,
) -> List[Any]:
    """
    Run worker over items, batch_size at a time.

    Items inside a batch run concurrently; batches run one after another.
    An exception raised by one worker does not cancel its siblings: it is
    returned in that item's slot instead of a result.

    Args:
        items: Inputs, processed in order of batches
        worker: Coroutine function applied to each item
        batch_size: Maximum concurrent workers
        delay: Seconds to wait between batches
        sleep: Awaitable sleep, injectable for tests

    Returns:
        One result (or exception) per item, in input order
    """
    results: List[Any] = []
    batches = chunked(items, batch_size)

    for index, batch in enumerate(batches):
        results.extend(
            await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True)
        )
        if delay > 0 and index < len(batches) - 1:
            await sleep(delay)

    return results
