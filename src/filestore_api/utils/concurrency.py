"""Fixed-width admission control for bulk operations."""
import asyncio
from typing import Awaitable, Callable, Iterable, List, TypeVar, Union

T = TypeVar('T')
R = TypeVar('R')


async def run_bounded(
    func: Callable[[T], Awaitable[R]],
    items: Iterable[T],
    limit: int,
) -> List[Union[R, BaseException]]:
    """Run ``func`` over ``items`` with at most ``limit`` calls in flight.

    Results come back in input order. A call that raises contributes its
    exception to the result list instead of cancelling its siblings.

    Args:
        func: Async callable applied to each item
        items: Work items
        limit: Maximum number of concurrent calls

    Returns:
        One result or exception per item
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    semaphore = asyncio.Semaphore(limit)

    async def _admit(item: T) -> R:
        async with semaphore:
            return await func(item)

    return await asyncio.gather(*(_admit(item) for item in items), return_exceptions=True)
