from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

_T = TypeVar("_T")
_R = TypeVar("_R")


async def run_bounded(
    items: Sequence[_T],
    worker: Callable[[int, _T], Awaitable[_R]],
    limit: int,
    delay: float = 0,
) -> list[_R]:
    """Run ``worker(index, item)`` for every item, at most ``limit`` at a time.

    ``index`` is 1-based submission order. Results come back in submission
    order whatever the completion order. A positive ``delay`` (seconds) is slept
    by the slot after each job, before it takes the next one.
    """
    semaphore = asyncio.Semaphore(max(limit, 1))

    async def slot(index: int, item: _T) -> _R:
        async with semaphore:
            result = await worker(index, item)
            if delay > 0:
                await asyncio.sleep(delay)
            return result

    return list(await asyncio.gather(*(slot(i, item) for i, item in enumerate(items, 1))))
