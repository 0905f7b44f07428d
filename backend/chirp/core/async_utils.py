"""
Helpers for running delivery work concurrently without losing errors.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, List, Optional, TypeVar

T = TypeVar("T")


async def gather_with_errors(
    *coros: Awaitable[T],
    return_exceptions: bool = True,
) -> List[T | BaseException]:
    """
    Run coroutines concurrently and return their results even when some fail.

    Args:
        *coros: Coroutines to run
        return_exceptions: If True, exceptions are returned in place of results

    Returns:
        Results (or exceptions) in the order the coroutines were given
    """
    results = await asyncio.gather(*coros, return_exceptions=return_exceptions)
    return list(results)


async def with_timeout(coro: Awaitable[T], timeout: Optional[float]) -> T:
    """Await ``coro``, raising ``asyncio.TimeoutError`` after ``timeout`` seconds."""
    if timeout is None:
        return await coro
    return await asyncio.wait_for(coro, timeout=timeout)
