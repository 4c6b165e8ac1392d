"""Async utilities for running blocking file I/O off the event loop."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Every filesystem call in the engine goes through here, so each one is
    a suspension point for the caller.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        raw = await run_sync(path.read_text, encoding="utf-8")
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
    limit: int | None = None,
) -> list[T]:
    """Run coroutines concurrently, at most *limit* at a time.

    The semaphore is created per call, so concurrent callers never share
    state.  Returns results in input order.  Exceptions propagate from the
    first failure.

    Args:
        coros: Sequence of coroutines to run concurrently.
        limit: Maximum number running at once; ``None`` means unbounded.

    Returns:
        List of results in the same order as input coroutines.
    """
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    if limit is None or limit >= len(coros):
        return list(await asyncio.gather(*coros))

    semaphore = asyncio.Semaphore(limit)

    async def _bounded(coro: Coroutine[Any, Any, T]) -> T:
        async with semaphore:
            return await coro

    logger.debug(
        "Running %d coroutines with concurrency limit %d",
        len(coros),
        limit,
    )
    return list(await asyncio.gather(*(_bounded(c) for c in coros)))
