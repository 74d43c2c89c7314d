"""
Bounded concurrency for embedding and search fan-out.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from .errors import RetrievalTimeoutError

logger = logging.getLogger("groundwork.common.worker_pool")

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """
    Runs coroutines with at most ``concurrency`` in flight.

    Usage:
        pool = WorkerPool(6)
        vectors = await pool.map(embed_file, files)
    """

    def __init__(self, concurrency: int):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._concurrency = concurrency
        self._semaphore = asyncio.Semaphore(concurrency)
        self.active = 0

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn()`` once a slot is free."""
        async with self._semaphore:
            self.active += 1
            try:
                return await fn()
            finally:
                self.active -= 1

    async def map(
        self,
        fn: Callable[[T], Awaitable[R]],
        items: Iterable[T],
        return_exceptions: bool = False,
    ) -> List[R]:
        """
        Apply ``fn`` to every item concurrently and join on all.

        Results keep input order. Without ``return_exceptions`` the first
        failure cancels the remaining tasks and propagates.
        """
        return await join_all(
            [self.run(lambda item=item: fn(item)) for item in items],
            return_exceptions=return_exceptions,
        )


async def join_all(aws: Iterable[Awaitable[T]], return_exceptions: bool = False) -> List[T]:
    """
    Run awaitables concurrently and wait for all of them.

    With ``return_exceptions`` every outcome is returned in order. Otherwise
    the first failure cancels the rest before propagating.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if return_exceptions:
        return await asyncio.gather(*tasks, return_exceptions=True)
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def with_deadline(awaitable: Awaitable[T], timeout: Optional[float], what: str = "request") -> T:
    """
    Await ``awaitable`` under a deadline of ``timeout`` seconds.

    Raises:
        RetrievalTimeoutError: the deadline expired; nothing partial is returned
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error("%s exceeded deadline of %.1fs", what, timeout)
        raise RetrievalTimeoutError(f"{what} exceeded deadline of {timeout}s") from e
