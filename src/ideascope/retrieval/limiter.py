"""Async rate limiter — request spacing plus an in-flight cap.

Used by the content fetcher, the search providers and the completion client.
Each ``async with limiter:`` block waits for a concurrency slot, then for its
turn in a schedule that spaces request starts ``60 / rate_per_minute`` seconds
apart.
"""

from __future__ import annotations

import asyncio
import time
from types import TracebackType


class AsyncRateLimiter:
    """Bound both the start rate and the concurrency of async operations.

    Args:
        rate_per_minute: Maximum operation starts per minute (``<= 0`` disables spacing).
        max_concurrent: Maximum operations in flight at once.

    Example:
        >>> limiter = AsyncRateLimiter(rate_per_minute=20, max_concurrent=3)
        >>> async with limiter:
        ...     response = await client.get(url)
    """

    def __init__(self, rate_per_minute: float, max_concurrent: int = 1) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.rate_per_minute = rate_per_minute
        self.max_concurrent = max_concurrent
        self.min_interval = 60.0 / rate_per_minute if rate_per_minute > 0 else 0.0
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._lock = asyncio.Lock()
        self._next_start = 0.0

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        try:
            await self._wait_turn()
        except BaseException:
            self._semaphore.release()
            raise

    def release(self) -> None:
        self._semaphore.release()

    async def _wait_turn(self) -> None:
        if self.min_interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            start = max(now, self._next_start)
            self._next_start = start + self.min_interval
        delay = start - now
        if delay > 0:
            await asyncio.sleep(delay)

    async def __aenter__(self) -> AsyncRateLimiter:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
