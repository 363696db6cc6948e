"""
Research Limiter

Bounds how many research workflows run at once and spaces out their starts,
so topic processing stays under the provider's rate limits.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Awaitable
from app.services.logger import logger


class ResearchLimiter:
    """Semaphore for concurrency plus a minimum interval between acquisitions"""

    def __init__(
        self,
        max_concurrency: int = 1,
        min_interval_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if max_concurrency < 1:
            raise ValueError('max_concurrency must be at least 1')
        self.max_concurrency = max_concurrency
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._spacing_lock = asyncio.Lock()
        self._last_start = None
        self._clock = clock
        self._sleep = sleep
        self.active = 0

    async def _wait_for_slot_spacing(self):
        async with self._spacing_lock:
            if self._last_start is not None and self.min_interval_seconds:
                wait = self.min_interval_seconds - (self._clock() - self._last_start)
                if wait > 0:
                    logger.debug(f'Research limiter spacing start by {wait:.2f}s')
                    await self._sleep(wait)
            self._last_start = self._clock()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """
        Hold one workflow slot for the duration of the block
        """
        async with self._semaphore:
            await self._wait_for_slot_spacing()
            self.active += 1
            try:
                yield
            finally:
                self.active -= 1
