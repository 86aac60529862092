"""Outbound rate ceiling for provider calls.

A sliding one-second window: at most `max_per_second` acquisitions start in
any window. Callers beyond the ceiling wait for the oldest slot to expire;
nothing is ever dropped.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable


class RateLimiter:
    """Async sliding-window limiter.

    `clock` and `sleep` are injectable so tests can run without real delays.
    """

    def __init__(
        self,
        max_per_second: int,
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_per_second < 1:
            raise ValueError("max_per_second must be >= 1")
        self._max = max_per_second
        self._window = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._stamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    @property
    def in_window(self) -> int:
        self._evict(self._clock())
        return len(self._stamps)

    def _evict(self, now: float) -> None:
        while self._stamps and now - self._stamps[0] >= self._window:
            self._stamps.popleft()

    async def acquire(self) -> float:
        """Wait for a free slot and claim it. Returns the seconds spent waiting."""
        waited = 0.0
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._stamps) < self._max:
                    self._stamps.append(now)
                    return waited
                delay = self._window - (now - self._stamps[0])
                waited += delay
                await self._sleep(delay)

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None
