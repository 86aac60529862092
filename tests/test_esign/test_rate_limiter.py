"""Tests for the outbound sliding-window rate limiter."""

from __future__ import annotations

import asyncio

import pytest

from contract_esign.esign.rate_limiter import RateLimiter

from conftest import FakeClock


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(max_per_second=3, clock=clock, sleep=clock.sleep)


class TestRateLimiter:
    def test_rejects_zero_ceiling(self) -> None:
        with pytest.raises(ValueError, match="max_per_second"):
            RateLimiter(max_per_second=0)

    @pytest.mark.asyncio
    async def test_under_ceiling_does_not_wait(self, limiter: RateLimiter) -> None:
        waits = [await limiter.acquire() for _ in range(3)]
        assert waits == [0.0, 0.0, 0.0]
        assert limiter.in_window == 3

    @pytest.mark.asyncio
    async def test_over_ceiling_waits_for_oldest_slot(self, limiter: RateLimiter, clock: FakeClock) -> None:
        start = clock()
        for _ in range(3):
            await limiter.acquire()
        waited = await limiter.acquire()
        assert waited == pytest.approx(1.0)
        assert clock() - start == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_no_window_exceeds_ceiling(self, limiter: RateLimiter, clock: FakeClock) -> None:
        stamps = []
        for _ in range(10):
            await limiter.acquire()
            stamps.append(clock())
            clock.advance(0.1)

        for i, t in enumerate(stamps):
            in_window = [s for s in stamps[i:] if s - t < 1.0]
            assert len(in_window) <= 3

    @pytest.mark.asyncio
    async def test_slots_free_after_window(self, limiter: RateLimiter, clock: FakeClock) -> None:
        for _ in range(3):
            await limiter.acquire()
        clock.advance(1.0)
        assert limiter.in_window == 0
        assert await limiter.acquire() == 0.0

    @pytest.mark.asyncio
    async def test_concurrent_callers_all_proceed(self, limiter: RateLimiter, clock: FakeClock) -> None:
        start = clock()
        waits = await asyncio.gather(*(limiter.acquire() for _ in range(7)))
        assert waits == pytest.approx([0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 1.0])
        assert clock() - start == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_context_manager(self, limiter: RateLimiter) -> None:
        async with limiter as held:
            assert held is limiter
        assert limiter.in_window == 1
