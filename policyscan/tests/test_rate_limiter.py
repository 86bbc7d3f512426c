"""Tests for the sliding-window rate limiter."""

import asyncio

import pytest

from policyscan.services.rate_limiter import SlidingWindowRateLimiter
from policyscan.utils.logging_config import metrics


@pytest.fixture
def limiter(clock):
    return SlidingWindowRateLimiter(
        max_requests=2,
        window_seconds=60,
        clock=clock.time,
        sleep=clock.sleep,
    )


class TestWaitIfNeeded:
    """Tests for blocking behaviour."""

    async def test_under_limit_does_not_sleep(self, limiter, clock):
        """Calls within the budget go straight through."""
        assert await limiter.wait_if_needed() == 0.0
        assert await limiter.wait_if_needed() == 0.0
        assert clock.sleeps == []

    async def test_third_call_sleeps_until_window_frees(self, limiter, clock):
        """With 2 per 60s, a third call 10s in waits the remaining 50s."""
        await limiter.wait_if_needed()
        clock.advance(10)
        await limiter.wait_if_needed()

        waited = await limiter.wait_if_needed()

        assert waited == pytest.approx(50.0)
        assert clock.sleeps == [pytest.approx(50.0)]
        assert metrics.get_counter("rate_limiter.waits") == 1

    async def test_old_entries_expire(self, limiter, clock):
        """After a full window, the budget is available again."""
        await limiter.wait_if_needed()
        await limiter.wait_if_needed()
        clock.advance(60)
        assert await limiter.wait_if_needed() == 0.0

    async def test_frozen_clock_does_not_spin(self):
        """A clock that never moves still lets the waiter through."""
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        limiter = SlidingWindowRateLimiter(
            max_requests=1, window_seconds=5, clock=lambda: 100.0, sleep=fake_sleep
        )
        await limiter.wait_if_needed()
        await limiter.wait_if_needed()
        assert sleeps == [5.0]

    async def test_concurrent_waiters_serialised(self, limiter, clock):
        """Concurrent callers never exceed the budget within one window."""
        await asyncio.gather(*(limiter.wait_if_needed() for _ in range(4)))
        # two calls at t=0, one full-window wait, two calls at t=60
        assert clock.sleeps == [pytest.approx(60.0)]
        assert limiter.get_stats()["current_requests"] == 2


class TestStats:
    """Tests for reporting and reset."""

    async def test_get_stats(self, limiter):
        """Stats reflect window occupancy."""
        await limiter.wait_if_needed()
        stats = limiter.get_stats()
        assert stats["max_requests"] == 2
        assert stats["window_seconds"] == 60
        assert stats["current_requests"] == 1
        assert stats["remaining"] == 1

    async def test_get_retry_after(self, limiter, clock):
        """Retry-after is the time until the oldest call leaves the window."""
        assert limiter.get_retry_after() == 0.0
        await limiter.wait_if_needed()
        clock.advance(15)
        await limiter.wait_if_needed()
        assert limiter.get_retry_after() == pytest.approx(45.0)

    async def test_reset(self, limiter):
        """Reset clears all recorded calls."""
        await limiter.wait_if_needed()
        limiter.reset()
        assert limiter.get_stats()["current_requests"] == 0
