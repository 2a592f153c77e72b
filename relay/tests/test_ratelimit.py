"""Tests for the fixed-interval RateLimiter.

Contract:
  - construction rejects non-positive / non-integer rates with ConfigError
  - min_interval is 60 / requests_per_minute seconds
  - the first wait() never delays
  - N sequential waits span at least (N - 1) * min_interval
  - concurrent waiters get consecutive slots in arrival order
  - the lock is not held while a caller sleeps

Clock and sleep are injected — no test waits on real timers except one
short sanity check against time.monotonic.
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock

import pytest

from relay.config import ConfigError
from relay.core.ratelimit import RateLimiter


class FakeClock:
    """Monotonic clock that only moves when the limiter sleeps."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ── Construction ──────────────────────────────────────────────────────────────


class TestConstruction:
    def test_min_interval_from_rpm(self):
        assert RateLimiter(8).min_interval == pytest.approx(7.5)

    def test_sixty_rpm_is_one_second(self):
        assert RateLimiter(60).min_interval == pytest.approx(1.0)

    @pytest.mark.parametrize("rpm", [0, -1, -60])
    def test_non_positive_rate_rejected(self, rpm):
        with pytest.raises(ConfigError):
            RateLimiter(rpm)

    @pytest.mark.parametrize("rpm", [2.5, "8", None, True])
    def test_non_integer_rate_rejected(self, rpm):
        with pytest.raises(ConfigError):
            RateLimiter(rpm)

    def test_unused_limiter_has_no_last_call(self):
        assert RateLimiter(8).last_call is None


# ── Sequential waits ──────────────────────────────────────────────────────────


class TestSequentialWaits:
    async def test_first_wait_does_not_sleep(self):
        clock = FakeClock()
        limiter = RateLimiter(8, clock=clock, sleep=clock.sleep)

        delay = await limiter.wait()

        assert delay == 0.0
        assert clock.sleeps == []
        assert limiter.last_call == 1000.0

    async def test_second_wait_sleeps_full_interval(self):
        clock = FakeClock()
        limiter = RateLimiter(8, clock=clock, sleep=clock.sleep)

        await limiter.wait()
        delay = await limiter.wait()

        assert delay == pytest.approx(7.5)
        assert clock.sleeps == [pytest.approx(7.5)]

    @pytest.mark.parametrize(("rpm", "n"), [(8, 5), (60, 10), (1, 3), (600, 2)])
    async def test_n_waits_span_at_least_n_minus_one_intervals(self, rpm, n):
        clock = FakeClock()
        limiter = RateLimiter(rpm, clock=clock, sleep=clock.sleep)

        start = clock.now
        for _ in range(n):
            await limiter.wait()

        elapsed = clock.now - start
        assert elapsed >= (n - 1) * 60 / rpm - 1e-9
        # And no slower than necessary.
        assert elapsed == pytest.approx((n - 1) * 60 / rpm)

    async def test_elapsed_time_counts_toward_interval(self):
        """If enough time has passed since the last call, no sleep is needed."""
        clock = FakeClock()
        limiter = RateLimiter(8, clock=clock, sleep=clock.sleep)

        await limiter.wait()
        clock.now += 5.0
        delay = await limiter.wait()

        assert delay == pytest.approx(2.5)

    async def test_no_sleep_after_long_idle(self):
        clock = FakeClock()
        limiter = RateLimiter(8, clock=clock, sleep=clock.sleep)

        await limiter.wait()
        clock.now += 60.0
        delay = await limiter.wait()

        assert delay == 0.0
        assert clock.sleeps == []

    async def test_real_clock_spacing(self):
        """Sanity check with the real monotonic clock and asyncio.sleep."""
        limiter = RateLimiter(1200)  # 50 ms interval

        start = time.monotonic()
        for _ in range(3):
            await limiter.wait()
        elapsed = time.monotonic() - start

        assert elapsed >= 2 * 0.05 - 0.005


# ── Concurrent waits ──────────────────────────────────────────────────────────


class TestConcurrentWaits:
    async def test_concurrent_waiters_get_consecutive_slots(self):
        """Three callers arriving together are spaced 0, 1, 2 intervals out."""
        sleep = AsyncMock()
        limiter = RateLimiter(8, clock=lambda: 500.0, sleep=sleep)

        delays = await asyncio.gather(limiter.wait(), limiter.wait(), limiter.wait())

        assert sorted(delays) == [0.0, pytest.approx(7.5), pytest.approx(15.0)]
        assert limiter.last_call == pytest.approx(515.0)

    async def test_waiters_served_in_arrival_order(self):
        sleep = AsyncMock()
        limiter = RateLimiter(60, clock=lambda: 0.0, sleep=sleep)

        delays = await asyncio.gather(*(limiter.wait() for _ in range(4)))

        assert delays == [0.0, pytest.approx(1.0), pytest.approx(2.0), pytest.approx(3.0)]

    async def test_lock_not_held_while_sleeping(self):
        """A sleeping caller must not block others from reserving their slot."""
        release = asyncio.Event()

        async def blocking_sleep(_seconds: float) -> None:
            await release.wait()

        limiter = RateLimiter(60, clock=lambda: 0.0, sleep=blocking_sleep)

        await limiter.wait()  # slot 0, no sleep
        second = asyncio.create_task(limiter.wait())  # slot 1, sleeps on the event
        await asyncio.sleep(0)
        third = asyncio.create_task(limiter.wait())  # must still reserve slot 2
        await asyncio.sleep(0)

        assert limiter.last_call == pytest.approx(2.0)
        assert not second.done()

        release.set()
        assert await second == pytest.approx(1.0)
        assert await third == pytest.approx(2.0)
