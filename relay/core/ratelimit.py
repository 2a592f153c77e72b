"""Fixed-interval rate limiter for outbound generation calls.

Every question — from the chat adapter or the agent network — ends in one
call to the generation API, and the provider enforces a requests-per-minute
quota. The limiter spaces permitted calls at least ``60 / rpm`` seconds apart.

Design decisions:
  - Slot reservation, not lock-and-sleep. A caller takes the lock only long
    enough to claim the next free slot and advance the shared timestamp, then
    sleeps outside the lock. Waiters queued on the lock are served in arrival
    order (asyncio.Lock is FIFO), so each gets a later slot and none starves.
  - One instance per process, passed explicitly to the dispatcher. No globals.
  - Clock and sleep are injectable so tests can check spacing without waiting.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

import logfire

from relay.config import ConfigError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE: float = 60.0


class RateLimiter:
    """Spaces permitted calls at least ``min_interval`` seconds apart.

    Args:
        requests_per_minute: Positive integer budget.
        clock: Monotonic time source in seconds. Defaults to time.monotonic.
        sleep: Coroutine function used to suspend. Defaults to asyncio.sleep.

    Raises:
        ConfigError: If requests_per_minute is not a positive integer.
    """

    def __init__(
        self,
        requests_per_minute: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if (
            isinstance(requests_per_minute, bool)
            or not isinstance(requests_per_minute, int)
            or requests_per_minute <= 0
        ):
            raise ConfigError(
                f"requests_per_minute must be a positive integer, got {requests_per_minute!r}"
            )
        self.requests_per_minute = requests_per_minute
        self.min_interval: float = SECONDS_PER_MINUTE / requests_per_minute
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    @property
    def last_call(self) -> float | None:
        """Clock reading of the most recently granted slot, or None if unused."""
        return self._last_call

    async def wait(self) -> float:
        """Suspend until the caller may proceed, then record the call.

        Returns:
            The number of seconds the caller was delayed (0.0 if none).
        """
        async with self._lock:
            now = self._clock()
            slot = now
            if self._last_call is not None:
                slot = max(now, self._last_call + self.min_interval)
            self._last_call = slot

        delay = slot - now
        if delay > 0:
            with logfire.span("ratelimit.wait", delay_seconds=round(delay, 3)):
                logger.debug("Rate limited — waiting %.2fs", delay)
                await self._sleep(delay)
        return max(delay, 0.0)
