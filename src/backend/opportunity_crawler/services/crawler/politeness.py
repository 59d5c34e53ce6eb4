"""
Per-host politeness: a minimum-interval rate limiter and a penalty backoff.

Both clocks are plain state objects owned by one PolitenessController, which
in turn is owned by one FetchClient. Nothing here is module-level, so every
crawl run (and every test) gets isolated host state.
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable

from opportunity_crawler.core.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class HostRateLimiter:
    """Guarantees request starts to one host are at least min_delay_ms apart."""

    def __init__(self, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep):
        self._clock = clock
        self._sleep = sleep
        self._next_allowed_at: dict[str, float] = {}

    async def wait(self, host: str, min_delay_ms: int) -> None:
        now = self._clock()
        # Reserve the slot before suspending so concurrent callers queue up behind it
        slot = max(now, self._next_allowed_at.get(host, 0.0))
        self._next_allowed_at[host] = slot + max(0, min_delay_ms) / 1000
        delay = slot - now
        if delay > 0:
            await self._sleep(delay)


class HostBackoff:
    """
    Penalty clock per host.

    penalize() grows the remaining penalty multiplicatively and adds base_ms,
    clamped to [base_ms, max_ms]. wait() sleeps out whatever penalty is left.
    """

    def __init__(
        self,
        base_ms: int = 1_500,
        max_ms: int = 60_000,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.base_ms = base_ms
        self.max_ms = max_ms
        self._clock = clock
        self._sleep = sleep
        self._penalty_until: dict[str, float] = {}

    def remaining_ms(self, host: str) -> int:
        """Milliseconds of penalty left for the host (0 when none)."""
        until = self._penalty_until.get(host, 0.0)
        return max(0, math.ceil((until - self._clock()) * 1000))

    async def wait(self, host: str) -> None:
        delay = self._penalty_until.get(host, 0.0) - self._clock()
        if delay > 0:
            await self._sleep(delay)

    def penalize(self, host: str, factor: float) -> int:
        """Extend the host's penalty; returns the new penalty length in ms."""
        now = self._clock()
        remaining_ms = max(0.0, (self._penalty_until.get(host, 0.0) - now) * 1000)
        next_ms = min(self.max_ms, max(self.base_ms, math.floor(remaining_ms * factor + self.base_ms)))
        self._penalty_until[host] = now + next_ms / 1000
        logger.info("Host penalized", host=host, factor=factor, penalty_ms=next_ms)
        return next_ms


class PolitenessController:
    """Gates every outbound request: backoff wait first, then rate-limit wait."""

    def __init__(
        self,
        backoff_base_ms: int = 1_500,
        backoff_max_ms: int = 60_000,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.rate_limiter = HostRateLimiter(clock=clock, sleep=sleep)
        self.backoff = HostBackoff(backoff_base_ms, backoff_max_ms, clock=clock, sleep=sleep)

    async def acquire(self, host: str, min_delay_ms: int) -> None:
        await self.backoff.wait(host)
        await self.rate_limiter.wait(host, min_delay_ms)

    def penalize(self, host: str, factor: float) -> int:
        return self.backoff.penalize(host, factor)
