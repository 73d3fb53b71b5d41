"""Inter-job rate limiting.

The executor calls throttle() before each external call. The limiter
only spaces calls out; it never rejects them.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 2.0


class RateLimiter(ABC):
    """Abstract rate limiting capability."""

    @abstractmethod
    async def throttle(self, key: Optional[str] = None) -> None:
        """Wait until the next call is allowed.

        Args:
            key: Optional partition key (e.g. platform type)
        """

    def reset(self) -> None:
        """Forget previous calls, so the next one does not wait."""


class FixedIntervalRateLimiter(RateLimiter):
    """Enforces a minimum interval between consecutive throttle() returns.

    The first call never waits. Clock and sleep are injectable so tests
    can run without real delays.

    Example:
        limiter = FixedIntervalRateLimiter(min_interval=2.0)
        for unit in batch:
            await limiter.throttle()
            await executor.execute(unit)
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None
        self._lock = asyncio.Lock()

    async def throttle(self, key: Optional[str] = None) -> None:
        async with self._lock:
            if self._last is not None:
                wait = self.min_interval - (self._clock() - self._last)
                if wait > 0:
                    logger.debug(f"Throttling for {wait:.2f}s")
                    await self._sleep(wait)
            self._last = self._clock()

    def reset(self) -> None:
        """Forget the last call, so the next one does not wait."""
        self._last = None


class PerPlatformRateLimiter(RateLimiter):
    """One fixed-interval gate per key, used when platforms run in parallel."""

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._gates: Dict[str, FixedIntervalRateLimiter] = {}

    def gate(self, key: str) -> FixedIntervalRateLimiter:
        """Get (creating if needed) the gate for a key."""
        if key not in self._gates:
            self._gates[key] = FixedIntervalRateLimiter(
                self.min_interval, clock=self._clock, sleep=self._sleep
            )
        return self._gates[key]

    async def throttle(self, key: Optional[str] = None) -> None:
        await self.gate(key or "").throttle()

    def reset(self) -> None:
        for gate in self._gates.values():
            gate.reset()
