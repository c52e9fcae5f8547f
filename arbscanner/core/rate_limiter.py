from typing import Any, Awaitable, Callable, Dict, Optional
import asyncio
import logging
import time
from dataclasses import dataclass

from .exceptions import Throttled

@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff applied to throttled calls."""
    base_delay: float = 1.0
    max_delay: float = 10.0
    max_retries: int = 3

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

class RateLimiter:
    """Reservoir limiter guarding the outbound calls of one venue.

    Calls run one at a time (``max_concurrent``), start at least ``min_time``
    seconds apart, and draw from a reservoir of ``reservoir`` calls that is
    refilled completely every ``refresh_interval`` seconds. When the reservoir
    is empty, callers wait for the next refill instead of being rejected.
    """

    def __init__(
        self,
        name: str,
        max_concurrent: int = 1,
        min_time: float = 1.0,
        reservoir: int = 60,
        refresh_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.name = name
        self.min_time = min_time
        self.capacity = reservoir
        self.refresh_interval = refresh_interval
        self.logger = logging.getLogger(__name__)
        self._clock = clock
        self._sleep = sleep
        self._slots = asyncio.Semaphore(max_concurrent)
        self._reservoir = reservoir
        self._last_refresh = clock()
        self._last_start: Optional[float] = None

        # Stats
        self.stats = {
            "scheduled": 0,
            "completed": 0,
            "failed": 0,
            "throttle_retries": 0,
            "reservoir_waits": 0
        }

    @property
    def reservoir(self) -> int:
        self._refill()
        return self._reservoir

    def _refill(self):
        now = self._clock()
        elapsed = now - self._last_refresh
        if elapsed >= self.refresh_interval:
            # Refill fully, keeping the refresh grid aligned
            periods = int(elapsed // self.refresh_interval)
            self._last_refresh += periods * self.refresh_interval
            self._reservoir = self.capacity

    async def _acquire(self):
        """Wait for reservoir and spacing; caller holds a concurrency slot."""
        while True:
            self._refill()
            if self._reservoir > 0:
                break
            self.stats["reservoir_waits"] += 1
            wait = self._last_refresh + self.refresh_interval - self._clock()
            self.logger.debug(
                f"{self.name} reservoir exhausted, waiting {max(wait, 0):.2f}s"
            )
            await self._sleep(max(wait, 0))

        if self._last_start is not None:
            wait = self._last_start + self.min_time - self._clock()
            if wait > 0:
                await self._sleep(wait)
                self._refill()

        self._reservoir -= 1
        self._last_start = self._clock()

    async def schedule(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run ``fn`` once the limiter grants a slot."""
        self.stats["scheduled"] += 1
        async with self._slots:
            await self._acquire()
            try:
                result = await fn(*args, **kwargs)
            except Exception:
                self.stats["failed"] += 1
                raise
        self.stats["completed"] += 1
        return result

    async def schedule_with_retry(
        self,
        fn: Callable[..., Awaitable[Any]],
        *args,
        policy: RetryPolicy = RetryPolicy(),
        **kwargs
    ) -> Any:
        """Schedule ``fn``, backing off and rescheduling while it is throttled."""
        attempt = 0
        while True:
            try:
                return await self.schedule(fn, *args, **kwargs)
            except Throttled as e:
                if attempt >= policy.max_retries:
                    self.logger.warning(
                        f"{self.name} still throttled after {attempt} retries: {str(e)}"
                    )
                    raise
                delay = policy.delay_for(attempt)
                attempt += 1
                self.stats["throttle_retries"] += 1
                self.logger.info(
                    f"{self.name} rate limit hit, retry {attempt} in {delay:.1f}s"
                )
                await self._sleep(delay)

    def get_stats(self) -> Dict:
        """Get current limiter statistics."""
        return {
            **self.stats,
            "name": self.name,
            "reservoir": self.reservoir,
            "capacity": self.capacity
        }
