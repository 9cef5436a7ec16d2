"""Implementation of a minimum-interval rate limiter.

Controls how often calls to one upstream service may start. The "last call"
timestamp is taken when a caller is released, so the interval bounds the
call initiation rate, not the completion rate.
"""

import asyncio
import logging
from typing import Optional

from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.models.errors import RateLimitedError
from ledgerfeed.infrastructure.clock import SystemClock

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_SECONDS = 0.25


class RateLimiter:
    """Enforces a minimum spacing between calls to one upstream service."""

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL_SECONDS,
        clock: Optional[Clock] = None,
        name: str = "upstream",
    ):
        """Initializes the rate limiter.

        Args:
            min_interval: Minimum number of seconds between two call starts.
            clock: Clock used for time and sleeping.
            name: Upstream service name, for logging.
        """
        if min_interval < 0:
            raise ValueError("min_interval must not be negative.")
        self.min_interval = min_interval
        self.clock = clock or SystemClock()
        self.name = name
        self._last_call: Optional[float] = None
        self._lock = asyncio.Lock()
        logger.info(f"RateLimiter '{name}' initialized: min interval {min_interval}s")

    def _wait_time(self) -> float:
        if self._last_call is None:
            return 0.0
        return max(0.0, self._last_call + self.min_interval - self.clock.time())

    async def get_wait_time(self) -> float:
        """Estimates the time needed before the next call can start."""
        return self._wait_time()

    async def gate(self, max_wait: Optional[float] = None) -> None:
        """Waits until a call is permitted.

        Args:
            max_wait: If given and the required wait is longer, refuse instead of waiting.

        Raises:
            RateLimitedError: When max_wait is exceeded (local short-circuit).
        """
        async with self._lock:
            wait_time = self._wait_time()
            if max_wait is not None and wait_time > max_wait:
                logger.debug(f"RateLimiter '{self.name}' short-circuit: wait {wait_time:.2f}s > {max_wait:.2f}s")
                raise RateLimitedError(f"Local rate limit for {self.name}", retry_after=wait_time)
            if wait_time > 0:
                logger.debug(f"RateLimiter '{self.name}': waiting {wait_time:.2f} seconds.")
                await self.clock.sleep(wait_time)
            self._last_call = self.clock.time()
