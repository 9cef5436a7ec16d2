"""Interface for time and delays.

Every delay in the pipeline (staggering, backoff, rate limiting, retry
timers) goes through a Clock so tests can run deterministically.
"""

import abc


class Clock(abc.ABC):
    """Abstract Base Class for wall time and cooperative sleeping."""

    @abc.abstractmethod
    def time(self) -> float:
        """Current time in seconds."""
        pass

    def now_ms(self) -> int:
        """Current time in epoch milliseconds."""
        return int(self.time() * 1000)

    @abc.abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspends the caller for the given number of seconds."""
        pass
