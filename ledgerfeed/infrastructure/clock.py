"""System clock backed by time.time() and asyncio.sleep()."""

import asyncio
import time

from ledgerfeed.domain.interfaces.clock import Clock


class SystemClock(Clock):
    """Real wall clock used in production."""

    def time(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
        else:
            await asyncio.sleep(0)
