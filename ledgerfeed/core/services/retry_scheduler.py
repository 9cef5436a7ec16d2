"""Bounded retry queue for items whose resolution failed.

Entries are keyed by (contract_ref, item_id). Each drain re-resolves every
queued entry; a success is handed to the owner of the scheduler, a failure
bumps the attempt counter and an entry that reaches MAX_RETRY_ATTEMPTS is
dropped for good.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.models.feed import MAX_RETRY_ATTEMPTS, FailureQueueEntry, ItemConfig, ResolvedItem

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY_SECONDS = 10.0

ResolveFn = Callable[[ItemConfig], Awaitable[ResolvedItem]]
SuccessFn = Callable[[ResolvedItem], None]


class RetryScheduler:
    """Single-shot timer plus failure queue, driven by an injected clock."""

    def __init__(
        self,
        resolve: ResolveFn,
        on_success: SuccessFn,
        clock: Clock,
        max_attempts: int = MAX_RETRY_ATTEMPTS,
    ):
        """Initializes the scheduler.

        Args:
            resolve: Full per-item resolution; raises on failure.
            on_success: Receives each item resolved by a drain.
            clock: Clock used by the timer.
            max_attempts: Failed retries after which an entry is dropped.
        """
        self.resolve = resolve
        self.on_success = on_success
        self.clock = clock
        self.max_attempts = max_attempts
        self._queue: Dict[Tuple[str, str], FailureQueueEntry] = {}
        self._dropped: set = set()
        self._timer: Optional["asyncio.Task[None]"] = None
        self._firing_task: Optional["asyncio.Task[None]"] = None
        self._closed = False
        self._draining = False

    def __len__(self) -> int:
        return len(self._queue)

    def __contains__(self, config: ItemConfig) -> bool:
        return config.key in self._queue

    def entries(self) -> List[FailureQueueEntry]:
        return list(self._queue.values())

    def enqueue(self, config: ItemConfig) -> bool:
        """Adds config to the queue. Returns False if it is queued or was dropped already."""
        if config.key in self._queue or config.key in self._dropped:
            return False
        self._queue[config.key] = FailureQueueEntry(config=config)
        logger.info(f"Queued {config.contract_ref}/{config.item_id} for retry ({len(self._queue)} pending)")
        return True

    def arm(self, delay: float = DEFAULT_RETRY_DELAY_SECONDS) -> None:
        """Schedules one drain after delay seconds, replacing any pending timer.

        Does nothing once the scheduler is closed.
        """
        if self._closed:
            logger.debug("Retry scheduler closed; not arming.")
            return
        self.cancel()
        self._timer = asyncio.ensure_future(self._fire(delay))

    @property
    def armed(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def _fire(self, delay: float) -> None:
        await self.clock.sleep(delay)
        task = asyncio.current_task()
        self._firing_task = task
        try:
            await self.drain()
        except Exception as e:
            logger.error(f"Retry drain failed unexpectedly: {e}", exc_info=True)
        finally:
            if self._firing_task is task:
                self._firing_task = None

    def cancel(self) -> None:
        """Cancels a pending timer. A drain already running is left to finish."""
        timer = self._timer
        self._timer = None
        if timer is None or timer.done() or timer is self._firing_task:
            return
        timer.cancel()

    def open(self) -> None:
        self._closed = False

    def close(self) -> None:
        """Cancels the pending timer and stops drains still running from arming a new one."""
        self._closed = True
        self.cancel()

    async def drain(self) -> int:
        """Retries every queued entry once.

        Returns:
            Number of entries resolved successfully.
        """
        if self._draining or not self._queue:
            return 0
        self._draining = True
        resolved = 0
        try:
            for entry in list(self._queue.values()):
                key = entry.config.key
                try:
                    item = await self.resolve(entry.config)
                except Exception as e:
                    entry.attempts += 1
                    if entry.attempts >= self.max_attempts:
                        del self._queue[key]
                        self._dropped.add(key)
                        logger.warning(f"Giving up on {key} after {entry.attempts} retries: {e}")
                    else:
                        logger.info(f"Retry {entry.attempts}/{self.max_attempts} failed for {key}: {e}")
                    continue

                del self._queue[key]
                self.on_success(item)
                resolved += 1
                logger.info(f"Retry succeeded for {key}")
        finally:
            self._draining = False
        return resolved
