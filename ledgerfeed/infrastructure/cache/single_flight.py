"""Request coalescing and the three-tier single-flight cache.

SingleFlight keeps a map of in-flight futures so that at most one upstream
call per key runs at any instant. SingleFlightCache puts a durable tier and
an in-memory tier in front of it:

    durable store -> memory store -> pending request -> loader

The check-then-insert on the pending map contains no ``await``; under the
single asyncio event loop it is therefore atomic. A port to real threads
must guard ``SingleFlight.do`` with a mutex.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from ledgerfeed.domain.interfaces.cache import CacheStore
from ledgerfeed.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_MEMORY_TTL_SECONDS = 10 * 60        # 10 minutes
DEFAULT_DURABLE_TTL_SECONDS = 24 * 60 * 60  # 24 hours
DEFAULT_NEGATIVE_TTL_SECONDS = 5 * 60       # 5 minutes


@dataclass
class CachePolicy:
    """TTL regime of one SingleFlightCache."""
    memory_ttl: float = DEFAULT_MEMORY_TTL_SECONDS
    durable_ttl: float = DEFAULT_DURABLE_TTL_SECONDS
    negative_ttl: float = DEFAULT_NEGATIVE_TTL_SECONDS
    cache_negative: bool = True  # False: a None result is never stored


class SingleFlight(Generic[V]):
    """Coalesces concurrent calls that share a key into one upstream call."""

    def __init__(self, name: str = "single_flight"):
        self.name = name
        self._pending: Dict[Hashable, "asyncio.Task[V]"] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def do(self, key: Hashable, loader: Callable[[], Awaitable[V]]) -> Awaitable[V]:
        """Returns an awaitable for the call registered under key, starting it if needed."""
        task = self._pending.get(key)
        if task is not None:
            logger.debug(f"[{self.name}] Coalescing request for key: {key}")
            return asyncio.shield(task)

        task = asyncio.ensure_future(loader())
        self._pending[key] = task

        def _settle(done: "asyncio.Task[V]") -> None:
            # Removed on success and on failure so a later call can retry
            if self._pending.get(key) is done:
                del self._pending[key]

        task.add_done_callback(_settle)
        return asyncio.shield(task)


class SingleFlightCache(Generic[V]):
    """Durable + memory TTL cache with per-key request coalescing."""

    def __init__(
        self,
        prefix: str,
        memory: CacheStore,
        durable: CacheStore,
        policy: Optional[CachePolicy] = None,
    ):
        self.prefix = prefix
        self.memory = memory
        self.durable = durable
        self.policy = policy or CachePolicy()
        self._flight: SingleFlight[V] = SingleFlight(name=prefix)

    def cache_key(self, key: str) -> CacheKey:
        return CacheKey(f"{self.prefix}:{key}")

    def _memory_ttl_for(self, value: Any) -> float:
        return self.policy.negative_ttl if value is None else self.policy.memory_ttl

    def _durable_ttl_for(self, value: Any) -> float:
        return self.policy.negative_ttl if value is None else self.policy.durable_ttl

    def peek(self, key: str) -> Tuple[bool, Optional[V]]:
        """Looks key up in both tiers without touching the network.

        Returns:
            (found, value). value may be None for a fresh negative entry.
        """
        ckey = self.cache_key(key)

        entry = self.durable.get(ckey)
        if entry is not None and self._usable(entry.value):
            if self.durable.has_fresh(ckey, self._durable_ttl_for(entry.value)):
                logger.debug(f"Durable cache HIT for key: {ckey}")
                if not self.memory.has_fresh(ckey, self._memory_ttl_for(entry.value)):
                    self.memory.set(ckey, entry.value)
                return True, entry.value

        entry = self.memory.get(ckey)
        if entry is not None and self._usable(entry.value):
            if self.memory.has_fresh(ckey, self._memory_ttl_for(entry.value)):
                logger.debug(f"Memory cache HIT for key: {ckey}")
                return True, entry.value

        return False, None

    def _usable(self, value: Any) -> bool:
        return value is not None or self.policy.cache_negative

    def store(self, key: str, value: Optional[V]) -> None:
        """Writes value to both tiers, honouring the negative-cache policy."""
        if value is None and not self.policy.cache_negative:
            logger.debug(f"Not caching empty result for key: {self.cache_key(key)}")
            return
        ckey = self.cache_key(key)
        self.memory.set(ckey, value)
        self.durable.set(ckey, value, ttl=self._durable_ttl_for(value))

    def invalidate(self, key: str) -> None:
        ckey = self.cache_key(key)
        self.memory.delete(ckey)
        self.durable.delete(ckey)

    def in_flight(self, key: str) -> bool:
        return self._flight.in_flight(self.cache_key(key))

    async def resolve(self, key: str, loader: Callable[[], Awaitable[Optional[V]]]) -> Optional[V]:
        """Returns the cached value for key, or loads it once for all concurrent callers.

        Exceptions raised by loader propagate to every waiter and nothing is cached.
        """
        found, value = self.peek(key)
        if found:
            return value

        async def _load_and_store() -> Optional[V]:
            result = await loader()
            self.store(key, result)
            return result

        return await self._flight.do(self.cache_key(key), _load_and_store)
