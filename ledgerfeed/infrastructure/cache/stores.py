"""Concrete cache tiers.

MemoryKeyValueStore keeps blobs in a bounded dict, DiskKeyValueStore
persists them with diskcache. TimestampedCacheStore wraps either one with
{value, timestamp} entries and TTL checks; without a backing store every
operation is a no-op.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import diskcache as dc

from ledgerfeed.domain.interfaces.cache import CacheStore, KeyValueStore
from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.models.cache import CacheEntry
from ledgerfeed.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

DEFAULT_MEMORY_MAX_ITEMS = 2048
DEFAULT_DISK_TIMEOUT_SECONDS = 1


class MemoryKeyValueStore(KeyValueStore):
    """In-memory store. Evicts oldest insertions once max_items is reached."""

    def __init__(self, max_items: int = DEFAULT_MEMORY_MAX_ITEMS):
        self._data: Dict[CacheKey, Any] = {}
        self.max_items = max_items

    def get(self, key: CacheKey) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: CacheKey, value: Any, expire: Optional[float] = None) -> None:
        # expire is ignored; freshness is judged by TimestampedCacheStore
        if key in self._data:
            del self._data[key]
        self._data[key] = value
        while len(self._data) > self.max_items:
            oldest_key = next(iter(self._data))
            del self._data[oldest_key]
            logger.debug(f"Memory store EVICTED key: {oldest_key}")

    def delete(self, key: CacheKey) -> None:
        self._data.pop(key, None)

    def clear(self) -> int:
        count = len(self._data)
        self._data.clear()
        return count

    def __len__(self) -> int:
        return len(self._data)


class DiskKeyValueStore(KeyValueStore):
    """Durable store on top of diskcache.

    Read and write failures are logged and swallowed; a broken disk cache
    degrades to cache misses instead of failing a resolution.
    """

    def __init__(self, directory: Union[str, Path], timeout: int = DEFAULT_DISK_TIMEOUT_SECONDS):
        self.directory = Path(directory)
        self.disk_cache = dc.Cache(str(self.directory), timeout=timeout)
        logger.info(f"Initialized disk store at: {self.disk_cache.directory}")

    def get(self, key: CacheKey) -> Optional[Any]:
        try:
            return self.disk_cache.get(key, default=None)
        except Exception as e:
            logger.error(f"Error reading disk store (key: {key}): {e}", exc_info=True)
            return None

    def set(self, key: CacheKey, value: Any, expire: Optional[float] = None) -> None:
        try:
            self.disk_cache.set(key, value, expire=expire)
        except Exception as e:
            logger.error(f"Error writing disk store (key: {key}): {e}", exc_info=True)

    def delete(self, key: CacheKey) -> None:
        try:
            self.disk_cache.delete(key)
        except Exception as e:
            logger.warning(f"Failed to delete disk store key {key}: {e}")

    def clear(self) -> int:
        try:
            count = self.disk_cache.clear()
            logger.info(f"Cleared disk store at {self.directory}. Removed {count} items.")
            return count
        except Exception as e:
            logger.error(f"Failed to clear disk store {self.directory}: {e}", exc_info=True)
            return 0

    def close(self) -> None:
        self.disk_cache.close()


class TimestampedCacheStore(CacheStore):
    """CacheStore that stamps each value with the time it was written."""

    def __init__(self, store: Optional[KeyValueStore], clock: Clock, name: str = "cache"):
        self.store = store
        self.clock = clock
        self.name = name
        if store is None:
            logger.info(f"Cache tier '{name}' has no backing store; persistence disabled.")

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        if self.store is None:
            return None
        entry = CacheEntry.from_dict(self.store.get(key))
        if entry is None:
            logger.debug(f"[{self.name}] MISS key: {key}")
        return entry

    def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        if self.store is None:
            return
        entry = CacheEntry(value=value, timestamp=self.clock.now_ms())
        self.store.set(key, entry.to_dict(), expire=ttl)
        logger.debug(f"[{self.name}] PUT key: {key} (negative={value is None})")

    def has_fresh(self, key: CacheKey, ttl: float) -> bool:
        entry = self.get(key)
        return entry is not None and entry.is_fresh(self.clock.now_ms(), ttl)

    def delete(self, key: CacheKey) -> None:
        if self.store is not None:
            self.store.delete(key)

    def clear(self) -> None:
        if self.store is not None:
            self.store.clear()
            logger.info(f"Cleared cache tier '{self.name}'.")
