"""Interfaces for caching and persistence.

A KeyValueStore is the raw persistence capability (durable disk store,
session store, plain memory). A CacheStore layers timestamped entries and
TTL checks on top of an optional KeyValueStore.
"""

import abc
from typing import Any, Optional

from ..models.cache import CacheEntry
from ..models.common import CacheKey


class KeyValueStore(abc.ABC):
    """Abstract Base Class for a trivial key-value persistence layer."""

    @abc.abstractmethod
    def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the stored blob for key, or None if absent."""
        pass

    @abc.abstractmethod
    def set(self, key: CacheKey, value: Any, expire: Optional[float] = None) -> None:
        """Stores a blob, optionally asking the backend to evict it after expire seconds."""
        pass

    @abc.abstractmethod
    def delete(self, key: CacheKey) -> None:
        pass

    @abc.abstractmethod
    def clear(self) -> int:
        """Removes everything; returns the number of removed entries when known."""
        pass


class CacheStore(abc.ABC):
    """Abstract Base Class for TTL-aware cache tiers."""

    @abc.abstractmethod
    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        """Retrieves the raw entry for key regardless of age.

        Args:
            key: The cache key to retrieve.

        Returns:
            The CacheEntry if present, otherwise None.
        """
        pass

    @abc.abstractmethod
    def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores value under key stamped with the current time.

        Args:
            key: The cache key to store the item under.
            value: The item to store (None records a negative result).
            ttl: Optional backend eviction hint in seconds.
        """
        pass

    @abc.abstractmethod
    def has_fresh(self, key: CacheKey, ttl: float) -> bool:
        """Returns True when an entry exists and is younger than ttl seconds."""
        pass

    @abc.abstractmethod
    def delete(self, key: CacheKey) -> None:
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        pass
