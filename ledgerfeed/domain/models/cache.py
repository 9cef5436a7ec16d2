"""Cache entry value object shared by every cache tier."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class CacheEntry:
    """A cached value and the epoch-millisecond time it was stored."""
    value: Any
    timestamp: int

    def is_fresh(self, now_ms: int, ttl_seconds: float) -> bool:
        return now_ms - self.timestamp < ttl_seconds * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["CacheEntry"]:
        """Parses a stored blob; returns None for anything that is not an entry."""
        if not isinstance(data, dict) or "timestamp" not in data:
            return None
        try:
            return cls(value=data.get("value"), timestamp=int(data["timestamp"]))
        except (TypeError, ValueError):
            return None
