"""Domain Events related to upstream calls and resilience.

Examples include events for when calls are deferred, retried, fail, or succeed,
and when a resolution falls back to another service or location.
"""

from dataclasses import dataclass, field
import time
from typing import Any, Optional

# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

# --- Specific API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an upstream call is about to be made."""
    provider: str # e.g., 'ledger', 'farcaster'
    endpoint: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an upstream call succeeds."""
    provider: str
    endpoint: str
    latency_ms: float
    response_summary: Optional[Any] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when an upstream call fails definitively (after retries)."""
    provider: str
    endpoint: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when an upstream call is deferred due to rate limiting."""
    provider: str
    endpoint: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed upstream call."""
    provider: str
    endpoint: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class FallbackTriggered(DomainEvent):
    """Event triggered when a resolution moves on to its next source."""
    reason: str # e.g., 'not_found', 'rate_limited'
    source: str
    fallback: str
    timestamp: float = field(default_factory=time.time)
