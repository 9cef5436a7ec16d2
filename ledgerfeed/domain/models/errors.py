"""Error taxonomy shared by all resolution steps.

Each class maps to one handling policy: transient errors are retried,
rate limiting is never cached, not-found results may be negatively cached,
malformed responses degrade to placeholders.
"""

from typing import Optional


class LedgerFeedError(Exception):
    """Base class for all errors raised by ledgerfeed."""


class TransientUpstreamError(LedgerFeedError):
    """Timeout, 5xx or network failure. Safe to retry."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class RateLimitedError(LedgerFeedError):
    """Upstream answered 429 (or the local limiter refused). Try again later."""

    def __init__(self, message: str = "Rate limited", retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message)


class NotFoundError(LedgerFeedError):
    """The upstream has no value for the key (404, empty or zero result)."""


class MalformedResponseError(LedgerFeedError):
    """Response body could not be parsed or lacks required fields."""


class MetadataUnavailableError(LedgerFeedError):
    """Item metadata could not be fetched from any location."""

    def __init__(self, contract_ref: str, item_id: str, reason: str):
        self.contract_ref = contract_ref
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Metadata unavailable for {contract_ref}/{item_id}: {reason}")
