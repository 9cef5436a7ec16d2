"""Interfaces for identity services.

An identity service maps a wallet address to a human readable name
(e.g., a Farcaster username or a Basename).
"""

import abc
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class UsernameBatch:
    """Response of a bulk identity lookup."""
    usernames: Dict[str, Optional[str]] = field(default_factory=dict)
    rate_limited: bool = False


class IdentityLookup(abc.ABC):
    """Resolves a single address to a name."""

    name: str = "identity"

    @abc.abstractmethod
    async def lookup(self, address: str) -> Optional[str]:
        """Returns the name for address, or None when the service has none.

        Raises:
            RateLimitedError: If the service refused the request.
            TransientUpstreamError: On timeouts and server errors.
        """
        pass


class BatchIdentityLookup(abc.ABC):
    """Resolves many addresses in one request."""

    @abc.abstractmethod
    async def lookup_many(self, addresses: List[str]) -> UsernameBatch:
        """Returns names keyed by lower-cased address.

        Addresses the service does not know may be missing from the result.
        """
        pass
