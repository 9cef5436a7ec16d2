"""Defines common Value Objects used across different domain contexts.

Addresses, metadata URIs and cache keys are plain strings at runtime;
NewType keeps their roles apart in signatures.
"""

from typing import NewType

# === Core Value Objects ===

Address = NewType("Address", str)              # Lower-cased 0x-prefixed wallet/contract address
MetadataUri = NewType("MetadataUri", str)      # Raw URI as returned by the ledger (ar://, ipfs://, ...)

# === Caching Context ===
CacheKey = NewType("CacheKey", str)            # Unique key for a cache entry

ZERO_ADDRESS = Address("0x0000000000000000000000000000000000000000")


def normalize_address(address: str) -> Address:
    """Lower-cases and trims an address so it can be used as a cache key."""
    return Address((address or "").strip().lower())


def format_address(address: str) -> str:
    """Formats an address for display (0x1234...5678)."""
    if not address or len(address) < 10:
        return address or ""
    return f"{address[:6]}...{address[-4:]}"
