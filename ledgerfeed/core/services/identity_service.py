"""Application services resolving wallet addresses to display names.

IdentityResolver walks a chain of sources for one address:

    primary (Farcaster username) -> secondary (Basename) -> "unknown"

BatchIdentityResolver resolves a whole page of addresses with one bulk
request per chunk and only falls back to the secondary service for the
addresses the bulk response did not cover.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ledgerfeed.domain.events.api_events import FallbackTriggered
from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.interfaces.identity import BatchIdentityLookup, IdentityLookup, UsernameBatch
from ledgerfeed.domain.models.common import normalize_address
from ledgerfeed.domain.models.errors import (
    LedgerFeedError, MalformedResponseError, NotFoundError, RateLimitedError, TransientUpstreamError,
)
from ledgerfeed.domain.models.feed import UNKNOWN_IDENTITY
from ledgerfeed.infrastructure.cache.single_flight import SingleFlight, SingleFlightCache
from ledgerfeed.infrastructure.clock import SystemClock
from ledgerfeed.infrastructure.resilience.api_retry import MaxRetryError
from ledgerfeed.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

BATCH_CHUNK_SIZE = 100
SECONDARY_STAGGER_SECONDS = 0.1

# Not cached: the next resolution tries the network again
UNCACHEABLE_ERRORS = (RateLimitedError, TransientUpstreamError, MaxRetryError)
# Cached as "no name"
NEGATIVE_ERRORS = (NotFoundError, MalformedResponseError)


def unique_addresses(addresses: Iterable[str]) -> List[str]:
    """Lower-cases, drops empties and de-duplicates while keeping order."""
    seen = set()
    result = []
    for address in addresses:
        normalized = normalize_address(address)
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


class IdentityResolver:
    """Resolves one address through the primary and secondary identity services."""

    def __init__(
        self,
        primary: IdentityLookup,
        secondary: IdentityLookup,
        primary_cache: SingleFlightCache,
        secondary_cache: SingleFlightCache,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.primary_cache = primary_cache
        self.secondary_cache = secondary_cache
        self.rate_limiter = rate_limiter

    async def _lookup(self, service: IdentityLookup, address: str) -> Optional[str]:
        try:
            if self.rate_limiter is not None and service is self.primary:
                await self.rate_limiter.gate()
            return await service.lookup(address)
        except NEGATIVE_ERRORS as e:
            logger.debug(f"{service.name} has no name for {address}: {e}")
            return None

    async def _resolve_via(self, cache: SingleFlightCache, service: IdentityLookup, address: str) -> Optional[str]:
        try:
            return await cache.resolve(address, lambda: self._lookup(service, address))
        except UNCACHEABLE_ERRORS as e:
            logger.warning(f"{service.name} lookup for {address} failed, not cached: {e}")
            return None

    async def resolve_primary(self, address: str) -> Optional[str]:
        return await self._resolve_via(self.primary_cache, self.primary, normalize_address(address))

    async def resolve_secondary(self, address: str) -> Optional[str]:
        return await self._resolve_via(self.secondary_cache, self.secondary, normalize_address(address))

    async def resolve_one(self, address: str) -> str:
        """Returns a display name for address, or "unknown". Never raises."""
        normalized = normalize_address(address)
        if not normalized:
            return UNKNOWN_IDENTITY

        name = await self.resolve_primary(normalized)
        if name:
            return name

        logger.debug(f"EVENT: {FallbackTriggered(reason='no_primary_name', source=self.primary.name, fallback=self.secondary.name)}")
        name = await self.resolve_secondary(normalized)
        return name or UNKNOWN_IDENTITY


class BatchIdentityResolver:
    """Resolves many addresses with bulk primary requests and per-address fallback."""

    def __init__(
        self,
        batch_lookup: BatchIdentityLookup,
        identity_resolver: IdentityResolver,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Optional[Clock] = None,
        chunk_size: int = BATCH_CHUNK_SIZE,
        stagger_seconds: float = SECONDARY_STAGGER_SECONDS,
    ):
        """Initializes the batch resolver.

        Args:
            batch_lookup: Bulk endpoint of the primary service.
            identity_resolver: Provides the primary cache and the secondary fallback.
            rate_limiter: Gate passed before every bulk request.
            clock: Clock used for the stagger between secondary lookups.
            chunk_size: Maximum number of addresses per bulk request.
            stagger_seconds: Delay between consecutive secondary lookups.
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1.")
        self.batch_lookup = batch_lookup
        self.identity_resolver = identity_resolver
        self.primary_cache = identity_resolver.primary_cache
        self.rate_limiter = rate_limiter
        self.clock = clock or SystemClock()
        self.chunk_size = chunk_size
        self.stagger_seconds = stagger_seconds
        self._flight: SingleFlight[UsernameBatch] = SingleFlight(name="identity_batch")

    async def _fetch_chunk(self, chunk: List[str]) -> UsernameBatch:
        if self.rate_limiter is not None:
            await self.rate_limiter.gate()
        return await self.batch_lookup.lookup_many(chunk)

    async def _request_chunk(self, chunk: List[str]) -> Optional[UsernameBatch]:
        """Runs one bulk request, shared by identical concurrent batches.

        Returns:
            The batch, or None when the request failed (nothing is cached then).
            A not-found answer is an empty batch, so every address is missing.
        """
        batch_key = ",".join(sorted(chunk))
        try:
            return await self._flight.do(batch_key, lambda: self._fetch_chunk(chunk))
        except RateLimitedError as e:
            logger.warning(f"Bulk identity lookup rate limited for {len(chunk)} address(es): {e}")
            return UsernameBatch(rate_limited=True)
        except NotFoundError as e:
            logger.info(f"Bulk identity lookup found nothing for {len(chunk)} address(es): {e}")
            return UsernameBatch()
        except (LedgerFeedError, MaxRetryError) as e:
            logger.warning(f"Bulk identity lookup failed for {len(chunk)} address(es): {e}")
            return None

    async def resolve_many(self, addresses: Iterable[str]) -> Dict[str, str]:
        """Resolves every address to a display name.

        Args:
            addresses: Addresses in any case, duplicates allowed.

        Returns:
            Map keyed by lower-cased address containing every requested address.
            Values are names or "unknown".
        """
        ids = unique_addresses(addresses)
        result: Dict[str, str] = {}
        to_fetch: List[str] = []
        needs_fallback: List[str] = []

        for address in ids:
            found, name = self.primary_cache.peek(address)
            if found and name:
                result[address] = name
            elif found:
                needs_fallback.append(address)
            else:
                to_fetch.append(address)

        logger.debug(
            f"resolve_many: {len(ids)} address(es), {len(result)} cached, "
            f"{len(to_fetch)} to fetch, {len(needs_fallback)} cached without primary name"
        )

        for start in range(0, len(to_fetch), self.chunk_size):
            chunk = to_fetch[start:start + self.chunk_size]
            batch = await self._request_chunk(chunk)

            if batch is None:
                for address in chunk:
                    result[address] = UNKNOWN_IDENTITY
                continue

            for address in chunk:
                name = batch.usernames.get(address)
                if name:
                    self.primary_cache.store(address, name)
                    result[address] = name
                elif batch.rate_limited:
                    # Try later: no negative entry for a refused request
                    result[address] = UNKNOWN_IDENTITY
                else:
                    self.primary_cache.store(address, None)
                    needs_fallback.append(address)

        for index, address in enumerate(needs_fallback):
            if index > 0 and self.stagger_seconds > 0:
                await self.clock.sleep(self.stagger_seconds)
            name = await self.identity_resolver.resolve_secondary(address)
            result[address] = name or UNKNOWN_IDENTITY

        for address in ids:
            result.setdefault(address, UNKNOWN_IDENTITY)
        return result
