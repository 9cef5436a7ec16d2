"""Application service resolving a contract to its authorial (owner) address."""

import logging

from ledgerfeed.domain.interfaces.ledger import LedgerReader
from ledgerfeed.domain.models.common import ZERO_ADDRESS, Address, normalize_address
from ledgerfeed.domain.models.errors import LedgerFeedError, NotFoundError
from ledgerfeed.infrastructure.cache.single_flight import SingleFlightCache
from ledgerfeed.infrastructure.resilience.api_retry import ApiRetryService, MaxRetryError

logger = logging.getLogger(__name__)

OWNER_UNKNOWN = Address("")


class ContractOwnerResolver:
    """Resolves contract owners through durable and memory caches.

    Only successful reads are cached. A failed or zero owner is reported as
    an empty string and the next call goes to the ledger again.
    """

    def __init__(self, ledger: LedgerReader, cache: SingleFlightCache, retry_service: ApiRetryService):
        """Initializes the resolver.

        Args:
            ledger: Source of contract state.
            cache: Cache with cache_negative disabled.
            retry_service: Retry policy wrapping every ledger read.
        """
        if cache.policy.cache_negative:
            logger.warning(f"Owner cache '{cache.prefix}' caches negative results; owner failures will stick.")
        self.ledger = ledger
        self.cache = cache
        self.retry_service = retry_service

    async def _read_owner(self, contract_ref: str) -> Address:
        owner = normalize_address(
            await self.retry_service.execute_with_retry(self.ledger.owner_of, contract_ref, endpoint_name="owner")
        )
        if not owner or owner == ZERO_ADDRESS:
            raise NotFoundError(f"No owner for {contract_ref}")
        return owner

    async def resolve_owner(self, contract_ref: str) -> Address:
        """Returns the lower-cased owner address, or "" on failure. Never raises."""
        contract = normalize_address(contract_ref)
        if not contract:
            return OWNER_UNKNOWN
        try:
            owner = await self.cache.resolve(contract, lambda: self._read_owner(contract))
        except (MaxRetryError, LedgerFeedError, ValueError) as e:
            logger.warning(f"Owner resolution failed for {contract}: {e}")
            return OWNER_UNKNOWN
        return Address(owner or OWNER_UNKNOWN)
