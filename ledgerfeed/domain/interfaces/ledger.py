"""Interface for read-only ledger access."""

import abc

from ..models.common import Address, MetadataUri


class LedgerReader(abc.ABC):
    """Abstract Base Class for reading contract state."""

    @abc.abstractmethod
    async def owner_of(self, contract_ref: str) -> Address:
        """Returns the authorial (owner) address of a contract.

        Raises:
            NotFoundError: If the contract reports no owner.
            TransientUpstreamError: On RPC or network failure.
        """
        pass

    @abc.abstractmethod
    async def metadata_uri_of(self, contract_ref: str, item_id: str) -> MetadataUri:
        """Returns the metadata URI of one item in a contract."""
        pass
