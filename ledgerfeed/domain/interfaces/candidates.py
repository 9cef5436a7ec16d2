"""Interface for the authoritative list of feed candidates."""

import abc
from typing import List

from ..models.feed import ItemConfig


class CandidateSource(abc.ABC):
    """Abstract Base Class for the backing list collaborator."""

    @abc.abstractmethod
    async def list_candidates(self) -> List[ItemConfig]:
        """Returns every item currently listed in the feed."""
        pass

    @abc.abstractmethod
    async def contains(self, config: ItemConfig) -> bool:
        """Boolean membership check for one item."""
        pass
