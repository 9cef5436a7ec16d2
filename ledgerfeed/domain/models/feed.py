"""Domain models for the item feed.

Includes the identity key of an item (ItemConfig), the fully resolved view
of an item, failure queue entries and the persisted feed state.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .common import normalize_address

# --- Feed Configuration ---
PAGE_SIZE = 8
MAX_RETRY_ATTEMPTS = 3
FEED_STATE_TTL_SECONDS = 30 * 60  # 30 minutes
ARTIST_SCAN_LIMIT = 50
ARTIST_MATCH_LIMIT = 8
UNKNOWN_IDENTITY = "unknown"

PLACEHOLDER_IMAGE = "/placeholder.svg"
DEFAULT_DESCRIPTION = "NFT from Feria Nounish"


class FeedPhase(str, Enum):
    """Lifecycle of the feed aggregator."""
    IDLE = "idle"
    HYDRATING = "hydrating"
    LOADING = "loading"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ItemConfig:
    """Identity key of a feed item, as listed by the backing store."""
    contract_ref: str
    item_id: str

    @property
    def key(self) -> Tuple[str, str]:
        return (normalize_address(self.contract_ref), str(self.item_id))

    def to_dict(self) -> Dict[str, str]:
        return {"contractRef": self.contract_ref, "itemId": self.item_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemConfig":
        """Builds a config from either naming scheme used by the backing list."""
        contract = data.get("contractRef") or data.get("contractAddress") or data.get("contract_ref")
        item_id = data.get("itemId", data.get("tokenId", data.get("item_id")))
        if not contract or item_id is None or str(item_id) == "":
            raise ValueError(f"Invalid item config: {data!r}")
        return cls(contract_ref=str(contract), item_id=str(item_id))


@dataclass
class ItemMetadata:
    """Metadata document of an item after URI normalization."""
    name: str
    description: str
    image_url: str
    source_url: Optional[str] = None
    degraded: bool = False  # True when placeholders were substituted


@dataclass
class ResolvedItem:
    """An item with its metadata and author identity resolved."""
    name: str
    description: str
    image_url: str
    author_address: str
    author_display_name: str
    contract_ref: str
    item_id: str

    @property
    def key(self) -> Tuple[str, str]:
        return (normalize_address(self.contract_ref), str(self.item_id))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolvedItem":
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            image_url=data.get("image_url", ""),
            author_address=data.get("author_address", ""),
            author_display_name=data.get("author_display_name", UNKNOWN_IDENTITY),
            contract_ref=data["contract_ref"],
            item_id=str(data["item_id"]),
        )


@dataclass
class FailureQueueEntry:
    """An item whose resolution failed and is waiting to be retried."""
    config: ItemConfig
    attempts: int = 0


@dataclass
class AuthorRecord:
    """Session-scoped author information for one item."""
    address: str
    display_name: str


@dataclass
class FeedState:
    """Working state of the aggregator, persisted per session."""
    resolved_items: List[ResolvedItem] = field(default_factory=list)
    all_configs: List[ItemConfig] = field(default_factory=list)
    cursor: int = 0
    timestamp: int = 0  # epoch milliseconds

    def __post_init__(self):
        # Keep 0 <= cursor <= len(all_configs)
        self.cursor = max(0, min(int(self.cursor), len(self.all_configs)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolved_items": [item.to_dict() for item in self.resolved_items],
            "all_configs": [config.to_dict() for config in self.all_configs],
            "cursor": self.cursor,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedState":
        return cls(
            resolved_items=[ResolvedItem.from_dict(d) for d in data.get("resolved_items", [])],
            all_configs=[ItemConfig.from_dict(d) for d in data.get("all_configs", [])],
            cursor=data.get("cursor", 0),
            timestamp=data.get("timestamp", 0),
        )


@dataclass
class GatewayResult:
    """Outcome of fetching one logical resource through several URLs."""
    ok: bool
    payload: Any = None
    used_url: Optional[str] = None
    error: Optional[str] = None
    content_type: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.ok and (self.content_type or "").startswith("image/")
