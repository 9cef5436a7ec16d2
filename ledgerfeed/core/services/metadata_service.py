"""Application service fetching item metadata documents.

Steps for one item:
1. read the metadata URI from the ledger (retried with backoff),
2. normalize it into gateway URLs (or decode an inline data URI),
3. fetch the document through the GatewayFetcher,
4. fill missing fields with placeholders (a URI serving an image becomes the image).
"""

import logging
from typing import Any, Dict, Optional, Tuple

from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.interfaces.ledger import LedgerReader
from ledgerfeed.domain.models.errors import LedgerFeedError, MetadataUnavailableError
from ledgerfeed.domain.models.feed import DEFAULT_DESCRIPTION, PLACEHOLDER_IMAGE, ItemConfig, ItemMetadata
from ledgerfeed.infrastructure.clock import SystemClock
from ledgerfeed.infrastructure.gateway.gateway_fetcher import GatewayFetcher
from ledgerfeed.infrastructure.gateway.uri_normalizer import normalize_document_uris, normalize_uri
from ledgerfeed.infrastructure.resilience.api_retry import ApiRetryService, MaxRetryError

logger = logging.getLogger(__name__)

METADATA_MEMO_TTL_SECONDS = 5 * 60  # 5 minutes


def placeholder_name(item_id: str) -> str:
    return f"Token #{item_id}"


def build_metadata(document: Any, item_id: str, source_url: Optional[str] = None) -> ItemMetadata:
    """Turns a parsed document into ItemMetadata, substituting placeholders."""
    if not isinstance(document, dict):
        logger.warning(f"Metadata for item {item_id} is not an object; using placeholders.")
        return ItemMetadata(
            name=placeholder_name(item_id),
            description=DEFAULT_DESCRIPTION,
            image_url=PLACEHOLDER_IMAGE,
            source_url=source_url,
            degraded=True,
        )

    document = normalize_document_uris(document)
    name = document.get("name")
    description = document.get("description")
    image = document.get("image")
    degraded = not (name and image)
    return ItemMetadata(
        name=str(name) if name else placeholder_name(item_id),
        description=str(description) if description else DEFAULT_DESCRIPTION,
        image_url=str(image) if image else PLACEHOLDER_IMAGE,
        source_url=source_url,
        degraded=degraded,
    )


def image_metadata(image_url: str, item_id: str) -> ItemMetadata:
    """Placeholder metadata for a URI that points straight at an image."""
    return ItemMetadata(
        name=placeholder_name(item_id),
        description=DEFAULT_DESCRIPTION,
        image_url=image_url,
        source_url=image_url,
        degraded=True,
    )


class MetadataService:
    """Fetches and memoises metadata for feed items."""

    def __init__(
        self,
        ledger: LedgerReader,
        gateway_fetcher: GatewayFetcher,
        retry_service: ApiRetryService,
        clock: Optional[Clock] = None,
        memo_ttl: float = METADATA_MEMO_TTL_SECONDS,
    ):
        self.ledger = ledger
        self.gateway_fetcher = gateway_fetcher
        self.retry_service = retry_service
        self.clock = clock or SystemClock()
        self.memo_ttl = memo_ttl
        self._memo: Dict[Tuple[str, str], Tuple[ItemMetadata, float]] = {}

    def _memoised(self, config: ItemConfig) -> Optional[ItemMetadata]:
        cached = self._memo.get(config.key)
        if cached is None:
            return None
        metadata, stored_at = cached
        if self.clock.time() - stored_at < self.memo_ttl:
            logger.debug(f"Metadata memo HIT for {config.key}")
            return metadata
        del self._memo[config.key]
        return None

    async def _read_uri(self, config: ItemConfig) -> str:
        try:
            return await self.retry_service.execute_with_retry(
                self.ledger.metadata_uri_of, config.contract_ref, config.item_id, endpoint_name="uri"
            )
        except (MaxRetryError, LedgerFeedError, ValueError) as e:
            raise MetadataUnavailableError(config.contract_ref, config.item_id, f"URI read failed: {e}") from e

    async def fetch_metadata(self, config: ItemConfig) -> ItemMetadata:
        """Returns the metadata of one item.

        Raises:
            MetadataUnavailableError: If the URI cannot be read, is unsupported,
                or every gateway failed.
        """
        memoised = self._memoised(config)
        if memoised is not None:
            return memoised

        uri = await self._read_uri(config)
        normalized = normalize_uri(uri, config.item_id)

        if normalized.kind == "data":
            metadata = build_metadata(normalized.data_json, config.item_id)
        elif normalized.kind == "http":
            result = await self.gateway_fetcher.resolve_resource(normalized.urls)
            if not result.ok:
                raise MetadataUnavailableError(config.contract_ref, config.item_id, result.error or "fetch failed")
            if result.is_image:
                logger.warning(f"Metadata URI of {config.key} serves {result.content_type}; using it as the image.")
                metadata = image_metadata(result.used_url, config.item_id)
            else:
                metadata = build_metadata(result.payload, config.item_id, source_url=result.used_url)
        else:
            raise MetadataUnavailableError(config.contract_ref, config.item_id, f"Unsupported URI: {uri[:60]}")

        self._memo[config.key] = (metadata, self.clock.time())
        return metadata

    def clear(self) -> None:
        self._memo.clear()
