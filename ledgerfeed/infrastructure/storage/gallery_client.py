"""Client for the gallery endpoints (the backing list of feed candidates).

- GET /api/gallery/list -> {"items": [{contractRef, itemId}]} or {"tokens": [{contractAddress, tokenId}]}
- GET /api/gallery/check?contractAddress=&tokenId= -> {"inGallery": bool}
"""

import logging
from typing import List, Optional
from urllib.parse import urlencode

from ledgerfeed.domain.interfaces.candidates import CandidateSource
from ledgerfeed.domain.interfaces.http_client import HttpClient
from ledgerfeed.domain.models.errors import MalformedResponseError
from ledgerfeed.domain.models.feed import ItemConfig
from ledgerfeed.infrastructure.http.responses import check_status, parse_json

logger = logging.getLogger(__name__)

LIST_PATH = "/api/gallery/list"
CHECK_PATH = "/api/gallery/check"


class GalleryClient(CandidateSource):
    """Reads the candidate list and answers membership checks."""

    def __init__(self, http_client: HttpClient, base_url: str, timeout: Optional[float] = None):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def list_candidates(self) -> List[ItemConfig]:
        response = await self.http_client.get(f"{self.base_url}{LIST_PATH}", timeout=self.timeout)
        check_status(response, "gallery list")
        data = parse_json(response, "gallery list")
        if not isinstance(data, dict):
            raise MalformedResponseError("gallery list response is not an object")

        entries = data.get("items")
        if entries is None:
            entries = data.get("tokens", [])
        if not isinstance(entries, list):
            raise MalformedResponseError("gallery list entries are not a list")

        configs: List[ItemConfig] = []
        for entry in entries:
            try:
                configs.append(ItemConfig.from_dict(entry))
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping invalid gallery entry: {e}")
        logger.info(f"Gallery lists {len(configs)} item(s).")
        return configs

    async def contains(self, config: ItemConfig) -> bool:
        query = urlencode({"contractAddress": config.contract_ref, "tokenId": config.item_id})
        response = await self.http_client.get(f"{self.base_url}{CHECK_PATH}?{query}", timeout=self.timeout)
        check_status(response, "gallery check")
        data = parse_json(response, "gallery check")
        if not isinstance(data, dict):
            raise MalformedResponseError("gallery check response is not an object")
        return bool(data.get("inGallery", False))
