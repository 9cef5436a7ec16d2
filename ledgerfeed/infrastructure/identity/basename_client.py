"""Client for the Basename endpoint of the application API.

GET /api/basename?address= -> {"name": str | null}
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from ledgerfeed.domain.interfaces.http_client import HttpClient
from ledgerfeed.domain.interfaces.identity import IdentityLookup
from ledgerfeed.domain.models.errors import MalformedResponseError
from ledgerfeed.infrastructure.http.responses import check_status, parse_json

logger = logging.getLogger(__name__)

BASENAME_PATH = "/api/basename"
BASENAME_TIMEOUT_SECONDS = 5.0


class BasenameClient(IdentityLookup):
    """Secondary identity service: wallet address to Basename."""

    name = "basename"

    def __init__(self, http_client: HttpClient, base_url: str, timeout: float = BASENAME_TIMEOUT_SECONDS):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def lookup(self, address: str) -> Optional[str]:
        url = f"{self.base_url}{BASENAME_PATH}?{urlencode({'address': address})}"
        response = await self.http_client.get(url, timeout=self.timeout)
        check_status(response, "basename")
        if "json" not in response.content_type:
            raise MalformedResponseError(f"basename returned content type '{response.content_type}'")
        data = parse_json(response, "basename")
        if not isinstance(data, dict):
            raise MalformedResponseError("basename response is not an object")
        return data.get("name") or None
