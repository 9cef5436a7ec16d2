"""Fetches one logical JSON resource through an ordered list of gateway URLs.

A location that answers with an image is accepted as the resource itself.
"""

import asyncio
import json
import logging
from typing import List, Optional

from ledgerfeed.domain.events.api_events import FallbackTriggered
from ledgerfeed.domain.interfaces.http_client import HttpClient
from ledgerfeed.domain.models.errors import TransientUpstreamError
from ledgerfeed.domain.models.feed import GatewayResult

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_TIMEOUT_SECONDS = 15.0
ALL_GATEWAYS_FAILED = "All gateways failed"
JSON_ACCEPT_HEADERS = {"Accept": "application/json"}
IMAGE_CONTENT_TYPE = "image/*"
# First characters of JPEG, PNG and undecodable bodies
BINARY_IMAGE_MARKERS = ("\xff", "\x89", "\ufffd")


class GatewayFetcher:
    """Tries each URL in order and returns the first JSON body or image."""

    def __init__(self, http_client: HttpClient, timeout: float = DEFAULT_GATEWAY_TIMEOUT_SECONDS):
        """Initializes the fetcher.

        Args:
            http_client: Transport used for every attempt.
            timeout: Per-attempt timeout in seconds. A timeout aborts only that attempt.
        """
        self.http_client = http_client
        self.timeout = timeout

    async def resolve_resource(self, urls: List[str]) -> GatewayResult:
        """Fetches the first URL that answers 2xx with a JSON body or an image.

        Args:
            urls: Alternate locations of the same resource, in priority order.

        Returns:
            GatewayResult with ok=True, payload and used_url on success, or
            ok=False and error="All gateways failed" once the list is exhausted.
            An image answer is ok=True with no payload and its content_type set.
        """
        for index, url in enumerate(urls):
            payload, content_type, reason = await self._try_url(url)
            if reason is None:
                logger.debug(f"Gateway fetch succeeded via {url} ({content_type or 'no content type'})")
                return GatewayResult(ok=True, payload=payload, used_url=url, content_type=content_type)

            next_url = urls[index + 1] if index + 1 < len(urls) else None
            if next_url is not None:
                logger.debug(f"EVENT: {FallbackTriggered(reason=reason, source=url, fallback=next_url)}")
            logger.info(f"Gateway {url} failed ({reason}); trying next location.")

        logger.warning(f"{ALL_GATEWAYS_FAILED} for {len(urls)} location(s).")
        return GatewayResult(ok=False, error=ALL_GATEWAYS_FAILED)

    async def _try_url(self, url: str):
        """Returns (payload, content_type, None) on success, (None, None, reason) on failure."""
        try:
            response = await asyncio.wait_for(
                self.http_client.get(url, headers=JSON_ACCEPT_HEADERS, timeout=self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return None, None, "timeout"
        except TransientUpstreamError as e:
            return None, None, f"network error: {e}"

        if not response.ok:
            return None, None, f"status {response.status}"

        content_type = response.content_type
        if content_type.startswith("image/"):
            return None, content_type, None

        if "json" in content_type:
            try:
                return response.json(), content_type, None
            except ValueError:
                return None, None, "invalid json"

        first_char = self._first_char(response.text)
        if first_char in ("{", "["):
            try:
                return json.loads(response.text), content_type, None
            except ValueError:
                return None, None, "invalid json"
        if first_char in BINARY_IMAGE_MARKERS:
            # Image bytes served without an image content type
            return None, IMAGE_CONTENT_TYPE, None
        return None, None, f"unexpected content type '{content_type or 'unknown'}'"

    @staticmethod
    def _first_char(text: Optional[str]) -> str:
        stripped = (text or "").lstrip()
        return stripped[0] if stripped else ""
