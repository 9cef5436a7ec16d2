"""HttpClient implementation backed by one shared aiohttp.ClientSession."""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ledgerfeed.domain.interfaces.http_client import HttpClient, HttpResponse
from ledgerfeed.domain.models.errors import TransientUpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_HEADERS = {"Accept": "application/json, text/plain, */*"}


class AiohttpClient(HttpClient):
    """Asynchronous HTTP client.

    The session is created lazily on first use so the client can be built
    outside a running event loop (e.g., in the composition root).
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT_SECONDS, headers: Optional[Dict[str, str]] = None):
        self.default_timeout = default_timeout
        self.headers = dict(DEFAULT_HEADERS)
        if headers:
            self.headers.update(headers)
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
            logger.debug("Created aiohttp ClientSession.")
        return self._session

    def _timeout(self, timeout: Optional[float]) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=timeout if timeout is not None else self.default_timeout)

    async def _request(self, method: str, url: str, **kwargs: Any) -> HttpResponse:
        session = self._get_session()
        try:
            async with session.request(method, url, **kwargs) as resp:
                text = await resp.text(errors="replace")
                return HttpResponse(status=resp.status, text=text, headers=dict(resp.headers))
        except asyncio.TimeoutError as e:
            logger.warning(f"HTTP {method} {url} timed out")
            raise TransientUpstreamError(f"Timeout calling {url}") from e
        except aiohttp.ClientError as e:
            logger.warning(f"HTTP {method} {url} failed: {e}")
            raise TransientUpstreamError(f"Network error calling {url}: {e}") from e

    async def get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        return await self._request("GET", url, headers=headers, timeout=self._timeout(timeout))

    async def post_json(
        self,
        url: str,
        payload: Any,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        return await self._request("POST", url, json=payload, headers=headers, timeout=self._timeout(timeout))

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
            logger.debug("Closed aiohttp ClientSession.")
        self._session = None
