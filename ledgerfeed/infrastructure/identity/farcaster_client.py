"""Client for the Farcaster username endpoints of the application API.

- GET /api/farcaster/username?address=      -> {"username": str | null}
- GET /api/farcaster/usernames?addresses=a,b -> {"usernames": {...}, "rateLimited"?: bool}
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import urlencode

from ledgerfeed.domain.interfaces.http_client import HttpClient
from ledgerfeed.domain.interfaces.identity import BatchIdentityLookup, IdentityLookup, UsernameBatch
from ledgerfeed.domain.models.common import normalize_address
from ledgerfeed.domain.models.errors import MalformedResponseError
from ledgerfeed.infrastructure.http.responses import check_status, parse_json

logger = logging.getLogger(__name__)

USERNAME_PATH = "/api/farcaster/username"
USERNAMES_PATH = "/api/farcaster/usernames"


class FarcasterUsernameClient(IdentityLookup, BatchIdentityLookup):
    """Primary identity service: wallet address to Farcaster username."""

    name = "farcaster"

    def __init__(self, http_client: HttpClient, base_url: str, timeout: Optional[float] = None):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def lookup(self, address: str) -> Optional[str]:
        url = f"{self.base_url}{USERNAME_PATH}?{urlencode({'address': address})}"
        response = await self.http_client.get(url, timeout=self.timeout)
        check_status(response, "farcaster username")
        data = parse_json(response, "farcaster username")
        if not isinstance(data, dict):
            raise MalformedResponseError("farcaster username response is not an object")
        username = data.get("username")
        return username or None

    async def lookup_many(self, addresses: List[str]) -> UsernameBatch:
        """Bulk lookup. Addresses unknown to the service may be absent or null.

        Raises:
            RateLimitedError: On 429. A body with rateLimited=true is returned as a flagged batch.
        """
        if not addresses:
            return UsernameBatch()
        url = f"{self.base_url}{USERNAMES_PATH}?{urlencode({'addresses': ','.join(addresses)})}"
        response = await self.http_client.get(url, timeout=self.timeout)
        check_status(response, "farcaster usernames")
        data = parse_json(response, "farcaster usernames")
        if not isinstance(data, dict):
            raise MalformedResponseError("farcaster usernames response is not an object")

        raw = data.get("usernames") or {}
        if not isinstance(raw, dict):
            raise MalformedResponseError("'usernames' field is not an object")
        usernames: Dict[str, Optional[str]] = {
            normalize_address(addr): (value or None) for addr, value in raw.items()
        }
        rate_limited = bool(data.get("rateLimited", False))
        if rate_limited:
            logger.warning(f"Farcaster batch lookup flagged as rate limited ({len(addresses)} addresses).")
        return UsernameBatch(usernames=usernames, rate_limited=rate_limited)
