"""LedgerReader implementation using JSON-RPC ``eth_call``.

Only two view functions are needed:
- ``owner()``        selector 0x8da5cb5b, returns address
- ``uri(uint256)``   selector 0x0e89341c, returns string
"""

import logging
from typing import Any, List

from ledgerfeed.domain.interfaces.http_client import HttpClient
from ledgerfeed.domain.interfaces.ledger import LedgerReader
from ledgerfeed.domain.models.common import ZERO_ADDRESS, Address, MetadataUri, normalize_address
from ledgerfeed.domain.models.errors import MalformedResponseError, NotFoundError, TransientUpstreamError
from ledgerfeed.infrastructure.http.responses import check_status, parse_json

logger = logging.getLogger(__name__)

OWNER_SELECTOR = "0x8da5cb5b"
URI_SELECTOR = "0x0e89341c"
WORD_HEX_LENGTH = 64


def encode_uint256(value: int) -> str:
    if value < 0:
        raise ValueError("uint256 cannot be negative")
    return format(value, "x").rjust(WORD_HEX_LENGTH, "0")


def _strip_hex(data: str) -> str:
    if not isinstance(data, str) or not data.startswith("0x"):
        raise MalformedResponseError(f"Not a hex result: {data!r}")
    return data[2:]


def decode_address(data: str) -> Address:
    """Decodes an ABI-encoded address return value."""
    body = _strip_hex(data)
    if len(body) < 40:
        raise MalformedResponseError(f"Result too short for an address: {data!r}")
    return normalize_address("0x" + body[WORD_HEX_LENGTH - 40:WORD_HEX_LENGTH])


def decode_string(data: str) -> str:
    """Decodes an ABI-encoded dynamic string return value."""
    body = _strip_hex(data)
    try:
        offset = int(body[:WORD_HEX_LENGTH], 16) * 2
        length = int(body[offset:offset + WORD_HEX_LENGTH], 16) * 2
        start = offset + WORD_HEX_LENGTH
        raw = bytes.fromhex(body[start:start + length])
    except ValueError as e:
        raise MalformedResponseError(f"Cannot decode string result: {e}") from e
    if len(raw) * 2 != length:
        raise MalformedResponseError("String result is truncated")
    return raw.decode("utf-8", errors="replace")


class RpcLedgerReader(LedgerReader):
    """Reads contract state from a JSON-RPC node."""

    def __init__(self, http_client: HttpClient, rpc_url: str, timeout: float = 12.0):
        self.http_client = http_client
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._id = 1

    async def _call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params}
        self._id += 1
        response = await self.http_client.post_json(self.rpc_url, payload, timeout=self.timeout)
        check_status(response, "rpc")
        data = parse_json(response, "rpc")
        if not isinstance(data, dict):
            raise MalformedResponseError("RPC response is not an object")
        if "error" in data:
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            # Reverts are deterministic; anything else is treated as a node hiccup
            if message and "revert" in message.lower():
                raise NotFoundError(f"RPC call reverted: {message}")
            raise TransientUpstreamError(f"RPC error: {message}")
        return data.get("result")

    async def _eth_call(self, to: str, data: str) -> str:
        result = await self._call("eth_call", [{"to": to, "data": data}, "latest"])
        if result in (None, "0x"):
            raise NotFoundError(f"Empty eth_call result from {to}")
        return result

    async def owner_of(self, contract_ref: str) -> Address:
        result = await self._eth_call(contract_ref, OWNER_SELECTOR)
        owner = decode_address(result)
        if owner == ZERO_ADDRESS:
            raise NotFoundError(f"Contract {contract_ref} has no owner")
        logger.debug(f"owner() of {contract_ref} is {owner}")
        return owner

    async def metadata_uri_of(self, contract_ref: str, item_id: str) -> MetadataUri:
        try:
            token_id = int(str(item_id))
        except ValueError as e:
            raise ValueError(f"Item id is not an integer: {item_id!r}") from e
        result = await self._eth_call(contract_ref, URI_SELECTOR + encode_uint256(token_id))
        uri = decode_string(result).strip()
        if not uri:
            raise NotFoundError(f"Empty metadata URI for {contract_ref}/{item_id}")
        return MetadataUri(uri)
