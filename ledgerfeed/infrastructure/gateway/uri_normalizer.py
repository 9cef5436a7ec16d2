"""Normalization of content URIs into fetchable gateway URLs."""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ARWEAVE_GATEWAYS = [
    "https://arweave.net/",
    "https://ar-io.net/",
    "https://gateway.irys.xyz/",
]
IPFS_GATEWAYS = [
    "https://ipfs.io/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
]
DATA_JSON_PREFIX = "data:application/json;base64,"
ID_PLACEHOLDER = "{id}"

NESTED_URI_FIELDS = ("image", "animation_url")


@dataclass
class NormalizedUri:
    """Result of normalizing one URI.

    kind is "http" (fetch urls in order), "data" (inline document in
    data_json) or "invalid".
    """
    kind: str
    urls: List[str] = field(default_factory=list)
    data_json: Any = None


def normalize_uri(uri: Optional[str], item_id: Optional[str] = None) -> NormalizedUri:
    """Turns a ledger URI into an ordered list of gateway URLs.

    Args:
        uri: Raw URI (ar://, ipfs://, http(s)://, data:application/json;base64,...).
        item_id: When given, replaces the {id} placeholder.

    Returns:
        The NormalizedUri; never raises.
    """
    if not uri or not uri.strip():
        return NormalizedUri(kind="invalid")

    uri = uri.strip()
    if item_id is not None:
        uri = uri.replace(ID_PLACEHOLDER, str(item_id))

    if uri.startswith("data:"):
        if not uri.startswith(DATA_JSON_PREFIX):
            return NormalizedUri(kind="invalid")
        encoded = uri[len(DATA_JSON_PREFIX):]
        try:
            decoded = base64.b64decode(encoded).decode("utf-8")
            return NormalizedUri(kind="data", data_json=json.loads(decoded))
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Could not decode inline data URI: {e}")
            return NormalizedUri(kind="invalid")

    if uri.startswith("ar://"):
        tx_id = uri[len("ar://"):]
        return NormalizedUri(kind="http", urls=[f"{gateway}{tx_id}" for gateway in ARWEAVE_GATEWAYS])

    if uri.startswith("ipfs://"):
        cid = uri[len("ipfs://"):]
        return NormalizedUri(kind="http", urls=[f"{gateway}{cid}" for gateway in IPFS_GATEWAYS])

    if uri.startswith("http://") or uri.startswith("https://"):
        return NormalizedUri(kind="http", urls=[uri])

    logger.debug(f"Unsupported URI scheme: {uri[:40]}")
    return NormalizedUri(kind="invalid")


def normalize_nested_uri(uri: Optional[str]) -> Optional[str]:
    """Rewrites an ar:// or ipfs:// link found inside a document to its first gateway."""
    if not uri:
        return uri
    if uri.startswith("ar://"):
        return f"{ARWEAVE_GATEWAYS[0]}{uri[len('ar://'):]}"
    if uri.startswith("ipfs://"):
        return f"{IPFS_GATEWAYS[0]}{uri[len('ipfs://'):]}"
    return uri


def normalize_document_uris(document: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a copy of a metadata document with its media links rewritten."""
    normalized = dict(document)
    for key in NESTED_URI_FIELDS:
        value = normalized.get(key)
        if isinstance(value, str):
            normalized[key] = normalize_nested_uri(value)
    return normalized
