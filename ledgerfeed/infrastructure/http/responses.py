"""Mapping of HTTP responses onto the ledgerfeed error taxonomy."""

from typing import Any

from ledgerfeed.domain.interfaces.http_client import HttpResponse
from ledgerfeed.domain.models.errors import (
    MalformedResponseError, NotFoundError, RateLimitedError, TransientUpstreamError,
)


def _retry_after(response: HttpResponse):
    for name, value in response.headers.items():
        if name.lower() == "retry-after":
            try:
                return float(value)
            except ValueError:
                return None
    return None


def check_status(response: HttpResponse, source: str) -> None:
    """Raises the matching error for a non-2xx response.

    Raises:
        RateLimitedError: On 429.
        NotFoundError: On 404.
        TransientUpstreamError: On 5xx and any other non-2xx status.
    """
    if response.ok:
        return
    if response.status == 429:
        raise RateLimitedError(f"{source} rate limited the request", retry_after=_retry_after(response))
    if response.status == 404:
        raise NotFoundError(f"{source} returned 404")
    raise TransientUpstreamError(f"{source} returned HTTP {response.status}", status=response.status)


def parse_json(response: HttpResponse, source: str) -> Any:
    """Parses the body as JSON.

    Raises:
        MalformedResponseError: If the body is not JSON.
    """
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(f"{source} returned a non-JSON body") from e
