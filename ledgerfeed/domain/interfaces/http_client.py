"""Interface for the HTTP transport used by all network adapters."""

import abc
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class HttpResponse:
    """Transport independent view of an HTTP response."""
    status: int
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value.lower()
        return ""

    def json(self) -> Any:
        return json.loads(self.text)


class HttpClient(abc.ABC):
    """Abstract Base Class for asynchronous HTTP requests."""

    @abc.abstractmethod
    async def get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """Issues a GET request.

        Raises:
            TransientUpstreamError: On network failure or timeout.
        """
        pass

    @abc.abstractmethod
    async def post_json(
        self,
        url: str,
        payload: Any,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """Issues a POST request with a JSON body."""
        pass

    async def close(self) -> None:
        """Releases any pooled connections."""
        pass
