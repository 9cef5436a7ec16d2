import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from typer.testing import CliRunner

from ledgerfeed.domain.interfaces.candidates import CandidateSource
from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.interfaces.http_client import HttpClient, HttpResponse
from ledgerfeed.domain.interfaces.ledger import LedgerReader
from ledgerfeed.domain.models.common import Address, MetadataUri, normalize_address
from ledgerfeed.domain.models.errors import TransientUpstreamError
from ledgerfeed.domain.models.feed import ItemConfig
from ledgerfeed.infrastructure.cache.stores import MemoryKeyValueStore, TimestampedCacheStore
from ledgerfeed.infrastructure.config.settings import clear_test_config

START_TIME = 1_700_000_000.0


class FakeClock(Clock):
    """Deterministic clock.

    Sleeps up to auto_advance_limit seconds complete at once and move time
    forward. Longer sleeps (timers) block until advance() passes their deadline.
    """

    def __init__(self, start: float = START_TIME, auto_advance_limit: float = 5.0):
        self.now = start
        self.auto_advance_limit = auto_advance_limit
        self.sleeps: List[float] = []
        self._waiters: List[Tuple[float, asyncio.Future]] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds <= self.auto_advance_limit:
            self.now += max(seconds, 0)
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + seconds, future))
        await future

    async def _settle(self, steps: int) -> None:
        for _ in range(steps):
            await asyncio.sleep(0)

    async def advance(self, seconds: float, settle_steps: int = 200) -> None:
        # Let freshly started timers register their deadlines first
        await self._settle(settle_steps)
        self.now += seconds
        remaining = []
        for deadline, future in self._waiters:
            if future.done():
                continue
            if deadline <= self.now:
                future.set_result(None)
            else:
                remaining.append((deadline, future))
        self._waiters = remaining
        await self._settle(settle_steps)


def json_response(data: Any, status: int = 200, content_type: str = "application/json") -> HttpResponse:
    return HttpResponse(status=status, text=json.dumps(data), headers={"Content-Type": content_type})


def text_response(text: str, status: int = 200, content_type: str = "text/plain") -> HttpResponse:
    return HttpResponse(status=status, text=text, headers={"Content-Type": content_type})


class FakeHttpClient(HttpClient):
    """HttpClient answering from a routing table and recording every call.

    A route holds a list of responses served in order; the last one repeats.
    An Exception instance in the list is raised instead of returned.
    Unknown URLs go to get_handler when set, otherwise answer 404.
    """

    def __init__(self):
        self.routes: Dict[str, List[Any]] = {}
        self.calls: List[str] = []
        self.posts: List[Tuple[str, Any]] = []
        self.get_handler: Optional[Callable[[str], Any]] = None
        self.post_handler: Optional[Callable[[str, Any], Any]] = None
        self.closed = False

    def route(self, url: str, *responses: Any) -> None:
        self.routes[url] = list(responses)

    def _next(self, url: str) -> Any:
        responses = self.routes.get(url)
        if not responses:
            if self.get_handler is not None:
                return self.get_handler(url)
            return HttpResponse(status=404, text="not found")
        return responses.pop(0) if len(responses) > 1 else responses[0]

    async def get(self, url, headers=None, timeout=None) -> HttpResponse:
        self.calls.append(url)
        await asyncio.sleep(0)
        response = self._next(url)
        if isinstance(response, Exception):
            raise response
        return response

    async def post_json(self, url, payload, headers=None, timeout=None) -> HttpResponse:
        self.posts.append((url, payload))
        await asyncio.sleep(0)
        response = self.post_handler(url, payload) if self.post_handler else self._next(url)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class StubLedger(LedgerReader):
    """In-memory ledger. Values that are Exceptions are raised."""

    def __init__(self):
        self.owners: Dict[str, Any] = {}
        self.uris: Dict[Tuple[str, str], Any] = {}
        self.owner_calls: List[str] = []
        self.uri_calls: List[Tuple[str, str]] = []

    async def owner_of(self, contract_ref: str) -> Address:
        self.owner_calls.append(contract_ref)
        await asyncio.sleep(0)
        value = self.owners.get(normalize_address(contract_ref), TransientUpstreamError("no such contract"))
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, Exception):
            raise value
        return Address(value)

    async def metadata_uri_of(self, contract_ref: str, item_id: str) -> MetadataUri:
        self.uri_calls.append((contract_ref, item_id))
        await asyncio.sleep(0)
        value = self.uris.get((normalize_address(contract_ref), str(item_id)), TransientUpstreamError("no uri"))
        if isinstance(value, Exception):
            raise value
        return MetadataUri(value)


class StubCandidates(CandidateSource):
    def __init__(self, configs: Optional[List[ItemConfig]] = None):
        self.configs = list(configs or [])
        self.list_calls = 0

    async def list_candidates(self) -> List[ItemConfig]:
        self.list_calls += 1
        return list(self.configs)

    async def contains(self, config: ItemConfig) -> bool:
        return any(c.key == config.key for c in self.configs)


def make_address(n: int) -> str:
    return "0x" + format(n, "x").rjust(40, "0")


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def fake_http():
    return FakeHttpClient()

@pytest.fixture
def stub_ledger():
    return StubLedger()

@pytest.fixture
def stub_candidates_factory():
    return StubCandidates

@pytest.fixture
def memory_store(clock):
    return TimestampedCacheStore(MemoryKeyValueStore(), clock, name="memory")

@pytest.fixture
def durable_store(clock):
    return TimestampedCacheStore(MemoryKeyValueStore(), clock, name="durable")

@pytest.fixture
def session_store(clock):
    return TimestampedCacheStore(MemoryKeyValueStore(), clock, name="session")

@pytest.fixture
def address():
    """Factory for distinct, valid looking addresses."""
    return make_address

@pytest.fixture
def respond():
    """Response builders: respond.json(data), respond.text(text)."""
    class _Respond:
        json = staticmethod(json_response)
        text = staticmethod(text_response)
    return _Respond

@pytest.fixture(autouse=True)
def reset_test_config():
    """Ensure configuration overrides never leak between tests."""
    yield
    clear_test_config()
