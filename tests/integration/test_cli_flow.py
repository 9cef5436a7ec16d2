from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from typer.testing import CliRunner

from ledgerfeed import main
from ledgerfeed.infrastructure.config.settings import set_config_for_testing
from ledgerfeed.infrastructure.ledger.rpc_ledger import OWNER_SELECTOR, URI_SELECTOR
from ledgerfeed.main import app

# Wires the real composition root against in-memory fakes:
# FakeHttpClient for every network call, FakeClock for delays,
# a mocked ConsoleDisplay to observe output. Caches live in tmp_path.

API = "http://api.test"
RPC = "https://rpc.test"
CONTRACT = "0x1111111111111111111111111111111111111111"
OWNER = "0x00000000000000000000000000000000000000aa"
ITEM_IDS = ["1", "2", "3"]


def rpc_word(hex_body: str) -> str:
    return hex_body.rjust(64, "0")


def rpc_string(value: str) -> str:
    raw = value.encode("utf-8").hex()
    return "0x" + rpc_word("20") + rpc_word(format(len(value), "x")) + raw.ljust(((len(raw) + 63) // 64) * 64, "0")


@pytest.fixture
def mock_console_display(mocker):
    """Patches ConsoleDisplay in the composition root."""
    display = MagicMock()
    mocker.patch("ledgerfeed.main.ConsoleDisplay", return_value=display)
    return display

@pytest.fixture
def network(fake_http, respond):
    """Answers the gallery, identity, RPC and gateway endpoints."""
    fake_http.route(f"{API}/api/gallery/list", respond.json({
        "items": [{"contractRef": CONTRACT, "itemId": item_id} for item_id in ITEM_IDS],
    }))
    for item_id in ITEM_IDS:
        fake_http.route(f"https://meta.test/{item_id}", respond.json({"name": f"Noun {item_id}", "image": "ar://img"}))

    def _get(url):
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        if parsed.path == "/api/farcaster/usernames":
            addresses = query["addresses"][0].split(",")
            return respond.json({"usernames": {a: ("alice" if a == OWNER else None) for a in addresses}})
        if parsed.path == "/api/farcaster/username":
            return respond.json({"username": "alice" if query["address"][0] == OWNER else None})
        if parsed.path == "/api/basename":
            return respond.json({"name": None})
        if parsed.path == "/api/gallery/check":
            return respond.json({"inGallery": query["tokenId"][0] in ITEM_IDS})
        return respond.json({}, status=404)

    def _post(url, payload):
        data = payload["params"][0]["data"]
        if data == OWNER_SELECTOR:
            result = "0x" + rpc_word(OWNER[2:])
        elif data.startswith(URI_SELECTOR):
            result = rpc_string("https://meta.test/{id}")
        else:
            result = "0x"
        return respond.json({"jsonrpc": "2.0", "id": payload["id"], "result": result})

    fake_http.get_handler = _get
    fake_http.post_handler = _post
    return fake_http

@pytest.fixture
def wired(network, clock, mock_console_display, mocker, monkeypatch, tmp_path):
    """Runs the real create_dependencies with fakes substituted for I/O."""
    set_config_for_testing({
        "api.base_url": API,
        "ledger.rpc_url": RPC,
        "cache.dir": str(tmp_path / "cache"),
        "share.host_kind": "desktop",
        "share.base_url": "https://feria.example",
        "logging.level": "WARNING",
    })
    mocker.patch("ledgerfeed.main.AiohttpClient", return_value=network)
    mocker.patch("ledgerfeed.main.SystemClock", return_value=clock)
    mocker.patch("ledgerfeed.main.setup_logging")
    monkeypatch.setattr(main, "_dependencies", None)
    return mock_console_display


def test_feed_command_flow(runner: CliRunner, wired: MagicMock, network):
    """Test the full flow for the 'feed' command."""
    result = runner.invoke(app, ["feed", "--pages", "1"])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    wired.display_error.assert_not_called()
    items = wired.display_items.call_args.args[0]
    assert sorted(item.item_id for item in items) == ITEM_IDS
    assert all(item.author_display_name == "alice" for item in items)
    assert all(item.image_url == "https://arweave.net/img" for item in items)
    assert wired.display_items.call_args.kwargs["title"] == "Feria Nounish"
    assert "end of feed" in wired.display_info.call_args.args[0]
    assert network.closed

def test_owner_command_flow(runner: CliRunner, wired: MagicMock):
    result = runner.invoke(app, ["owner", CONTRACT])
    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    wired.display_output.assert_called_once_with(f"{OWNER} (alice)", title=f"Owner of {CONTRACT}")

def test_name_command_unknown_address(runner: CliRunner, wired: MagicMock):
    result = runner.invoke(app, ["name", "0x00000000000000000000000000000000000000ff"])
    assert result.exit_code == 0
    wired.display_warning.assert_called_once()

def test_metadata_command_flow(runner: CliRunner, wired: MagicMock):
    result = runner.invoke(app, ["metadata", CONTRACT, "2"])
    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    output = wired.display_output.call_args.args[0]
    assert "Name: Noun 2" in output
    assert "Source: https://meta.test/2" in output
    assert "In gallery: yes" in output

def test_share_command_flow(runner: CliRunner, wired: MagicMock):
    """Test that a desktop Base App share falls back to the piece page."""
    result = runner.invoke(app, ["share", CONTRACT, "1", "--target", "baseapp", "--mode", "collect"])
    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    wired.display_links.assert_called_once_with(
        [f"https://feria.example/galeria/{CONTRACT}/1"], title="Share on baseapp",
    )
    message = wired.display_output.call_args.args[0]
    assert '"Noun 1" by @alice' in message

def test_share_command_rejects_unknown_target(runner: CliRunner, wired: MagicMock):
    result = runner.invoke(app, ["share", CONTRACT, "1", "--target", "myspace"])
    assert result.exit_code != 0

def test_clear_cache_invalid_level(runner: CliRunner, wired: MagicMock):
    result = runner.invoke(app, ["clear-cache", "--level", "everything"])
    assert result.exit_code == 0
    wired.display_error.assert_called_once()

def test_clear_cache_all(runner: CliRunner, wired: MagicMock):
    result = runner.invoke(app, ["clear-cache"])
    assert result.exit_code == 0
    wired.display_info.assert_called_once_with("Cache level 'all' cleared successfully.")

def test_handler_crash_exits_with_error(runner: CliRunner, wired: MagicMock, mocker):
    """Test that an unexpected exception is reported and exits with code 1."""
    mocker.patch("ledgerfeed.core.command_handler.CommandHandler.handle_name", side_effect=RuntimeError("kaput"))
    result = runner.invoke(app, ["name", OWNER])
    assert result.exit_code == 1
    wired.display_error.assert_called_once_with("Command execution failed: kaput")
