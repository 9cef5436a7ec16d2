import asyncio

import pytest

from ledgerfeed.domain.interfaces.http_client import HttpResponse
from ledgerfeed.domain.models.errors import TransientUpstreamError
from ledgerfeed.infrastructure.gateway.gateway_fetcher import ALL_GATEWAYS_FAILED, GatewayFetcher

URLS = ["https://gw1/doc", "https://gw2/doc", "https://gw3/doc"]


@pytest.fixture
def fetcher(fake_http):
    return GatewayFetcher(fake_http, timeout=1.0)


@pytest.mark.asyncio
async def test_first_success_wins(fetcher, fake_http, respond):
    fake_http.route(URLS[0], respond.json({"name": "a"}))
    result = await fetcher.resolve_resource(URLS)
    assert result.ok
    assert result.payload == {"name": "a"}
    assert result.used_url == URLS[0]
    assert fake_http.calls == [URLS[0]]


@pytest.mark.asyncio
async def test_falls_back_in_order_until_one_answers(fetcher, fake_http, respond):
    """Test that failing locations are tried strictly in list order."""
    fake_http.route(URLS[0], respond.json({}, status=502))
    fake_http.route(URLS[1], TransientUpstreamError("connection reset"))
    fake_http.route(URLS[2], respond.json({"name": "c"}))

    result = await fetcher.resolve_resource(URLS)

    assert result.ok
    assert result.used_url == URLS[2]
    assert fake_http.calls == URLS


@pytest.mark.asyncio
async def test_all_failures_reported(fetcher, fake_http):
    result = await fetcher.resolve_resource(URLS)
    assert not result.ok
    assert result.error == ALL_GATEWAYS_FAILED
    assert result.payload is None
    assert fake_http.calls == URLS


@pytest.mark.asyncio
async def test_non_json_content_type_is_salvaged_when_body_looks_like_json(fetcher, fake_http, respond):
    fake_http.route(URLS[0], respond.text('  {"name": "plain"}'))
    result = await fetcher.resolve_resource(URLS)
    assert result.payload == {"name": "plain"}


@pytest.mark.asyncio
async def test_html_and_broken_json_are_skipped(fetcher, fake_http, respond):
    fake_http.route(URLS[0], respond.text("<html>gateway error</html>", content_type="text/html"))
    fake_http.route(URLS[1], respond.text("{not json", content_type="application/json"))
    fake_http.route(URLS[2], respond.json(["ok"]))
    result = await fetcher.resolve_resource(URLS)
    assert result.used_url == URLS[2]
    assert result.payload == ["ok"]


@pytest.mark.asyncio
async def test_timeout_aborts_only_that_attempt(fake_http, respond):
    """Test that a hanging gateway is abandoned and the next one is used."""

    class SlowFirstGateway(type(fake_http)):
        async def get(self, url, headers=None, timeout=None):
            if url == URLS[0]:
                await asyncio.sleep(5)
            return await super().get(url, headers=headers, timeout=timeout)

    http = SlowFirstGateway()
    http.route(URLS[1], respond.json({"name": "b"}))
    fetcher = GatewayFetcher(http, timeout=0.01)

    result = await fetcher.resolve_resource(URLS)

    assert result.ok
    assert result.used_url == URLS[1]


@pytest.mark.asyncio
async def test_empty_list_fails(fetcher):
    result = await fetcher.resolve_resource([])
    assert not result.ok


@pytest.mark.asyncio
async def test_passes_timeout_to_transport(mocker):
    http = mocker.MagicMock()
    http.get = mocker.AsyncMock(return_value=HttpResponse(200, '{"a": 1}', {"content-type": "application/json"}))
    fetcher = GatewayFetcher(http, timeout=7.0)
    await fetcher.resolve_resource(URLS[:1])
    assert http.get.await_args.kwargs["timeout"] == 7.0


@pytest.mark.asyncio
async def test_image_answer_is_accepted_as_the_resource(fetcher, fake_http, respond):
    fake_http.route(URLS[0], respond.text("\x89PNG...", content_type="image/png"))
    result = await fetcher.resolve_resource(URLS)
    assert result.ok
    assert result.is_image
    assert result.payload is None
    assert result.used_url == URLS[0]
    assert result.content_type == "image/png"
    assert fake_http.calls == [URLS[0]]


@pytest.mark.asyncio
async def test_binary_body_without_image_type_counts_as_image(fetcher, fake_http, respond):
    fake_http.route(URLS[0], respond.text("\ufffd\ufffdJFIF", content_type="application/octet-stream"))
    result = await fetcher.resolve_resource(URLS)
    assert result.is_image
