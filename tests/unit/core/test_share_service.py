import pytest

from ledgerfeed.core.services.share_service import (
    ADD_MESSAGE, COLLECT_MESSAGE, PUBLIC_BASE_URL, ShareService, encode_component, share_text,
)
from ledgerfeed.domain.models.share import HostEnvironment, HostKind, ShareMode, ShareStrategy, ShareTarget

CONTRACT = "0x1111111111111111111111111111111111111111"


def service(kind: HostKind, base_url: str = "https://feria.example") -> ShareService:
    return ShareService(HostEnvironment(kind=kind, base_url=base_url))


def test_encode_component_matches_uri_component_rules():
    assert encode_component("a b&c/d?") == "a%20b%26c%2Fd%3F"
    assert encode_component("keep-_.!~*'()") == "keep-_.!~*'()"
    assert encode_component("¡") == "%C2%A1"


def test_share_text():
    assert share_text(ShareMode.ADD) == ADD_MESSAGE
    assert share_text(ShareMode.COLLECT, title="Noun 7", artist_username="zoe") == f'{COLLECT_MESSAGE} "Noun 7" by @zoe'


@pytest.mark.parametrize("kind, target, expected", [
    (HostKind.MINI_APP, ShareTarget.FARCASTER, [ShareStrategy.FARCASTER_DEEP_LINK, ShareStrategy.WARPCAST_COMPOSER]),
    (HostKind.MOBILE, ShareTarget.FARCASTER, [ShareStrategy.WARPCAST_COMPOSER]),
    (HostKind.DESKTOP, ShareTarget.FARCASTER, [ShareStrategy.WARPCAST_COMPOSER]),
    (HostKind.MOBILE, ShareTarget.BASEAPP, [ShareStrategy.BASEAPP_DEEP_LINK, ShareStrategy.WEB_SHARE]),
    (HostKind.MINI_APP, ShareTarget.BASEAPP, [ShareStrategy.WEB_SHARE]),
    (HostKind.DESKTOP, ShareTarget.BASEAPP, [ShareStrategy.WEB_SHARE]),
])
def test_strategy_selection(kind, target, expected):
    """Test that deep links come first and a web fallback is always last."""
    assert service(kind).strategies_for(target) == expected


def test_piece_url_uses_configured_base():
    assert service(HostKind.DESKTOP, "https://feria.example/").piece_url(CONTRACT, "7") == \
        f"https://feria.example/galeria/{CONTRACT}/7"


@pytest.mark.parametrize("base_url", ["http://localhost:3000", "http://127.0.0.1:8080", ""])
def test_local_base_url_is_replaced_by_public_one(base_url):
    assert service(HostKind.DESKTOP, base_url).base_url == PUBLIC_BASE_URL


def test_mini_app_farcaster_links():
    links = service(HostKind.MINI_APP).build_share_links(CONTRACT, "7", title="Noun", artist_username="zoe")

    piece = encode_component(f"https://feria.example/galeria/{CONTRACT}/7")
    text = encode_component(f'{ADD_MESSAGE} "Noun" by @zoe')
    assert links[0].url == f"farcaster://compose?text={text}&embeds[]={piece}"
    assert links[1].url == f"https://warpcast.com/~/compose?text={text}&embeds[]={piece}"
    assert all(link.text == f'{ADD_MESSAGE} "Noun" by @zoe' for link in links)


def test_web_share_link_is_the_piece_page():
    links = service(HostKind.DESKTOP).build_share_links(CONTRACT, "7", mode=ShareMode.COLLECT, target=ShareTarget.BASEAPP)
    assert len(links) == 1
    assert links[0].strategy == ShareStrategy.WEB_SHARE
    assert links[0].url == f"https://feria.example/galeria/{CONTRACT}/7"
    assert links[0].text == COLLECT_MESSAGE


def test_baseapp_deep_link_on_mobile():
    links = service(HostKind.MOBILE).build_share_links(CONTRACT, "7", target=ShareTarget.BASEAPP)
    assert links[0].url.startswith("baseapp://share?text=")
    assert links[0].url.endswith("&url=" + encode_component(f"https://feria.example/galeria/{CONTRACT}/7"))
