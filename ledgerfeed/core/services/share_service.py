"""Builds share links for an item.

The delivery strategy depends on the host (mini app, mobile, desktop) and
the target client. The host is described by an injected HostEnvironment;
nothing is probed at runtime. Links are returned in the order they should
be tried: deep link first, web fallback last.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote, urlparse

from ledgerfeed.domain.models.share import HostEnvironment, HostKind, ShareMode, ShareStrategy, ShareTarget

logger = logging.getLogger(__name__)

PUBLIC_BASE_URL = "https://ferianounish.vercel.app"
LOCAL_HOSTS = ("localhost", "127.0.0.1")
WARPCAST_COMPOSE_URL = "https://warpcast.com/~/compose"

ADD_MESSAGE = "Mira mi nueva pieza para la Feria Nounish!"
COLLECT_MESSAGE = "¡Mira la pieza de la Feria Nounish que acabo de coleccionar!"


@dataclass(frozen=True)
class ShareLink:
    """One way of sharing: a URL to open plus the message it carries."""
    strategy: ShareStrategy
    url: str
    text: str


def encode_component(value: str) -> str:
    """Percent-encodes like JavaScript's encodeURIComponent."""
    return quote(value, safe="-_.!~*'()")


def share_text(mode: ShareMode, title: Optional[str] = None, artist_username: Optional[str] = None) -> str:
    """Message announcing a newly added or freshly collected piece."""
    message = ADD_MESSAGE if mode == ShareMode.ADD else COLLECT_MESSAGE
    if title:
        message = f'{message} "{title}"'
    if artist_username:
        message = f"{message} by @{artist_username}"
    return message


class ShareService:
    """Chooses the share strategy for the configured host."""

    def __init__(self, environment: HostEnvironment):
        self.environment = environment

    @property
    def base_url(self) -> str:
        base = (self.environment.base_url or "").rstrip("/")
        if not base or urlparse(base).hostname in LOCAL_HOSTS:
            return PUBLIC_BASE_URL
        return base

    def piece_url(self, contract_ref: str, item_id: str) -> str:
        return f"{self.base_url}/galeria/{contract_ref}/{item_id}"

    def strategies_for(self, target: ShareTarget) -> List[ShareStrategy]:
        kind = self.environment.kind
        if target == ShareTarget.FARCASTER:
            if kind == HostKind.MINI_APP:
                return [ShareStrategy.FARCASTER_DEEP_LINK, ShareStrategy.WARPCAST_COMPOSER]
            return [ShareStrategy.WARPCAST_COMPOSER]
        if kind == HostKind.MOBILE:
            return [ShareStrategy.BASEAPP_DEEP_LINK, ShareStrategy.WEB_SHARE]
        return [ShareStrategy.WEB_SHARE]

    def _link(self, strategy: ShareStrategy, text: str, url: str) -> ShareLink:
        text_param = encode_component(text)
        url_param = encode_component(url)
        if strategy == ShareStrategy.FARCASTER_DEEP_LINK:
            return ShareLink(strategy, f"farcaster://compose?text={text_param}&embeds[]={url_param}", text)
        if strategy == ShareStrategy.WARPCAST_COMPOSER:
            return ShareLink(strategy, f"{WARPCAST_COMPOSE_URL}?text={text_param}&embeds[]={url_param}", text)
        if strategy == ShareStrategy.BASEAPP_DEEP_LINK:
            return ShareLink(strategy, f"baseapp://share?text={text_param}&url={url_param}", text)
        return ShareLink(strategy, url, text)

    def build_share_links(
        self,
        contract_ref: str,
        item_id: str,
        mode: ShareMode = ShareMode.ADD,
        target: ShareTarget = ShareTarget.FARCASTER,
        title: Optional[str] = None,
        artist_username: Optional[str] = None,
    ) -> List[ShareLink]:
        """Returns the share links for one piece, most preferred first."""
        text = share_text(mode, title, artist_username)
        url = self.piece_url(contract_ref, item_id)
        links = [self._link(strategy, text, url) for strategy in self.strategies_for(target)]
        logger.debug(f"Share links for {contract_ref}/{item_id} ({target.value}, {self.environment.kind.value}): {len(links)}")
        return links
