"""Domain models for sharing an item to external social clients."""

from dataclasses import dataclass
from enum import Enum


class HostKind(str, Enum):
    """Where the application is running, supplied by configuration."""
    MINI_APP = "mini_app"   # Embedded in a Farcaster/Warpcast style host
    MOBILE = "mobile"
    DESKTOP = "desktop"


class ShareTarget(str, Enum):
    FARCASTER = "farcaster"
    BASEAPP = "baseapp"


class ShareMode(str, Enum):
    ADD = "add"          # The artist announces a new piece
    COLLECT = "collect"  # A collector announces a purchase


class ShareStrategy(str, Enum):
    """How the share action is delivered for a given host and target."""
    FARCASTER_DEEP_LINK = "farcaster_deep_link"
    WARPCAST_COMPOSER = "warpcast_composer"
    BASEAPP_DEEP_LINK = "baseapp_deep_link"
    WEB_SHARE = "web_share"


@dataclass(frozen=True)
class HostEnvironment:
    """Descriptor of the running host, injected instead of probed."""
    kind: HostKind
    base_url: str
