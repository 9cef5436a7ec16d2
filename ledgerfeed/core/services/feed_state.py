"""Session persistence of the feed state and of per-item authors."""

import logging
from dataclasses import asdict
from typing import Optional

from ledgerfeed.domain.interfaces.cache import CacheStore
from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.models.common import CacheKey
from ledgerfeed.domain.models.feed import FEED_STATE_TTL_SECONDS, AuthorRecord, FeedState, ItemConfig

logger = logging.getLogger(__name__)

FEED_STATE_KEY = CacheKey("feed_state")
AUTHOR_TTL_SECONDS = 30 * 60  # 30 minutes


def author_key(config: ItemConfig) -> CacheKey:
    contract_ref, item_id = config.key
    return CacheKey(f"author:{contract_ref}:{item_id}")


class FeedStateStore:
    """Saves and restores FeedState in a session-scoped store.

    Expired or unreadable entries are deleted and reported as absent.
    """

    def __init__(self, store: CacheStore, clock: Clock, ttl: float = FEED_STATE_TTL_SECONDS):
        self.store = store
        self.clock = clock
        self.ttl = ttl

    def save(self, state: FeedState) -> None:
        state.timestamp = self.clock.now_ms()
        self.store.set(FEED_STATE_KEY, state.to_dict(), ttl=self.ttl)
        logger.debug(f"Saved feed state: {len(state.resolved_items)} item(s), cursor {state.cursor}/{len(state.all_configs)}")

    def load(self) -> Optional[FeedState]:
        entry = self.store.get(FEED_STATE_KEY)
        if entry is None:
            return None
        if not entry.is_fresh(self.clock.now_ms(), self.ttl):
            logger.info("Saved feed state expired; discarding it.")
            self.store.delete(FEED_STATE_KEY)
            return None
        try:
            state = FeedState.from_dict(entry.value)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Saved feed state is unreadable; discarding it: {e}")
            self.store.delete(FEED_STATE_KEY)
            return None
        state.timestamp = entry.timestamp
        return state

    def clear(self) -> None:
        self.store.delete(FEED_STATE_KEY)

    def save_author(self, config: ItemConfig, record: AuthorRecord) -> None:
        self.store.set(author_key(config), asdict(record), ttl=AUTHOR_TTL_SECONDS)

    def load_author(self, config: ItemConfig) -> Optional[AuthorRecord]:
        key = author_key(config)
        if not self.store.has_fresh(key, AUTHOR_TTL_SECONDS):
            return None
        entry = self.store.get(key)
        value = entry.value if entry is not None else None
        if not isinstance(value, dict) or not value.get("address"):
            return None
        return AuthorRecord(address=value["address"], display_name=value.get("display_name") or "")
