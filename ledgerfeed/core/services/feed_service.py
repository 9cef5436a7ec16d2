"""Feed aggregation: pages of fully resolved items over the candidate list.

Lifecycle of the aggregator:

    IDLE -> HYDRATING -> LOADING(window) -> IDLE | EXHAUSTED

The RetryScheduler runs alongside and merges late successes into the
displayed set. Per window, owners are resolved in parallel (staggered
starts), identities with one batch call, and metadata strictly one item
after another.
"""

import asyncio
import logging
import random
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from ledgerfeed.core.services.feed_state import FeedStateStore
from ledgerfeed.core.services.identity_service import BatchIdentityResolver
from ledgerfeed.core.services.metadata_service import MetadataService
from ledgerfeed.core.services.owner_service import ContractOwnerResolver
from ledgerfeed.core.services.retry_scheduler import DEFAULT_RETRY_DELAY_SECONDS, RetryScheduler
from ledgerfeed.domain.interfaces.candidates import CandidateSource
from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.models.common import format_address
from ledgerfeed.domain.models.errors import LedgerFeedError, MetadataUnavailableError
from ledgerfeed.domain.models.feed import (
    ARTIST_MATCH_LIMIT, ARTIST_SCAN_LIMIT, PAGE_SIZE, UNKNOWN_IDENTITY,
    AuthorRecord, FeedPhase, FeedState, ItemConfig, ItemMetadata, ResolvedItem,
)

logger = logging.getLogger(__name__)

OWNER_STAGGER_SECONDS = 0.05
ITEM_DELAY_SECONDS = 0.05


def display_name_for(address: str, name: Optional[str]) -> str:
    """Username when known, otherwise the shortened address, otherwise "unknown"."""
    if name and name != UNKNOWN_IDENTITY:
        return name
    if address:
        return format_address(address)
    return UNKNOWN_IDENTITY


def build_item(config: ItemConfig, metadata: ItemMetadata, author: AuthorRecord) -> ResolvedItem:
    return ResolvedItem(
        name=metadata.name,
        description=metadata.description,
        image_url=metadata.image_url,
        author_address=author.address,
        author_display_name=author.display_name or UNKNOWN_IDENTITY,
        contract_ref=config.contract_ref,
        item_id=config.item_id,
    )


class FeedAggregator:
    """Loads, caches, retries and persists the feed as the user pages through it."""

    def __init__(
        self,
        candidates: CandidateSource,
        owner_resolver: ContractOwnerResolver,
        identity_resolver: BatchIdentityResolver,
        metadata_service: MetadataService,
        state_store: FeedStateStore,
        clock: Clock,
        page_size: int = PAGE_SIZE,
        owner_stagger: float = OWNER_STAGGER_SECONDS,
        item_delay: float = ITEM_DELAY_SECONDS,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        continuation_delay: Optional[float] = None,
        shuffle: Callable[[list], None] = random.shuffle,
    ):
        """Initializes the aggregator.

        Args:
            candidates: Backing list of feed items.
            owner_resolver: Resolves the authorial address of a contract.
            identity_resolver: Resolves display names for many addresses.
            metadata_service: Fetches item metadata.
            state_store: Session persistence of FeedState and authors.
            clock: Clock used for all delays and timers.
            page_size: Number of configs per window.
            owner_stagger: Start offset between owner lookups of one window.
            item_delay: Delay before each metadata fetch.
            retry_delay: Delay of the failure-queue timer.
            continuation_delay: If set, the next window loads this long after
                the previous one completes, until the feed is exhausted.
            shuffle: In-place list shuffler.
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1.")
        self.candidates = candidates
        self.owner_resolver = owner_resolver
        self.identity_resolver = identity_resolver
        self.metadata_service = metadata_service
        self.state_store = state_store
        self.clock = clock
        self.page_size = page_size
        self.owner_stagger = owner_stagger
        self.item_delay = item_delay
        self.retry_delay = retry_delay
        self.continuation_delay = continuation_delay
        self.shuffle = shuffle

        self.phase = FeedPhase.IDLE
        self.all_configs: List[ItemConfig] = []
        self.cursor = 0
        self._items: List[ResolvedItem] = []
        self._keys: Set[Tuple[str, str]] = set()
        self._loading = False
        self._continuation: Optional["asyncio.Task[None]"] = None
        self.retry_scheduler = RetryScheduler(
            resolve=self.resolve_config,
            on_success=self._on_retry_success,
            clock=clock,
        )

    # --- State ---

    @property
    def items(self) -> List[ResolvedItem]:
        return list(self._items)

    @property
    def has_more(self) -> bool:
        return self.cursor < len(self.all_configs)

    @property
    def is_loading(self) -> bool:
        return self._loading

    def _settled_phase(self) -> FeedPhase:
        return FeedPhase.IDLE if self.has_more else FeedPhase.EXHAUSTED

    def _reset_items(self, items: Sequence[ResolvedItem]) -> None:
        self._items = []
        self._keys = set()
        self._merge(items, rearm=False)

    def _merge(self, items: Sequence[ResolvedItem], rearm: bool = True) -> List[ResolvedItem]:
        """Appends items whose key is not displayed yet. Returns the added ones."""
        added = []
        for item in items:
            if item.key in self._keys:
                continue
            self._keys.add(item.key)
            self._items.append(item)
            added.append(item)
        if added and rearm:
            self.retry_scheduler.arm(self.retry_delay)
        return added

    def _persist(self) -> None:
        self.state_store.save(FeedState(
            resolved_items=list(self._items),
            all_configs=list(self.all_configs),
            cursor=self.cursor,
        ))

    # --- Lifecycle ---

    async def mount(self, fresh: bool = False) -> List[ResolvedItem]:
        """Restores the saved state or fetches the candidate list.

        Args:
            fresh: Ignore and discard any saved state.

        Returns:
            The items displayed after mounting.
        """
        self.phase = FeedPhase.HYDRATING
        state = None
        if fresh:
            self.state_store.clear()
        else:
            state = self.state_store.load()

        if state is not None:
            items = list(state.resolved_items)
            self.shuffle(items)
            # Loaded and unloaded configs are shuffled separately so the cursor keeps its meaning
            loaded, remaining = list(state.all_configs[:state.cursor]), list(state.all_configs[state.cursor:])
            self.shuffle(loaded)
            self.shuffle(remaining)
            self.all_configs = loaded + remaining
            self.cursor = state.cursor
            self._reset_items(items)
            logger.info(f"Restored feed state: {len(self._items)} item(s), cursor {self.cursor}/{len(self.all_configs)}")
        else:
            try:
                configs = await self.candidates.list_candidates()
            except LedgerFeedError as e:
                logger.error(f"Could not fetch the candidate list: {e}")
                configs = []
            configs = list(configs)
            self.shuffle(configs)
            self.all_configs = configs
            self.cursor = 0
            self._reset_items([])
            logger.info(f"Fetched {len(configs)} candidate(s).")
            self._persist()

        self.phase = self._settled_phase()
        self.retry_scheduler.open()
        self.retry_scheduler.arm(self.retry_delay)
        return self.items

    async def close(self) -> None:
        """Cancels pending timers. Resolutions already running are not interrupted."""
        if self._continuation is not None and not self._continuation.done():
            self._continuation.cancel()
        self._continuation = None
        self.retry_scheduler.close()

    # --- Loading ---

    async def load_more(self) -> List[ResolvedItem]:
        """Loads the next window of candidates.

        Returns:
            Items newly added to the displayed set (empty for a no-op).
        """
        if self._loading or not self.all_configs or not self.has_more:
            return []

        self._loading = True
        self.phase = FeedPhase.LOADING
        window = self.all_configs[self.cursor:self.cursor + self.page_size]
        added: List[ResolvedItem] = []
        try:
            resolved = await self._resolve_window(window)
            added = self._merge(resolved)
            self.cursor = min(self.cursor + len(window), len(self.all_configs))
            logger.info(
                f"Loaded window of {len(window)}: {len(added)} new item(s), "
                f"{len(self.retry_scheduler)} queued for retry, cursor {self.cursor}/{len(self.all_configs)}"
            )
        except Exception as e:
            logger.error(f"Loading the next window failed; cursor stays at {self.cursor}: {e}", exc_info=True)
            return []
        finally:
            self._loading = False
            self.phase = self._settled_phase()

        self._persist()
        self._schedule_continuation()
        return added

    async def notify_near_end(self) -> List[ResolvedItem]:
        """Presentation signal that the end of the visible window is near."""
        return await self.load_more()

    def _schedule_continuation(self) -> None:
        if self.continuation_delay is None or not self.has_more:
            return
        if self._continuation is not None and not self._continuation.done():
            return
        self._continuation = asyncio.ensure_future(self._continue_after(self.continuation_delay))

    async def _continue_after(self, delay: float) -> None:
        await self.clock.sleep(delay)
        # Detached before loading so close() leaves the load running
        self._continuation = None
        await self.load_more()

    # --- Resolution pipeline ---

    async def _resolve_owners(self, configs: Sequence[ItemConfig]) -> List[str]:
        async def _owner_after(index: int, config: ItemConfig) -> str:
            if index and self.owner_stagger > 0:
                await self.clock.sleep(index * self.owner_stagger)
            return await self.owner_resolver.resolve_owner(config.contract_ref)

        return list(await asyncio.gather(*(_owner_after(i, c) for i, c in enumerate(configs))))

    async def _resolve_authors(self, configs: Sequence[ItemConfig]) -> Dict[Tuple[str, str], AuthorRecord]:
        authors: Dict[Tuple[str, str], AuthorRecord] = {}
        pending: List[ItemConfig] = []
        for config in configs:
            record = self.state_store.load_author(config)
            if record is not None:
                authors[config.key] = record
            else:
                pending.append(config)

        if not pending:
            return authors

        owners = await self._resolve_owners(pending)
        known_owners = [owner for owner in owners if owner]
        names = await self.identity_resolver.resolve_many(known_owners) if known_owners else {}
        for config, owner in zip(pending, owners):
            authors[config.key] = AuthorRecord(address=owner, display_name=display_name_for(owner, names.get(owner)))
        return authors

    async def _resolve_items(
        self,
        configs: Sequence[ItemConfig],
        authors: Dict[Tuple[str, str], AuthorRecord],
    ) -> List[ResolvedItem]:
        items: List[ResolvedItem] = []
        for config in configs:
            if self.item_delay > 0:
                await self.clock.sleep(self.item_delay)
            author = authors.get(config.key) or AuthorRecord(address="", display_name=UNKNOWN_IDENTITY)
            try:
                metadata = await self.metadata_service.fetch_metadata(config)
            except MetadataUnavailableError as e:
                logger.warning(f"{e}; queued for retry")
                self.retry_scheduler.enqueue(config)
                continue
            if author.address:
                self.state_store.save_author(config, author)
            items.append(build_item(config, metadata, author))
        return items

    async def _resolve_window(self, configs: Sequence[ItemConfig]) -> List[ResolvedItem]:
        authors = await self._resolve_authors(configs)
        return await self._resolve_items(configs, authors)

    async def resolve_config(self, config: ItemConfig) -> ResolvedItem:
        """Fully resolves one item.

        Raises:
            MetadataUnavailableError: If its metadata cannot be fetched.
        """
        authors = await self._resolve_authors([config])
        author = authors[config.key]
        metadata = await self.metadata_service.fetch_metadata(config)
        if author.address:
            self.state_store.save_author(config, author)
        return build_item(config, metadata, author)

    def _on_retry_success(self, item: ResolvedItem) -> None:
        if self._merge([item]):
            logger.info(f"Recovered {item.contract_ref}/{item.item_id} from the retry queue")
            self._persist()

    # --- Queries ---

    def filter(self, query: str) -> List[ResolvedItem]:
        """Case-insensitive substring match over resolved items. No network."""
        needle = (query or "").strip().lower()
        if not needle:
            return self.items
        return [
            item for item in self._items
            if needle in item.name.lower()
            or needle in item.author_address.lower()
            or needle in item.author_display_name.lower()
        ]

    async def load_artist(self, query: str) -> List[ResolvedItem]:
        """Loads not-yet-displayed items whose author matches query.

        Owners are resolved for at most ARTIST_SCAN_LIMIT unloaded configs and
        at most ARTIST_MATCH_LIMIT matches are loaded.

        Returns:
            Matching items newly added to the displayed set.
        """
        needle = (query or "").strip().lower()
        if not needle or self._loading:
            return []

        self._loading = True
        self.phase = FeedPhase.LOADING
        try:
            scan = [config for config in self.all_configs if config.key not in self._keys][:ARTIST_SCAN_LIMIT]
            authors = await self._resolve_authors(scan)
            matches = []
            for config in scan:
                author = authors[config.key]
                if not author.address:
                    continue
                if needle in author.address.lower() or needle in author.display_name.lower():
                    matches.append(config)
                    if len(matches) >= ARTIST_MATCH_LIMIT:
                        break
            logger.info(f"Artist query '{query}': scanned {len(scan)}, matched {len(matches)}")
            added = self._merge(await self._resolve_items(matches, authors))
        except Exception as e:
            logger.error(f"Artist load for '{query}' failed: {e}", exc_info=True)
            return []
        finally:
            self._loading = False
            self.phase = self._settled_phase()

        if added:
            self._persist()
        return added
