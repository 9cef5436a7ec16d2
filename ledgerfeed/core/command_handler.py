"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates
the work to the appropriate application services (FeedAggregator, identity,
owner, metadata and share services), reporting through the UserInterface.
"""

import logging
from typing import Dict, List, Optional

from ledgerfeed.core.services.feed_service import FeedAggregator
from ledgerfeed.core.services.identity_service import IdentityResolver
from ledgerfeed.core.services.metadata_service import MetadataService
from ledgerfeed.core.services.owner_service import ContractOwnerResolver
from ledgerfeed.core.services.share_service import ShareService
from ledgerfeed.domain.interfaces.cache import CacheStore
from ledgerfeed.domain.interfaces.candidates import CandidateSource
from ledgerfeed.domain.interfaces.user_interface import UserInterface
from ledgerfeed.domain.models.errors import LedgerFeedError, MetadataUnavailableError
from ledgerfeed.domain.models.feed import UNKNOWN_IDENTITY, ItemConfig
from ledgerfeed.domain.models.share import ShareMode, ShareTarget

logger = logging.getLogger(__name__)

CACHE_LEVELS = ("durable", "session", "all")


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        aggregator: FeedAggregator,
        identity_resolver: IdentityResolver,
        owner_resolver: ContractOwnerResolver,
        metadata_service: MetadataService,
        share_service: ShareService,
        candidates: CandidateSource,
        cache_stores: Dict[str, List[CacheStore]],
        ui: UserInterface,
    ):
        """Initializes the CommandHandler with required services.

        Args:
            cache_stores: Cache tiers by level name ('durable', 'session').
        """
        self.aggregator = aggregator
        self.identity_resolver = identity_resolver
        self.owner_resolver = owner_resolver
        self.metadata_service = metadata_service
        self.share_service = share_service
        self.candidates = candidates
        self.cache_stores = cache_stores
        self.ui = ui

    def _report_progress(self) -> None:
        aggregator = self.aggregator
        status = "more available" if aggregator.has_more else "end of feed"
        message = f"Showing {len(aggregator.items)} item(s); {aggregator.cursor}/{len(aggregator.all_configs)} candidates loaded ({status})."
        pending = len(aggregator.retry_scheduler)
        if pending:
            message += f" {pending} item(s) waiting for retry."
        self.ui.display_info(message)

    async def handle_feed(self, pages: int = 1, fresh: bool = False) -> None:
        """Handles the 'feed' command: mounts the feed and loads pages."""
        logger.info(f"Handling 'feed' command: pages={pages}, fresh={fresh}")
        try:
            await self.aggregator.mount(fresh=fresh)
            if not self.aggregator.all_configs:
                self.ui.display_warning("The gallery has no items.")
                return
            for _ in range(max(pages, 0)):
                if not self.aggregator.has_more:
                    break
                await self.aggregator.notify_near_end()
            if len(self.aggregator.retry_scheduler):
                recovered = await self.aggregator.retry_scheduler.drain()
                logger.info(f"Retry drain recovered {recovered} item(s)")
            self.ui.display_items(self.aggregator.items, title="Feria Nounish")
            self._report_progress()
        except Exception as e:
            logger.error(f"Feed command failed: {e}", exc_info=True)
            self.ui.display_error(f"Loading the feed failed: {e}")
        finally:
            await self.aggregator.close()

    async def handle_search(self, query: str) -> None:
        """Handles the 'search' command: filters already loaded items."""
        logger.info(f"Handling 'search' command with query: {query}")
        try:
            await self.aggregator.mount()
            matches = self.aggregator.filter(query)
            if not matches:
                self.ui.display_info(f"No loaded item matches '{query}'. Load more pages or try 'artist'.")
                return
            self.ui.display_items(matches, title=f"Matches for '{query}'")
        finally:
            await self.aggregator.close()

    async def handle_artist(self, query: str) -> None:
        """Handles the 'artist' command: loads items by a matching author."""
        logger.info(f"Handling 'artist' command with query: {query}")
        try:
            await self.aggregator.mount()
            added = await self.aggregator.load_artist(query)
            matches = self.aggregator.filter(query)
            if not matches:
                self.ui.display_info(f"No items found for artist '{query}'.")
                return
            self.ui.display_items(matches, title=f"Artist '{query}'")
            self.ui.display_info(f"{len(added)} new item(s) loaded for this artist.")
        except Exception as e:
            logger.error(f"Artist command failed: {e}", exc_info=True)
            self.ui.display_error(f"Artist search failed: {e}")
        finally:
            await self.aggregator.close()

    async def handle_name(self, address: str) -> None:
        """Handles the 'name' command: resolves one address to a display name."""
        logger.info(f"Handling 'name' command for: {address}")
        name = await self.identity_resolver.resolve_one(address)
        if name == UNKNOWN_IDENTITY:
            self.ui.display_warning(f"No name found for {address}.")
            return
        self.ui.display_output(name, title=address)

    async def handle_owner(self, contract_ref: str) -> None:
        """Handles the 'owner' command: resolves the author of a contract."""
        logger.info(f"Handling 'owner' command for: {contract_ref}")
        owner = await self.owner_resolver.resolve_owner(contract_ref)
        if not owner:
            self.ui.display_warning(f"Could not resolve the owner of {contract_ref}. Try again later.")
            return
        name = await self.identity_resolver.resolve_one(owner)
        self.ui.display_output(f"{owner} ({name})", title=f"Owner of {contract_ref}")

    async def handle_metadata(self, contract_ref: str, item_id: str) -> None:
        """Handles the 'metadata' command: shows one item's metadata."""
        logger.info(f"Handling 'metadata' command for: {contract_ref}/{item_id}")
        config = ItemConfig(contract_ref=contract_ref, item_id=item_id)
        try:
            metadata = await self.metadata_service.fetch_metadata(config)
        except MetadataUnavailableError as e:
            self.ui.display_error(str(e))
            return

        lines = [
            f"Name: {metadata.name}",
            f"Description: {metadata.description}",
            f"Image: {metadata.image_url}",
        ]
        if metadata.source_url:
            lines.append(f"Source: {metadata.source_url}")
        try:
            in_gallery = await self.candidates.contains(config)
            lines.append(f"In gallery: {'yes' if in_gallery else 'no'}")
        except LedgerFeedError as e:
            logger.warning(f"Gallery membership check failed: {e}")
        self.ui.display_output("\n".join(lines), title=f"{contract_ref} #{item_id}")
        if metadata.degraded:
            self.ui.display_warning("Some fields were missing and have been replaced with placeholders.")

    async def handle_share(
        self,
        contract_ref: str,
        item_id: str,
        mode: ShareMode = ShareMode.ADD,
        target: ShareTarget = ShareTarget.FARCASTER,
    ) -> None:
        """Handles the 'share' command: prints share links, preferred first."""
        logger.info(f"Handling 'share' command for: {contract_ref}/{item_id} ({mode.value}, {target.value})")
        config = ItemConfig(contract_ref=contract_ref, item_id=item_id)

        title: Optional[str] = None
        try:
            metadata = await self.metadata_service.fetch_metadata(config)
            title = None if metadata.degraded and metadata.name.startswith("Token #") else metadata.name
        except MetadataUnavailableError as e:
            logger.info(f"Sharing without a title: {e}")

        artist_username: Optional[str] = None
        owner = await self.owner_resolver.resolve_owner(contract_ref)
        if owner:
            name = await self.identity_resolver.resolve_primary(owner)
            artist_username = name or None

        links = self.share_service.build_share_links(
            contract_ref, item_id, mode=mode, target=target, title=title, artist_username=artist_username,
        )
        self.ui.display_output(links[0].text, title="Message")
        self.ui.display_links([link.url for link in links], title=f"Share on {target.value}")

    async def handle_clear_cache(self, level: str) -> None:
        """Handles the 'clear-cache' command."""
        logger.info(f"Handling 'clear-cache' command for level: {level}")
        if level not in CACHE_LEVELS:
            self.ui.display_error(f"Invalid cache level. Choose one of: {', '.join(CACHE_LEVELS)}.")
            return
        levels = ["durable", "session"] if level == "all" else [level]
        try:
            for name in levels:
                for store in self.cache_stores.get(name, []):
                    store.clear()
            self.metadata_service.clear()
            self.ui.display_info(f"Cache level '{level}' cleared successfully.")
        except Exception as e:
            logger.error(f"Failed to clear cache level '{level}': {e}", exc_info=True)
            self.ui.display_error(f"Failed to clear cache: {e}")
