"""Main entry point for the ledgerfeed application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Annotated, Any, Coroutine, Dict, Optional

import typer

# --- Core Layer ---
from ledgerfeed.core.command_handler import CommandHandler
from ledgerfeed.core.services.feed_service import FeedAggregator
from ledgerfeed.core.services.feed_state import FeedStateStore
from ledgerfeed.core.services.identity_service import BatchIdentityResolver, IdentityResolver
from ledgerfeed.core.services.metadata_service import MetadataService
from ledgerfeed.core.services.owner_service import ContractOwnerResolver
from ledgerfeed.core.services.share_service import ShareService

# --- Domain Layer ---
from ledgerfeed.domain.models.share import HostEnvironment, ShareMode, ShareTarget

# --- Infrastructure Layer ---
# Config
from ledgerfeed.infrastructure.config.settings import (
    get_api_base_url, get_cache_dir, get_config, get_gateway_timeout, get_host_kind,
    get_rpc_url, get_share_base_url, load_configuration, set_config,
)
# UI
from ledgerfeed.infrastructure.cli.display import ConsoleDisplay
from ledgerfeed.infrastructure.clock import SystemClock
# Cache
from ledgerfeed.infrastructure.cache.single_flight import CachePolicy, SingleFlightCache
from ledgerfeed.infrastructure.cache.stores import DiskKeyValueStore, MemoryKeyValueStore, TimestampedCacheStore
# Network adapters
from ledgerfeed.infrastructure.gateway.gateway_fetcher import GatewayFetcher
from ledgerfeed.infrastructure.http.aiohttp_client import AiohttpClient
from ledgerfeed.infrastructure.identity.basename_client import BasenameClient
from ledgerfeed.infrastructure.identity.farcaster_client import FarcasterUsernameClient
from ledgerfeed.infrastructure.ledger.rpc_ledger import RpcLedgerReader
from ledgerfeed.infrastructure.storage.gallery_client import GalleryClient
# Resilience
from ledgerfeed.infrastructure.resilience.api_retry import ApiRetryService
from ledgerfeed.infrastructure.resilience.rate_limiter import RateLimiter
# Monitoring
from ledgerfeed.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, setup_logging

logger = logging.getLogger(__name__)

LEDGER_PRE_CALL_DELAY_SECONDS = 0.1

# --- Dependency Injection Container (Manual) ---

def _open_store(directory) -> Optional[DiskKeyValueStore]:
    """Opens a disk store; without one persistence is disabled, not fatal."""
    try:
        return DiskKeyValueStore(directory)
    except OSError as e:
        logger.warning(f"Disk store at {directory} unavailable, continuing without persistence: {e}")
        return None

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}

    # 1. Load Configuration First
    load_configuration()
    setup_logging(
        log_level=get_config('logging.level', 'WARNING'),
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', DEFAULT_LOG_FORMAT),
    )
    logger.info("Initializing application dependencies...")

    # 2. Infrastructure Adapters
    clock = SystemClock()
    dependencies['clock'] = clock
    dependencies['ui'] = ConsoleDisplay()
    http_client = AiohttpClient(default_timeout=get_gateway_timeout())
    dependencies['http_client'] = http_client

    cache_dir = get_cache_dir()
    memory = TimestampedCacheStore(MemoryKeyValueStore(), clock, name="memory")
    durable = TimestampedCacheStore(_open_store(cache_dir / "durable"), clock, name="durable")
    session = TimestampedCacheStore(_open_store(cache_dir / "session"), clock, name="session")
    dependencies['cache_stores'] = {"durable": [memory, durable], "session": [session]}

    api_base_url = get_api_base_url()
    farcaster = FarcasterUsernameClient(http_client, api_base_url)
    basename = BasenameClient(http_client, api_base_url)
    gallery = GalleryClient(http_client, api_base_url)
    ledger = RpcLedgerReader(http_client, get_rpc_url())
    gateway_fetcher = GatewayFetcher(http_client, timeout=get_gateway_timeout())
    dependencies['candidates'] = gallery

    # 3. Resilience
    farcaster_limiter = RateLimiter(
        min_interval=float(get_config('farcaster.min_interval', 0.25)), clock=clock, name="farcaster",
    )
    ledger_retry = ApiRetryService(
        clock=clock,
        provider_name="ledger",
        max_attempts=int(get_config('ledger.max_attempts', 3)),
        initial_backoff_s=float(get_config('ledger.initial_backoff', 1.0)),
        pre_call_delay_s=LEDGER_PRE_CALL_DELAY_SECONDS,
    )

    # 4. Core Services
    identity_resolver = IdentityResolver(
        primary=farcaster,
        secondary=basename,
        primary_cache=SingleFlightCache("identity:farcaster", memory, durable, CachePolicy()),
        secondary_cache=SingleFlightCache("identity:basename", memory, durable, CachePolicy()),
        rate_limiter=farcaster_limiter,
    )
    batch_resolver = BatchIdentityResolver(farcaster, identity_resolver, rate_limiter=farcaster_limiter, clock=clock)
    owner_resolver = ContractOwnerResolver(
        ledger, SingleFlightCache("owner", memory, durable, CachePolicy(cache_negative=False)), ledger_retry,
    )
    metadata_service = MetadataService(ledger, gateway_fetcher, ledger_retry, clock=clock)
    aggregator = FeedAggregator(
        candidates=gallery,
        owner_resolver=owner_resolver,
        identity_resolver=batch_resolver,
        metadata_service=metadata_service,
        state_store=FeedStateStore(session, clock),
        clock=clock,
    )
    share_service = ShareService(HostEnvironment(kind=get_host_kind(), base_url=get_share_base_url()))
    logger.info("Core services initialized.")

    # 5. Command Handler
    dependencies['command_handler'] = CommandHandler(
        aggregator=aggregator,
        identity_resolver=identity_resolver,
        owner_resolver=owner_resolver,
        metadata_service=metadata_service,
        share_service=share_service,
        candidates=gallery,
        cache_stores=dependencies['cache_stores'],
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies

# --- Get Wired-up Dependencies ---
# Built on first use so that global options are applied before wiring
_dependencies: Optional[Dict[str, Any]] = None

def get_dependencies() -> Dict[str, Any]:
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies

# --- Typer App Definition ---
app = typer.Typer(
    name="ledgerfeed",
    help="ledgerfeed: browse ledger-listed gallery items with resolved artist identities.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, None]) -> None:
    """Runs an async command handler and releases the HTTP session afterwards."""
    dependencies = get_dependencies()

    async def _run() -> None:
        try:
            await coro
        finally:
            await dependencies['http_client'].close()

    try:
        asyncio.run(_run())
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        dependencies['ui'].display_error(f"Command execution failed: {e}")
        raise typer.Exit(code=1)

def _handler() -> CommandHandler:
    return get_dependencies()['command_handler']

# --- CLI Commands ---

@app.command()
def feed(
    pages: Annotated[int, typer.Option("--pages", "-n", min=0, help="Number of pages to load.")] = 1,
    fresh: Annotated[bool, typer.Option("--fresh", help="Discard the saved session state.")] = False,
):
    """Show the feed, loading the given number of pages."""
    run_async(_handler().handle_feed(pages=pages, fresh=fresh))

@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Text matched against name, author address and author name.")]
):
    """Filter the items loaded so far. No network access beyond the candidate list."""
    run_async(_handler().handle_search(query))

@app.command()
def artist(
    query: Annotated[str, typer.Argument(help="Artist name or address (substring).")]
):
    """Load items by an artist that are not displayed yet."""
    run_async(_handler().handle_artist(query))

@app.command()
def name(
    address: Annotated[str, typer.Argument(help="Wallet address.")]
):
    """Resolve a wallet address to a display name."""
    run_async(_handler().handle_name(address))

@app.command()
def owner(
    contract: Annotated[str, typer.Argument(help="Contract address.")]
):
    """Resolve the author (owner) of a contract."""
    run_async(_handler().handle_owner(contract))

@app.command()
def metadata(
    contract: Annotated[str, typer.Argument(help="Contract address.")],
    item_id: Annotated[str, typer.Argument(help="Token id.")],
):
    """Show the metadata of one item."""
    run_async(_handler().handle_metadata(contract, item_id))

@app.command()
def share(
    contract: Annotated[str, typer.Argument(help="Contract address.")],
    item_id: Annotated[str, typer.Argument(help="Token id.")],
    mode: Annotated[ShareMode, typer.Option("--mode", "-m", case_sensitive=False, help="Announce a new piece or a collected one.")] = ShareMode.ADD,
    target: Annotated[ShareTarget, typer.Option("--target", "-t", case_sensitive=False, help="Client to share to.")] = ShareTarget.FARCASTER,
):
    """Print share links for one item, preferred first."""
    run_async(_handler().handle_share(contract, item_id, mode=mode, target=target))

@app.command(name="clear-cache")
def clear_cache_command(
    level: Annotated[str, typer.Option(help="Level ('durable', 'session', 'all').")] = 'all'
):
    """Clears the application cache."""
    run_async(_handler().handle_clear_cache(level))

@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Main entry point."""
    if verbose:
        set_config('logging.level', 'DEBUG')

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
