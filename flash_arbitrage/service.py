"""
Component wiring from ``BotSettings``.
"""

from dataclasses import dataclass
from typing import Optional

from .chain import Web3ChainClient
from .config_schema import BotSettings
from .constants import LIVE_ROUTES_REMEDIATION
from .events import EventBroadcaster
from .exceptions import ConfigurationError
from .interfaces import ChainRpc, StorageBackend
from .notifications import build_notifier
from .quote_sources import OneInchQuoteSource, QuoteSource, SyntheticQuoteSource
from .registry import OpportunityRegistry
from .scanner import OpportunityScanner
from .storage import InMemoryStorage
from .trade_executor import TradeExecutor
from .utils import get_logger

logger = get_logger(__name__)


def build_quote_source(settings: BotSettings) -> QuoteSource:
    """
    Pick the quote source.

    ``auto`` uses 1inch when an API key is configured and falls back to the
    synthetic source otherwise. The synthetic source only serves simulation.

    Raises:
        ConfigurationError: If real trading would run on synthetic routes
    """
    choice = settings.quote_source
    if choice == "auto":
        choice = "oneinch" if settings.oneinch_api_key else "synthetic"

    if choice == "synthetic" and not settings.use_simulation:
        raise ConfigurationError(
            "Real trading needs live swap routes; the synthetic quote source only serves simulation",
            details={"quote_source": settings.quote_source},
            remediation=LIVE_ROUTES_REMEDIATION,
        )

    if choice == "oneinch":
        logger.info(f"Using 1inch quote source (chain {settings.chain_id})")
        return OneInchQuoteSource(
            chain_id=settings.chain_id,
            api_key=settings.oneinch_api_key,
            timeout_seconds=settings.quote_timeout_seconds,
        )

    logger.info(f"Using synthetic quote source (seed {settings.synthetic_seed})")
    return SyntheticQuoteSource(seed=settings.synthetic_seed)


@dataclass
class ArbitrageService:
    """Everything a running bot needs, wired together."""

    settings: BotSettings
    storage: StorageBackend
    chain: ChainRpc
    quote_source: QuoteSource
    events: EventBroadcaster
    executor: TradeExecutor
    scanner: OpportunityScanner
    notifier: object

    async def close(self) -> None:
        if self.scanner.is_running():
            await self.scanner.stop_scanning()
        await self.scanner.wait_for_inflight()
        await self.quote_source.close()
        close = getattr(self.notifier, "close", None)
        if close is not None:
            await close()


def build_service(
    settings: BotSettings,
    storage: Optional[StorageBackend] = None,
    chain: Optional[ChainRpc] = None,
    quote_source: Optional[QuoteSource] = None,
    notifier=None,
) -> ArbitrageService:
    """Wire storage, chain client, quote source, executor and scanner."""
    storage = storage or InMemoryStorage(settings)
    chain = chain or Web3ChainClient(
        settings.rpc_url, settings.chain_id, timeout_seconds=settings.rpc_timeout_seconds
    )
    quote_source = quote_source or build_quote_source(settings)
    notifier = notifier or build_notifier(settings)
    events = EventBroadcaster()

    executor = TradeExecutor(
        storage=storage,
        chain=chain,
        quote_source=quote_source,
        notifier=notifier,
        events=events,
    )
    scanner = OpportunityScanner(
        storage=storage,
        chain=chain,
        quote_source=quote_source,
        executor=executor,
        events=events,
        registry=OpportunityRegistry(),
        rpc_timeout_seconds=settings.rpc_timeout_seconds,
    )
    return ArbitrageService(
        settings=settings,
        storage=storage,
        chain=chain,
        quote_source=quote_source,
        events=events,
        executor=executor,
        scanner=scanner,
        notifier=notifier,
    )
