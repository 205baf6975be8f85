"""
Flash-Loan DEX Arbitrage.

Scans Polygon DEX venues for cross-venue price spreads, prices each candidate
against gas and flash-loan costs, and executes qualifying candidates through a
flash-loan execution contract, in simulation or real mode.
"""

from flash_arbitrage.version import __version__

PROJECT_NAME = "Flash-Arbitrage"
VERSION = __version__

from flash_arbitrage.comparator import PriceComparator
from flash_arbitrage.config_loader import ScanConfig, load_settings
from flash_arbitrage.config_schema import BotSettings
from flash_arbitrage.exceptions import (
    ConfigurationError,
    ErrorKind,
    FlashArbitrageError,
    InfrastructureError,
    MalformedRouteError,
    OnChainRejectionError,
    QuoteSourceError,
    ThresholdNotMetError,
)
from flash_arbitrage.registry import OpportunityRegistry
from flash_arbitrage.scanner import OpportunityScanner
from flash_arbitrage.trade_executor import TradeExecutor
from flash_arbitrage.types import ArbitrageOpportunity, TradeExecutionResult

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "__version__",
    "ArbitrageOpportunity",
    "BotSettings",
    "ConfigurationError",
    "ErrorKind",
    "FlashArbitrageError",
    "InfrastructureError",
    "MalformedRouteError",
    "OnChainRejectionError",
    "OpportunityRegistry",
    "OpportunityScanner",
    "PriceComparator",
    "QuoteSourceError",
    "ScanConfig",
    "ThresholdNotMetError",
    "TradeExecutionResult",
    "TradeExecutor",
    "load_settings",
]
