"""
Constants and enums for the flash-loan arbitrage core.

Centralizes chain parameters, cost model constants, default token sets and the
execution contract ABI so the scanner and executor share one source.
"""

from enum import Enum


class ExecutionMode(Enum):
    """Execution modes for the trade pipeline."""

    SIMULATION = "simulation"
    REAL = "real"


class ScanPhase(Enum):
    """Scanner loop state machine phases."""

    IDLE = "idle"
    GATING = "gating"
    FETCHING = "fetching"
    COMPARING = "comparing"
    DISPATCHING = "dispatching"


class ExecutionStatus(Enum):
    """Status of a persisted execution record."""

    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"


class EventType(Enum):
    """Events pushed to broadcaster subscribers."""

    OPPORTUNITY_FOUND = "opportunityFound"
    TRADE_EXECUTED = "tradeExecuted"
    SCAN_CYCLE_COMPLETED = "scanCycleCompleted"


class NotificationEvent(Enum):
    """Notification keys understood by notifier implementations."""

    TRADE_SUCCESS = "trade_success"
    TRADE_PENDING = "trade_pending"
    TRADE_FAILED = "trade_failed"


# Chains
POLYGON_MAINNET_CHAIN_ID = 137
POLYGON_AMOY_CHAIN_ID = 80002
POLYGON_MAINNET_RPC = "https://polygon-rpc.com"
POLYGON_TESTNET_RPC = "https://rpc.ankr.com/polygon_amoy"

# Cost model
FLASH_ARBITRAGE_GAS_UNITS = 500_000
FLASH_LOAN_FEE_BPS = 5  # Aave V3 premium, 0.05%
MIN_PROFIT_FLOOR_BPS = 10  # 0.1% of notional, covers the loan premium
DEFAULT_NATIVE_TOKEN_USD = 0.7  # Fixed MATIC price, no live feed
GWEI = 10**9

# Lifecycle windows
OPPORTUNITY_STALENESS_SECONDS = 60.0
REVALIDATION_WINDOW_SECONDS = 30.0

# Execution defaults
DEFAULT_SLIPPAGE_BPS = 100
DEFAULT_MIN_NATIVE_BALANCE = 0.1
DEFAULT_QUOTE_TIMEOUT_SECONDS = 10.0
DEFAULT_RPC_TIMEOUT_SECONDS = 15.0
DEFAULT_FLASH_LOAN_TIMEOUT_SECONDS = 120.0
FLASH_LOAN_GAS_LIMIT = 1_500_000

# Credential format: 32 bytes hex, optional 0x prefix
PRIVATE_KEY_HEX_LENGTH = 64

# Default Polygon token set
POLYGON_TOKENS = {
    "USDC": {
        "address": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        "decimals": 6,
        "usd_price": 1.0,
    },
    "USDT": {
        "address": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
        "decimals": 6,
        "usd_price": 1.0,
    },
    "DAI": {
        "address": "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063",
        "decimals": 18,
        "usd_price": 1.0,
    },
    "WMATIC": {
        "address": "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
        "decimals": 18,
        "usd_price": 0.7,
    },
    "WETH": {
        "address": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
        "decimals": 18,
        "usd_price": 2500.0,
    },
    "WBTC": {
        "address": "0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6",
        "decimals": 8,
        "usd_price": 60000.0,
    },
}

DEFAULT_TOKEN_PAIRS = [
    ("USDC", "USDT"),
    ("USDC", "DAI"),
    ("WMATIC", "USDC"),
    ("WETH", "USDC"),
    ("WBTC", "USDC"),
    ("USDT", "DAI"),
]

DEFAULT_VENUES = ["1inch", "QuickSwap", "Uniswap V3", "SushiSwap"]

# 1inch liquidity source ids used to pin a quote to a single venue.
# "1inch" itself means the unrestricted aggregated route.
ONEINCH_PROTOCOLS = {
    "1inch": None,
    "QuickSwap": "POLYGON_QUICKSWAP",
    "Uniswap V3": "POLYGON_UNISWAP_V3",
    "SushiSwap": "POLYGON_SUSHISWAP",
    "Curve": "POLYGON_CURVE",
    "Balancer": "POLYGON_BALANCER_V2",
}

ONEINCH_API_BASE = "https://api.1inch.dev/swap/v6.0"
LIVE_ROUTES_REMEDIATION = "Set ONEINCH_API_KEY or quote_source: oneinch in the bot settings."

# ArbitrageExecutor contract (receives the Aave V3 flash loan and runs both legs)
ARBITRAGE_EXECUTOR_ABI = [
    {
        "inputs": [
            {"name": "asset", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "params", "type": "bytes"},
        ],
        "name": "executeArbitrage",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "", "type": "address"}],
        "name": "approvedExecutors",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "owner",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# ABI type of the params blob: (buy leg, sell leg, min profit)
ARBITRAGE_PARAMS_ABI_TYPE = "((address,bytes),(address,bytes),uint256)"
