"""
Core data types for flash-loan arbitrage scanning and execution.
"""

import random
import string
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .constants import ExecutionStatus
from .exceptions import ErrorKind
from .utils import from_base_units, get_current_timestamp


@dataclass(frozen=True)
class TokenInfo:
    """
    An ERC20 token as seen by the scanner.

    Attributes:
        address: Checksum address of the token
        symbol: Ticker symbol (e.g., "USDC")
        decimals: Token decimals
        usd_price: USD value of one whole token, used to value the loan notional
    """

    address: str
    symbol: str
    decimals: int
    usd_price: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TokenPair:
    """A directed pair scanned as token_in -> token_out."""

    token_in: TokenInfo
    token_out: TokenInfo

    @property
    def label(self) -> str:
        return f"{self.token_in.symbol}/{self.token_out.symbol}"


@dataclass(frozen=True)
class SwapQuote:
    """
    An executable quote from one venue.

    Attributes:
        venue: Venue name (e.g., "QuickSwap")
        from_token: Token sold
        to_token: Token bought
        from_amount: Input amount in base units
        to_amount: Output amount in base units
        route_target: Call target of the built swap (empty for plain quotes)
        route_call_data: Hex encoded call payload (empty for plain quotes)
        estimated_gas: Gas estimate reported by the route service
    """

    venue: str
    from_token: TokenInfo
    to_token: TokenInfo
    from_amount: int
    to_amount: int
    route_target: str = ""
    route_call_data: str = ""
    estimated_gas: int = 0

    @property
    def price(self) -> Decimal:
        """Output per unit of input, both in human units."""
        amount_in = from_base_units(self.from_amount, self.from_token.decimals)
        if amount_in == 0:
            return Decimal(0)
        return from_base_units(self.to_amount, self.to_token.decimals) / amount_in


def _opportunity_id(token_in: str, token_out: str, discovered_at: float) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{token_in}-{token_out}-{int(discovered_at * 1000)}-{suffix}"


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """
    A cross-venue spread large enough to pay for a flash loan.

    Instances are immutable. A fresher scan produces a new instance and the
    registry replaces the old one. Net figures are derived properties so they
    can never drift from the gross spread and the cost inputs.

    Attributes:
        token_in: Token borrowed and repaid
        token_out: Intermediate token
        buy_venue: Venue with the lower price
        sell_venue: Venue with the higher price
        buy_price: Lower of the two quoted prices
        sell_price: Higher of the two quoted prices
        gross_profit_percent: Spread relative to the mean price, in percent
        loan_amount: Flash loan notional in human token_in units
        loan_value_usd: Loan notional valued in USD
        estimated_gas_cost_usd: Gas cost estimate for the whole transaction
        flash_loan_fee_usd: Loan premium in USD
        discovered_at: Unix timestamp of the scan that produced the candidate
        is_valid: False once the candidate was consumed by an execution
        id: Unique id combining pair and discovery time
    """

    token_in: TokenInfo
    token_out: TokenInfo
    buy_venue: str
    sell_venue: str
    buy_price: float
    sell_price: float
    gross_profit_percent: float
    loan_amount: Decimal
    loan_value_usd: float
    estimated_gas_cost_usd: float
    flash_loan_fee_usd: float
    discovered_at: float = field(default_factory=get_current_timestamp)
    is_valid: bool = True
    id: str = ""

    def __post_init__(self):
        if self.buy_venue == self.sell_venue:
            raise ValueError("buy and sell venue must differ")
        if not self.id:
            object.__setattr__(
                self,
                "id",
                _opportunity_id(
                    self.token_in.address, self.token_out.address, self.discovered_at
                ),
            )

    @property
    def gross_profit_usd(self) -> float:
        return self.loan_value_usd * self.gross_profit_percent / 100.0

    @property
    def estimated_profit_usd(self) -> float:
        """Net USD profit after gas and the loan premium."""
        return (
            self.gross_profit_usd - self.estimated_gas_cost_usd - self.flash_loan_fee_usd
        )

    @property
    def net_profit_percent(self) -> float:
        if self.loan_value_usd <= 0:
            return 0.0
        return self.estimated_profit_usd / self.loan_value_usd * 100.0

    @property
    def pair_label(self) -> str:
        return f"{self.token_in.symbol}/{self.token_out.symbol}"

    @property
    def dex_path(self) -> str:
        return f"{self.buy_venue} → {self.sell_venue}"

    @property
    def route_key(self) -> str:
        """Key shared by all scans of the same pair and venue direction."""
        return (
            f"{self.token_in.address}:{self.token_out.address}:"
            f"{self.buy_venue}:{self.sell_venue}"
        )

    @property
    def route(self) -> Dict[str, List[str]]:
        return {
            "buy": [self.token_in.address, self.token_out.address],
            "sell": [self.token_out.address, self.token_in.address],
        }

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else get_current_timestamp()) - self.discovered_at

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view including the derived figures."""
        return {
            "id": self.id,
            "token_in": self.token_in.to_dict(),
            "token_out": self.token_out.to_dict(),
            "buy_venue": self.buy_venue,
            "sell_venue": self.sell_venue,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "gross_profit_percent": self.gross_profit_percent,
            "net_profit_percent": self.net_profit_percent,
            "estimated_profit_usd": self.estimated_profit_usd,
            "estimated_gas_cost_usd": self.estimated_gas_cost_usd,
            "flash_loan_fee_usd": self.flash_loan_fee_usd,
            "flash_loan_amount": str(self.loan_amount),
            "loan_value_usd": self.loan_value_usd,
            "route": self.route,
            "discovered_at": self.discovered_at,
            "is_valid": self.is_valid,
        }


@dataclass(frozen=True)
class GasCheck:
    """Result of the gas ceiling gate."""

    current_gwei: float
    max_gwei: float
    acceptable: bool


@dataclass(frozen=True)
class BalanceCheck:
    """Result of the native balance gate."""

    address: str
    balance: Decimal
    minimum: Decimal
    sufficient: bool


@dataclass(frozen=True)
class FlashLoanReceipt:
    """Outcome of a flash loan submission."""

    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    reverted: bool = False


@dataclass(frozen=True)
class TradeExecutionResult:
    """
    Result of one execution attempt. Never mutated; persisted verbatim.

    Attributes:
        success: Whether the attempt reached submission (or simulated success)
        opportunity_id: Id of the executed snapshot
        message: Human readable summary
        tx_hash: Transaction hash or placeholder id
        profit_usd: Expected profit of the executed candidate
        gas_cost_usd: Gas estimate of the executed candidate
        error: Error message (if failed)
        error_kind: Classification of the failure
        remediation: Operator hint for the failure
        failed_step: Step identifier where the pipeline stopped
        execution_time_ms: Wall-clock duration of the attempt
        simulated: True for simulation mode results
    """

    success: bool
    opportunity_id: str
    message: str
    tx_hash: Optional[str] = None
    profit_usd: Optional[float] = None
    gas_cost_usd: Optional[float] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    remediation: Optional[str] = None
    failed_step: Optional[str] = None
    execution_time_ms: float = 0.0
    simulated: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["error_kind"] = self.error_kind.value if self.error_kind else None
        return data


@dataclass(frozen=True)
class ExecutionRecord:
    """Persisted row describing an execution attempt."""

    opportunity_id: str
    status: ExecutionStatus
    tx_hash: str
    token_in: str
    token_out: str
    amount_in: str
    amount_out: str
    profit_usd: float
    gas_cost_usd: float
    net_profit_usd: float
    dex_path: str
    result: TradeExecutionResult
    created_at: float = field(default_factory=get_current_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "opportunity_id": self.opportunity_id,
            "status": self.status.value,
            "tx_hash": self.tx_hash,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "profit_usd": self.profit_usd,
            "gas_cost_usd": self.gas_cost_usd,
            "net_profit_usd": self.net_profit_usd,
            "dex_path": self.dex_path,
            "result": self.result.to_dict(),
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class ActivityLogEntry:
    """Append-only activity row written for every pipeline step."""

    category: str
    level: str
    step: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=get_current_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
