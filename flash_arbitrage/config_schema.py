"""
Configuration schema for the flash-loan arbitrage bot.

``BotSettings`` mirrors the configuration record the bot reads from storage:
network selection, credentials, profitability thresholds, gas limits,
notification settings and the scanned universe of tokens, pairs and venues.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    DEFAULT_FLASH_LOAN_TIMEOUT_SECONDS,
    DEFAULT_MIN_NATIVE_BALANCE,
    DEFAULT_NATIVE_TOKEN_USD,
    DEFAULT_QUOTE_TIMEOUT_SECONDS,
    DEFAULT_RPC_TIMEOUT_SECONDS,
    DEFAULT_SLIPPAGE_BPS,
    DEFAULT_TOKEN_PAIRS,
    DEFAULT_VENUES,
    POLYGON_AMOY_CHAIN_ID,
    POLYGON_MAINNET_CHAIN_ID,
    POLYGON_MAINNET_RPC,
    POLYGON_TESTNET_RPC,
    POLYGON_TOKENS,
)
from .types import TokenInfo, TokenPair


class TokenSpec(BaseModel):
    """Token entry of the scanned universe."""

    address: str = Field(min_length=42, max_length=42)
    decimals: int = Field(ge=0, le=36)
    usd_price: float = Field(default=1.0, gt=0)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not v.startswith("0x"):
            raise ValueError("token address must start with 0x")
        return v


class PairSpec(BaseModel):
    """A scanned pair, referenced by token symbol."""

    token_in: str
    token_out: str

    @model_validator(mode="after")
    def validate_distinct(self):
        if self.token_in == self.token_out:
            raise ValueError("pair tokens must differ")
        return self


def _default_tokens() -> Dict[str, TokenSpec]:
    return {symbol: TokenSpec(**spec) for symbol, spec in POLYGON_TOKENS.items()}


def _default_pairs() -> List[PairSpec]:
    return [PairSpec(token_in=a, token_out=b) for a, b in DEFAULT_TOKEN_PAIRS]


class BotSettings(BaseModel):
    """Validated bot configuration."""

    # Network & RPC
    network_mode: Literal["mainnet", "testnet"] = "testnet"
    polygon_rpc_url: str = POLYGON_MAINNET_RPC
    polygon_testnet_rpc_url: str = POLYGON_TESTNET_RPC

    # Credential, never logged
    private_key: Optional[str] = Field(default=None, repr=False)

    # Profitability thresholds
    min_profit_percent: float = Field(default=0.3, ge=0, le=100)
    min_net_profit_percent: float = Field(default=0.15, ge=-100, le=100)
    min_net_profit_usd: float = Field(default=1.5, ge=0)
    flash_loan_amount: float = Field(default=10000, gt=0)
    scan_interval_seconds: float = Field(default=30, gt=0, le=3600)

    # Gas & balance
    max_gas_price_gwei: float = Field(default=60, gt=0)
    min_native_balance: float = Field(default=DEFAULT_MIN_NATIVE_BALANCE, ge=0)
    native_token_usd_price: float = Field(default=DEFAULT_NATIVE_TOKEN_USD, gt=0)

    # Execution
    use_simulation: bool = True
    enable_real_trading: bool = False
    flash_loan_contract: Optional[str] = None
    slippage_bps: int = Field(default=DEFAULT_SLIPPAGE_BPS, ge=1, le=5000)

    # Timeouts
    quote_timeout_seconds: float = Field(default=DEFAULT_QUOTE_TIMEOUT_SECONDS, gt=0)
    rpc_timeout_seconds: float = Field(default=DEFAULT_RPC_TIMEOUT_SECONDS, gt=0)
    flash_loan_timeout_seconds: float = Field(
        default=DEFAULT_FLASH_LOAN_TIMEOUT_SECONDS, gt=0
    )

    # Quote source
    quote_source: Literal["auto", "oneinch", "synthetic"] = "auto"
    oneinch_api_key: Optional[str] = Field(default=None, repr=False)
    synthetic_seed: int = 42

    # Notifications
    telegram_enabled: bool = True
    telegram_bot_token: Optional[str] = Field(default=None, repr=False)
    telegram_chat_id: Optional[str] = None
    telegram_profit_threshold_usd: float = Field(default=10.0, ge=0)
    webhook_url: Optional[str] = None
    notify_on_failure: bool = False

    # Scanned universe
    tokens: Dict[str, TokenSpec] = Field(default_factory=_default_tokens)
    token_pairs: List[PairSpec] = Field(default_factory=_default_pairs)
    venues: List[str] = Field(default_factory=lambda: list(DEFAULT_VENUES))

    @field_validator("venues")
    @classmethod
    def validate_venues(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("venues must be unique")
        if len(v) < 2:
            raise ValueError("at least two venues are required to compare prices")
        return v

    @field_validator("flash_loan_contract")
    @classmethod
    def validate_contract(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip() or None
        return v

    @model_validator(mode="after")
    def validate_pairs_reference_tokens(self):
        for pair in self.token_pairs:
            for symbol in (pair.token_in, pair.token_out):
                if symbol not in self.tokens:
                    raise ValueError(f"pair references unknown token '{symbol}'")
        return self

    @property
    def chain_id(self) -> int:
        if self.network_mode == "mainnet":
            return POLYGON_MAINNET_CHAIN_ID
        return POLYGON_AMOY_CHAIN_ID

    @property
    def rpc_url(self) -> str:
        if self.network_mode == "mainnet":
            return self.polygon_rpc_url
        return self.polygon_testnet_rpc_url

    def token_info(self, symbol: str) -> TokenInfo:
        spec = self.tokens[symbol]
        return TokenInfo(
            address=spec.address,
            symbol=symbol,
            decimals=spec.decimals,
            usd_price=spec.usd_price,
        )

    def resolved_pairs(self) -> List[TokenPair]:
        return [
            TokenPair(self.token_info(p.token_in), self.token_info(p.token_out))
            for p in self.token_pairs
        ]
