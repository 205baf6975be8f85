"""Shared fixtures and in-memory doubles for the flash arbitrage tests."""

import asyncio
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from flash_arbitrage.config_loader import ScanConfig
from flash_arbitrage.config_schema import BotSettings, PairSpec
from flash_arbitrage.constants import POLYGON_TOKENS
from flash_arbitrage.interfaces import DeterministicTimeProvider
from flash_arbitrage.quote_sources import QuoteSource
from flash_arbitrage.storage import InMemoryStorage
from flash_arbitrage.types import ArbitrageOpportunity, FlashLoanReceipt, SwapQuote, TokenInfo, TokenPair
from flash_arbitrage.utils import from_base_units

VALID_KEY = "0x" + "11" * 32
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def token(symbol: str) -> TokenInfo:
    spec = POLYGON_TOKENS[symbol]
    return TokenInfo(
        address=spec["address"],
        symbol=symbol,
        decimals=spec["decimals"],
        usd_price=spec["usd_price"],
    )


class FakeChain:
    """ChainRpc double recording every call."""

    def __init__(
        self,
        gas_gwei: float = 30.0,
        balance: Decimal = Decimal("5"),
        code: bytes = b"\x60\x80\x60\x40",
        receipt: Optional[FlashLoanReceipt] = None,
        approved: bool = True,
    ):
        self.gas_gwei = gas_gwei
        self.balance = balance
        self.code = code
        self.receipt = receipt or FlashLoanReceipt(success=True, tx_hash="0x" + "ab" * 32)
        self.approved = approved
        self.gas_error: Optional[Exception] = None
        self.gas_delay = 0.0
        self.flash_delay = 0.0
        self.calls: List[tuple] = []
        self.flash_loans: List[Dict[str, Any]] = []

    async def get_gas_price_gwei(self) -> float:
        self.calls.append(("get_gas_price_gwei",))
        if self.gas_delay:
            await asyncio.sleep(self.gas_delay)
        if self.gas_error is not None:
            raise self.gas_error
        return self.gas_gwei

    async def get_native_balance(self, address: str) -> Decimal:
        self.calls.append(("get_native_balance", address))
        return self.balance

    async def get_code(self, address: str) -> bytes:
        self.calls.append(("get_code", address))
        return self.code

    async def is_executor_approved(self, contract_address: str, executor: str) -> bool:
        self.calls.append(("is_executor_approved", contract_address, executor))
        return self.approved

    async def execute_flash_loan(self, contract_address, asset, amount, params, private_key):
        self.calls.append(("execute_flash_loan", contract_address))
        self.flash_loans.append(
            {"contract": contract_address, "asset": asset, "amount": amount, "params": params}
        )
        if self.flash_delay:
            await asyncio.sleep(self.flash_delay)
        return self.receipt


ROUTERS = {
    "QuickSwap": "0xa5e0829caced8ffdd4de3c43696c57f7d7a678ff",
    "SushiSwap": "0x1b02da8cb0d097eb8d57a175b88c7d8b47997506",
}
AGGREGATOR_ROUTER = "0x111111125421ca6dc452d289314280a0f8842a65"


class RouteQuoteSource(QuoteSource):
    """
    Live-route QuoteSource double.

    Quotes use pinned prices (1.0 when unset) and swaps come back with fixed
    router targets and call data, like an aggregator response. Per-venue quote
    delays and a build delay stand in for slow upstreams.
    """

    name = "routes"

    def __init__(self, quote_delays: Optional[Dict[str, float]] = None, build_delay: float = 0.0):
        self.prices: Dict[tuple, Decimal] = {}
        self.quote_delays = dict(quote_delays or {})
        self.build_delay = build_delay
        self.calls = 0
        self.builds: List[str] = []

    def set_price(self, venue: str, token_in: str, token_out: str, price) -> None:
        self.prices[(venue, token_in, token_out)] = Decimal(str(price))

    def _amount_out(self, token_in: TokenInfo, token_out: TokenInfo, amount: int, venue: str) -> int:
        price = self.prices.get((venue, token_in.symbol, token_out.symbol), Decimal(1))
        human_out = from_base_units(amount, token_in.decimals) * price
        return int(human_out * (Decimal(10) ** token_out.decimals))

    async def get_quote(self, token_in, token_out, amount, venue):
        self.calls += 1
        delay = self.quote_delays.get(venue, 0.0)
        if delay:
            await asyncio.sleep(delay)
        return SwapQuote(
            venue=venue,
            from_token=token_in,
            to_token=token_out,
            from_amount=amount,
            to_amount=self._amount_out(token_in, token_out, amount, venue),
        )

    async def build_swap_transaction(
        self, token_in, token_out, amount, from_address, slippage_bps, venue=None
    ):
        venue = venue or "1inch"
        self.builds.append(venue)
        if self.build_delay:
            await asyncio.sleep(self.build_delay)
        return SwapQuote(
            venue=venue,
            from_token=token_in,
            to_token=token_out,
            from_amount=amount,
            to_amount=self._amount_out(token_in, token_out, amount, venue),
            route_target=ROUTERS.get(venue, AGGREGATOR_ROUTER),
            route_call_data="0x12aa3caf" + format(amount, "064x"),
        )


class RecordingNotifier:
    """Notifier double keeping every message."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[tuple] = []

    async def send(self, message: str, event_type: str) -> bool:
        if self.fail:
            raise RuntimeError("chat unavailable")
        self.messages.append((event_type, message))
        return True


@pytest.fixture
def clock():
    return DeterministicTimeProvider()


@pytest.fixture
def usdc():
    return token("USDC")


@pytest.fixture
def usdt():
    return token("USDT")


@pytest.fixture
def pair(usdc, usdt):
    return TokenPair(usdc, usdt)


@pytest.fixture
def make_settings():
    """BotSettings tuned so 30 Gwei costs $3 of gas and the loan fee is $5."""

    def _make(**overrides) -> BotSettings:
        values = {
            "native_token_usd_price": 200.0,
            "flash_loan_amount": 10000,
            "token_pairs": [PairSpec(token_in="USDC", token_out="USDT")],
            "venues": ["QuickSwap", "SushiSwap"],
            "quote_source": "synthetic",
            "telegram_enabled": False,
            "telegram_profit_threshold_usd": 10.0,
        }
        values.update(overrides)
        return BotSettings(**values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def scan_config(settings):
    return ScanConfig.from_settings(settings)


@pytest.fixture
def storage(settings):
    return InMemoryStorage(settings)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_quote(usdc, usdt):
    def _make(venue: str, price, amount: int = 10_000 * 10**6) -> SwapQuote:
        return SwapQuote(
            venue=venue,
            from_token=usdc,
            to_token=usdt,
            from_amount=amount,
            to_amount=int(Decimal(str(price)) * amount),
        )

    return _make


@pytest.fixture
def make_opportunity(clock, usdc, usdt):
    """The 1.000 / 1.012 scenario: ~$119 gross, $3 gas, $5 fee."""

    def _make(**overrides) -> ArbitrageOpportunity:
        values = {
            "token_in": usdc,
            "token_out": usdt,
            "buy_venue": "QuickSwap",
            "sell_venue": "SushiSwap",
            "buy_price": 1.0,
            "sell_price": 1.012,
            "gross_profit_percent": 0.012 / 1.006 * 100,
            "loan_amount": Decimal("10000"),
            "loan_value_usd": 10000.0,
            "estimated_gas_cost_usd": 3.0,
            "flash_loan_fee_usd": 5.0,
            "discovered_at": clock.current_timestamp(),
        }
        values.update(overrides)
        return ArbitrageOpportunity(**values)

    return _make
