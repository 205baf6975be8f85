"""
Cross-venue price comparison.

Turns venue quotes into priced candidates. The scanner and the executor's
freshness re-check share the same qualification rule.

Cost model:
- spread = |p1 - p2| / mean(p1, p2)
- gas cost = gas price (Gwei) x fixed gas units x native token USD price
- loan fee = fixed bps of the loan value
- net = gross spread value - gas cost - loan fee
"""

from dataclasses import dataclass
from decimal import Decimal
from itertools import combinations
from typing import List, Optional, Sequence

from .config_loader import ScanConfig
from .constants import FLASH_ARBITRAGE_GAS_UNITS, FLASH_LOAN_FEE_BPS, GWEI
from .interfaces import SystemTimeProvider, TimeProvider
from .types import ArbitrageOpportunity, SwapQuote, TokenPair
from .utils import basis_points_to_decimal, get_logger

logger = get_logger(__name__)


def compute_spread_percent(price_a: float, price_b: float) -> float:
    """Relative price difference in percent; symmetric in its arguments."""
    mean = (price_a + price_b) / 2.0
    if mean <= 0:
        return 0.0
    return abs(price_a - price_b) / mean * 100.0


def estimate_gas_cost_usd(
    gas_price_gwei: float,
    native_token_usd: float,
    gas_units: int = FLASH_ARBITRAGE_GAS_UNITS,
) -> float:
    """Gas cost of one flash arbitrage transaction in USD."""
    native_cost = gas_units * gas_price_gwei / GWEI
    return native_cost * native_token_usd


def estimate_flash_loan_fee_usd(loan_value_usd: float, fee_bps: float = FLASH_LOAN_FEE_BPS) -> float:
    """Flash loan premium in USD."""
    return loan_value_usd * basis_points_to_decimal(fee_bps)


@dataclass(frozen=True)
class PairEvaluation:
    """Every candidate produced for one pair, with the qualifying subset."""

    pair: TokenPair
    candidates: List[ArbitrageOpportunity]
    qualifying: List[ArbitrageOpportunity]

    @property
    def best(self) -> Optional[ArbitrageOpportunity]:
        pool = self.qualifying or self.candidates
        if not pool:
            return None
        return max(pool, key=lambda o: o.estimated_profit_usd)


class PriceComparator:
    """Turns per-venue quotes for one pair into priced candidates."""

    def __init__(
        self,
        gas_units: int = FLASH_ARBITRAGE_GAS_UNITS,
        fee_bps: float = FLASH_LOAN_FEE_BPS,
        clock: Optional[TimeProvider] = None,
    ):
        self.gas_units = gas_units
        self.fee_bps = fee_bps
        self.clock = clock or SystemTimeProvider()

    def evaluate(
        self,
        pair: TokenPair,
        quote_a: SwapQuote,
        quote_b: SwapQuote,
        gas_price_gwei: float,
        config: ScanConfig,
        discovered_at: Optional[float] = None,
    ) -> Optional[ArbitrageOpportunity]:
        """
        Price one venue pair.

        Returns None when the comparison is meaningless (same venue or a zero
        price); otherwise a candidate that may or may not qualify.
        """
        if quote_a.venue == quote_b.venue:
            return None

        price_a = float(quote_a.price)
        price_b = float(quote_b.price)
        if price_a <= 0 or price_b <= 0:
            return None

        # Buy where the price is lower, sell where it is higher.
        if price_a <= price_b:
            buy, sell, buy_price, sell_price = quote_a, quote_b, price_a, price_b
        else:
            buy, sell, buy_price, sell_price = quote_b, quote_a, price_b, price_a

        loan_value_usd = float(config.loan_amount) * pair.token_in.usd_price
        return ArbitrageOpportunity(
            token_in=pair.token_in,
            token_out=pair.token_out,
            buy_venue=buy.venue,
            sell_venue=sell.venue,
            buy_price=buy_price,
            sell_price=sell_price,
            gross_profit_percent=compute_spread_percent(price_a, price_b),
            loan_amount=Decimal(config.loan_amount),
            loan_value_usd=loan_value_usd,
            estimated_gas_cost_usd=estimate_gas_cost_usd(
                gas_price_gwei, config.native_token_usd_price, self.gas_units
            ),
            flash_loan_fee_usd=estimate_flash_loan_fee_usd(loan_value_usd, self.fee_bps),
            discovered_at=(
                discovered_at if discovered_at is not None else self.clock.current_timestamp()
            ),
        )

    def compare(
        self,
        pair: TokenPair,
        quotes: Sequence[SwapQuote],
        gas_price_gwei: float,
        config: ScanConfig,
    ) -> PairEvaluation:
        """Evaluate every unordered venue pair among ``quotes``."""
        now = self.clock.current_timestamp()
        candidates = []
        for quote_a, quote_b in combinations(quotes, 2):
            candidate = self.evaluate(pair, quote_a, quote_b, gas_price_gwei, config, now)
            if candidate is None:
                continue
            logger.debug(
                f"{pair.label}: {candidate.buy_venue} ({candidate.buy_price:.6f}) vs "
                f"{candidate.sell_venue} ({candidate.sell_price:.6f}) "
                f"gross {candidate.gross_profit_percent:.3f}% "
                f"net {candidate.net_profit_percent:.3f}% "
                f"(${candidate.estimated_profit_usd:.2f})"
            )
            candidates.append(candidate)

        qualifying = [c for c in candidates if self.qualifies(c, config)]
        qualifying.sort(key=lambda o: o.estimated_profit_usd, reverse=True)
        return PairEvaluation(pair=pair, candidates=candidates, qualifying=qualifying)

    @staticmethod
    def qualifies(opportunity: ArbitrageOpportunity, config: ScanConfig) -> bool:
        return config.qualifies(
            opportunity.gross_profit_percent,
            opportunity.net_profit_percent,
            opportunity.estimated_profit_usd,
        )
