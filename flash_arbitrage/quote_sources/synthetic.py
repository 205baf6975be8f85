"""
Deterministic synthetic quote source for simulation and tests.

Prices derive from the configured USD price of each token plus a seeded
per-venue deviation, so a given seed always produces the same spreads.
"""

import random
from decimal import Decimal
from typing import Dict, Optional, Set, Tuple

from web3 import Web3

from ..exceptions import QuoteSourceError
from ..types import SwapQuote, TokenInfo
from ..utils import from_base_units, get_logger
from .base import QuoteSource

logger = get_logger(__name__)


def _venue_router(venue: str) -> str:
    digest = Web3.keccak(text=f"router:{venue}").hex()
    return Web3.to_checksum_address("0x" + digest[-40:])


class SyntheticQuoteSource(QuoteSource):
    """
    Offline quote source.

    Args:
        seed: Seed for the venue deviations
        max_deviation_bps: Largest deviation of a venue from the reference price
    """

    name = "synthetic"
    live_routes = False

    def __init__(self, seed: int = 42, max_deviation_bps: float = 60.0):
        self.seed = seed
        self.max_deviation_bps = max_deviation_bps
        self._rng = random.Random(seed)
        self._deviations: Dict[Tuple[str, str, str], float] = {}
        self._overrides: Dict[Tuple[str, str, str], Decimal] = {}
        self._failing: Set[str] = set()
        self.calls = 0

    def set_price(self, venue: str, token_in: str, token_out: str, price) -> None:
        """Pin the price (token_out per token_in) quoted on ``venue``."""
        self._overrides[(venue, token_in, token_out)] = Decimal(str(price))

    def fail_venue(self, venue: str) -> None:
        self._failing.add(venue)

    def restore_venue(self, venue: str) -> None:
        self._failing.discard(venue)

    def price_for(self, token_in: TokenInfo, token_out: TokenInfo, venue: str) -> Decimal:
        key = (venue, token_in.symbol, token_out.symbol)
        if key in self._overrides:
            return self._overrides[key]

        if key not in self._deviations:
            self._deviations[key] = self._rng.uniform(
                -self.max_deviation_bps, self.max_deviation_bps
            )
        reference = Decimal(str(token_in.usd_price)) / Decimal(str(token_out.usd_price))
        factor = Decimal(1) + Decimal(str(self._deviations[key])) / Decimal(10000)
        return reference * factor

    def _check(self, venue: str) -> None:
        self.calls += 1
        if venue in self._failing:
            raise QuoteSourceError(f"Synthetic venue '{venue}' unavailable", venue=venue)

    def _amount_out(self, token_in: TokenInfo, token_out: TokenInfo, amount: int, venue: str) -> int:
        human_in = from_base_units(amount, token_in.decimals)
        human_out = human_in * self.price_for(token_in, token_out, venue)
        return int(human_out * (Decimal(10) ** token_out.decimals))

    async def get_quote(
        self, token_in: TokenInfo, token_out: TokenInfo, amount: int, venue: str
    ) -> SwapQuote:
        self._check(venue)
        return SwapQuote(
            venue=venue,
            from_token=token_in,
            to_token=token_out,
            from_amount=int(amount),
            to_amount=self._amount_out(token_in, token_out, amount, venue),
            estimated_gas=180_000,
        )

    async def build_swap_transaction(
        self,
        token_in: TokenInfo,
        token_out: TokenInfo,
        amount: int,
        from_address: str,
        slippage_bps: int,
        venue: Optional[str] = None,
    ) -> SwapQuote:
        venue = venue or "1inch"
        self._check(venue)
        amount_out = self._amount_out(token_in, token_out, amount, venue)
        min_out = amount_out * (10000 - slippage_bps) // 10000
        payload = Web3.keccak(
            text=f"{venue}:{token_in.address}:{token_out.address}:{amount}:{min_out}:{from_address}"
        ).hex()
        if payload.startswith("0x"):
            payload = payload[2:]

        return SwapQuote(
            venue=venue,
            from_token=token_in,
            to_token=token_out,
            from_amount=int(amount),
            to_amount=amount_out,
            route_target=_venue_router(venue),
            route_call_data="0x12aa3caf" + payload,
            estimated_gas=180_000,
        )
