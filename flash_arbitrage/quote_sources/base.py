"""
Quote source interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..types import SwapQuote, TokenInfo


class QuoteSource(ABC):
    """
    Abstract source of per-venue quotes and executable swap payloads.

    Both methods raise ``QuoteSourceError`` on failure. ``get_quote`` is used
    by the scanner; ``build_swap_transaction`` by the trade executor to build
    each leg of the flash loan.

    ``live_routes`` is False for sources whose swap payloads cannot be
    executed on chain; real trading refuses them.
    """

    name = "base"
    live_routes = True

    @abstractmethod
    async def get_quote(
        self, token_in: TokenInfo, token_out: TokenInfo, amount: int, venue: str
    ) -> SwapQuote:
        """Quote ``amount`` base units of ``token_in`` on ``venue``."""

    @abstractmethod
    async def build_swap_transaction(
        self,
        token_in: TokenInfo,
        token_out: TokenInfo,
        amount: int,
        from_address: str,
        slippage_bps: int,
        venue: Optional[str] = None,
    ) -> SwapQuote:
        """Build an executable swap whose ``route_target``/``route_call_data`` are set."""

    async def close(self) -> None:
        """Release network resources."""
