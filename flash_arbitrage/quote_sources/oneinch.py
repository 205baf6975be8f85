"""
1inch aggregation API quote source.

Venue-specific quotes are obtained by restricting the aggregator to a single
liquidity protocol; the "1inch" venue uses the unrestricted route.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from ..constants import DEFAULT_QUOTE_TIMEOUT_SECONDS, ONEINCH_API_BASE, ONEINCH_PROTOCOLS
from ..exceptions import QuoteSourceError
from ..types import SwapQuote, TokenInfo
from ..utils import get_logger
from .base import QuoteSource

logger = get_logger(__name__)


class OneInchQuoteSource(QuoteSource):
    """Quotes and swap payloads from the 1inch swap API."""

    name = "oneinch"

    def __init__(
        self,
        chain_id: int,
        api_key: Optional[str] = None,
        api_base_url: str = ONEINCH_API_BASE,
        timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.chain_id = chain_id
        self.api_key = api_key
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def _protocols_for(venue: Optional[str]) -> Optional[str]:
        if venue is None:
            return None
        if venue not in ONEINCH_PROTOCOLS:
            raise QuoteSourceError(
                f"Venue '{venue}' is not supported by the 1inch source",
                venue=venue,
                remediation="Use one of: " + ", ".join(ONEINCH_PROTOCOLS),
            )
        return ONEINCH_PROTOCOLS[venue]

    async def _request(self, path: str, params: Dict[str, Any], venue: Optional[str]) -> Dict[str, Any]:
        endpoint = f"{self.api_base_url}/{self.chain_id}/{path}"
        session = await self._get_session()
        try:
            async with session.get(endpoint, params=params, headers=self._headers()) as response:
                data = await response.json(content_type=None)
                if response.status >= 400:
                    raise QuoteSourceError(
                        f"1inch {path} failed: status={response.status}",
                        venue=venue,
                        status_code=response.status,
                        details={"endpoint": endpoint, "body": data},
                    )
        except QuoteSourceError:
            raise
        except asyncio.TimeoutError as e:
            raise QuoteSourceError(
                f"1inch {path} timed out after {self.timeout_seconds}s", venue=venue
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise QuoteSourceError(f"1inch {path} request failed: {e}", venue=venue) from e

        if not isinstance(data, dict):
            raise QuoteSourceError(f"Unexpected 1inch response: {data}", venue=venue)
        return data

    async def get_quote(
        self, token_in: TokenInfo, token_out: TokenInfo, amount: int, venue: str
    ) -> SwapQuote:
        params = {
            "src": token_in.address,
            "dst": token_out.address,
            "amount": str(amount),
            "includeGas": "true",
        }
        protocols = self._protocols_for(venue)
        if protocols:
            params["protocols"] = protocols

        data = await self._request("quote", params, venue)
        if "dstAmount" not in data:
            raise QuoteSourceError(f"1inch quote missing dstAmount: {data}", venue=venue)

        return SwapQuote(
            venue=venue,
            from_token=token_in,
            to_token=token_out,
            from_amount=int(amount),
            to_amount=int(data["dstAmount"]),
            estimated_gas=int(data.get("gas") or 0),
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
        params = {
            "src": token_in.address,
            "dst": token_out.address,
            "amount": str(amount),
            "from": from_address,
            # 1inch takes slippage in percent
            "slippage": str(slippage_bps / 100),
            "disableEstimate": "true",
        }
        protocols = self._protocols_for(venue)
        if protocols:
            params["protocols"] = protocols

        data = await self._request("swap", params, venue)
        tx = data.get("tx") or {}
        logger.debug(f"1inch swap built for {token_in.symbol}->{token_out.symbol} on {venue}")

        return SwapQuote(
            venue=venue or "1inch",
            from_token=token_in,
            to_token=token_out,
            from_amount=int(amount),
            to_amount=int(data.get("dstAmount") or 0),
            route_target=tx.get("to") or "",
            route_call_data=tx.get("data") or "",
            estimated_gas=int(tx.get("gas") or 0),
        )
