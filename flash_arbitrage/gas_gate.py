"""
Gas and balance preconditions shared by the scanner and the trade executor.
"""

import asyncio
from decimal import Decimal
from typing import Union

from .constants import DEFAULT_RPC_TIMEOUT_SECONDS
from .exceptions import InfrastructureError
from .interfaces import ChainRpc
from .types import BalanceCheck, GasCheck
from .utils import get_logger

logger = get_logger(__name__)


class GasBalanceGate:
    """
    Read-only network condition checks.

    A limit that is not met is a normal outcome reported through the returned
    value. Only RPC failures and timeouts raise, as ``InfrastructureError``.
    """

    def __init__(self, chain: ChainRpc, timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS):
        self.chain = chain
        self.timeout_seconds = timeout_seconds

    async def check_gas_acceptable(self, max_gwei: float) -> GasCheck:
        """Compare the current gas price against ``max_gwei``."""
        try:
            current = await asyncio.wait_for(
                self.chain.get_gas_price_gwei(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise InfrastructureError(
                f"Gas price request timed out after {self.timeout_seconds}s",
                endpoint="eth_gasPrice",
            ) from e
        except InfrastructureError:
            raise
        except Exception as e:
            raise InfrastructureError(
                f"Failed to read gas price: {e}", endpoint="eth_gasPrice"
            ) from e

        current = float(current)
        acceptable = current <= max_gwei
        logger.debug(f"Gas check: {current:.2f} Gwei (max {max_gwei}) ok={acceptable}")
        return GasCheck(current_gwei=current, max_gwei=float(max_gwei), acceptable=acceptable)

    async def check_native_balance(
        self, address: str, minimum: Union[Decimal, float, str]
    ) -> BalanceCheck:
        """Compare the native balance of ``address`` against ``minimum``."""
        minimum = Decimal(str(minimum))
        try:
            balance = await asyncio.wait_for(
                self.chain.get_native_balance(address), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise InfrastructureError(
                f"Balance request timed out after {self.timeout_seconds}s",
                endpoint="eth_getBalance",
            ) from e
        except InfrastructureError:
            raise
        except Exception as e:
            raise InfrastructureError(
                f"Failed to read native balance: {e}", endpoint="eth_getBalance"
            ) from e

        balance = Decimal(str(balance))
        return BalanceCheck(
            address=address,
            balance=balance,
            minimum=minimum,
            sufficient=balance >= minimum,
        )
