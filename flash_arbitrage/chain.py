"""
Polygon chain access through web3.

web3's HTTP provider is synchronous, so every call is pushed to the default
executor; callers bound each call with their own ``asyncio.wait_for``.
"""

import asyncio
from decimal import Decimal
from functools import partial
from typing import Any, Callable, Optional

from eth_abi import encode
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError

from .constants import (
    ARBITRAGE_EXECUTOR_ABI,
    ARBITRAGE_PARAMS_ABI_TYPE,
    DEFAULT_RPC_TIMEOUT_SECONDS,
    FLASH_LOAN_GAS_LIMIT,
    GWEI,
)
from .exceptions import InfrastructureError
from .types import FlashLoanReceipt
from .utils import get_logger, mask_address

logger = get_logger(__name__)


def encode_arbitrage_params(
    buy_target: str,
    buy_call_data: str,
    sell_target: str,
    sell_call_data: str,
    min_profit: int,
) -> bytes:
    """
    ABI-encode both swap legs and the profit floor for ``executeArbitrage``.

    Layout: ``((buyRouter, buyData), (sellRouter, sellData), minProfit)``.
    """
    return encode(
        [ARBITRAGE_PARAMS_ABI_TYPE],
        [
            (
                (Web3.to_checksum_address(buy_target), Web3.to_bytes(hexstr=buy_call_data)),
                (Web3.to_checksum_address(sell_target), Web3.to_bytes(hexstr=sell_call_data)),
                int(min_profit),
            )
        ],
    )


def signer_address(private_key: str) -> str:
    """Address controlled by ``private_key``."""
    return Account.from_key(private_key).address


class Web3ChainClient:
    """``ChainRpc`` implementation backed by a web3 HTTP provider."""

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
        web3: Optional[Web3] = None,
    ):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.w3 = web3 or Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_seconds})
        )
        logger.info(f"Chain client initialized for chain {chain_id} via {rpc_url}")

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args))

    async def get_gas_price_gwei(self) -> float:
        wei = await self._call(lambda: self.w3.eth.gas_price)
        return wei / GWEI

    async def get_native_balance(self, address: str) -> Decimal:
        wei = await self._call(self.w3.eth.get_balance, Web3.to_checksum_address(address))
        return Decimal(wei) / Decimal(10**18)

    async def get_code(self, address: str) -> bytes:
        code = await self._call(self.w3.eth.get_code, Web3.to_checksum_address(address))
        return bytes(code)

    async def is_executor_approved(self, contract_address: str, executor: str) -> bool:
        contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=ARBITRAGE_EXECUTOR_ABI
        )
        call = contract.functions.approvedExecutors(Web3.to_checksum_address(executor)).call
        return bool(await self._call(call))

    async def execute_flash_loan(
        self,
        contract_address: str,
        asset: str,
        amount: int,
        params: bytes,
        private_key: str,
    ) -> FlashLoanReceipt:
        """
        Sign and submit ``executeArbitrage(asset, amount, params)``.

        The call is dry-run first so a revert is reported without spending
        gas. Success means the transaction was accepted by the node; the
        receipt is not awaited.

        Raises:
            InfrastructureError: On RPC failures other than contract reverts
        """
        return await self._call(
            self._submit_flash_loan, contract_address, asset, amount, params, private_key
        )

    def _submit_flash_loan(
        self,
        contract_address: str,
        asset: str,
        amount: int,
        params: bytes,
        private_key: str,
    ) -> FlashLoanReceipt:
        account = Account.from_key(private_key)
        contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=ARBITRAGE_EXECUTOR_ABI
        )
        fn = contract.functions.executeArbitrage(
            Web3.to_checksum_address(asset), int(amount), params
        )

        try:
            fn.call({"from": account.address})
            tx = fn.build_transaction(
                {
                    "from": account.address,
                    "nonce": self.w3.eth.get_transaction_count(account.address),
                    "gas": FLASH_LOAN_GAS_LIMIT,
                    "gasPrice": self.w3.eth.gas_price,
                    "chainId": self.chain_id,
                }
            )
            signed = account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as e:
            logger.warning(f"executeArbitrage reverted: {e}")
            return FlashLoanReceipt(success=False, error=str(e), reverted=True)
        except Exception as e:
            raise InfrastructureError(
                f"Flash loan submission failed: {e}",
                endpoint="eth_sendRawTransaction",
            ) from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info(f"Flash loan submitted: {mask_address(tx_hex)} from {mask_address(account.address)}")
        return FlashLoanReceipt(success=True, tx_hash=tx_hex)
