"""
Flash-loan trade execution pipeline.

An attempt runs a fixed sequence of stages. Each stage either advances or
raises a typed ``FlashArbitrageError``; nothing is retried inside an attempt.
Whatever happens, the attempt ends with exactly one execution record, one
``tradeExecuted`` event and at most one notification.

Stages:
1. freshness re-check against the scan session thresholds
2. mode and credential check
3. balance (real mode) and gas re-check
4. simulation: synthetic success, no chain interaction
5. real: build both swap legs, validate the route and contract, submit the
   flash loan
"""

import asyncio
import logging
import secrets
import time
from decimal import Decimal
from typing import Any, Dict, Optional

from web3 import Web3

from .chain import encode_arbitrage_params, signer_address
from .comparator import PriceComparator
from .config_loader import ScanConfig
from .config_schema import BotSettings
from .constants import (
    LIVE_ROUTES_REMEDIATION,
    MIN_PROFIT_FLOOR_BPS,
    REVALIDATION_WINDOW_SECONDS,
    EventType,
    ExecutionMode,
    ExecutionStatus,
    NotificationEvent,
)
from .events import EventBroadcaster
from .exceptions import (
    ConfigurationError,
    ErrorKind,
    FlashArbitrageError,
    InfrastructureError,
    MalformedRouteError,
    OnChainRejectionError,
    ThresholdNotMetError,
)
from .gas_gate import GasBalanceGate
from .interfaces import ChainRpc, Notifier, StorageBackend, SystemTimeProvider, TimeProvider
from .notifications import NullNotifier
from .quote_sources.base import QuoteSource
from .types import (
    ActivityLogEntry,
    ArbitrageOpportunity,
    ExecutionRecord,
    SwapQuote,
    TradeExecutionResult,
)
from .utils import (
    format_duration,
    from_base_units,
    get_logger,
    is_valid_private_key,
    mask_address,
    normalize_private_key,
    to_base_units,
)

logger = get_logger(__name__)

CATEGORY = "trade_execution"

_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class TradeExecutor:
    """
    Executes consumed opportunity snapshots.

    The executor never touches the opportunity registry. Settings are read
    from storage at the start of every attempt, so credential, mode and
    timeout edits apply to the next attempt.
    """

    def __init__(
        self,
        storage: StorageBackend,
        chain: ChainRpc,
        quote_source: QuoteSource,
        notifier: Optional[Notifier] = None,
        events: Optional[EventBroadcaster] = None,
        comparator: Optional[PriceComparator] = None,
        clock: Optional[TimeProvider] = None,
        revalidation_window_seconds: float = REVALIDATION_WINDOW_SECONDS,
    ):
        self.storage = storage
        self.chain = chain
        self.quote_source = quote_source
        self.notifier = notifier or NullNotifier()
        self.events = events or EventBroadcaster()
        self.comparator = comparator or PriceComparator()
        self.clock = clock or SystemTimeProvider()
        self.revalidation_window_seconds = revalidation_window_seconds
        self.total_profit_usd = 0.0
        self.executions = 0

    async def execute(
        self, opportunity: ArbitrageOpportunity, config: Optional[ScanConfig] = None
    ) -> TradeExecutionResult:
        """
        Run one attempt. Never raises; failures are returned and recorded.

        ``config`` is the scan session that found the opportunity. Its
        thresholds and gas ceiling apply to the re-check; without one they are
        resolved from the stored settings.
        """
        started = time.monotonic()
        attempt: Dict[str, Any] = {}
        settings: Optional[BotSettings] = None
        mode = ExecutionMode.SIMULATION

        execution_log = {
            "action": "EXECUTE_OPPORTUNITY",
            "opportunity_id": opportunity.id,
            "pair": opportunity.pair_label,
            "path": opportunity.dex_path,
            "loan_amount": str(opportunity.loan_amount),
            "gross_pct": round(opportunity.gross_profit_percent, 4),
            "net_usd": round(opportunity.estimated_profit_usd, 2),
            "gas_cost_usd": round(opportunity.estimated_gas_cost_usd, 2),
        }
        logger.info(f"EXECUTION_START: {execution_log}")

        try:
            settings = await self.storage.get_bot_settings()
            mode = self._resolve_mode(settings)
            config = config or ScanConfig.from_settings(settings)
            await self._check_freshness(opportunity, config, mode)
            private_key, address = await self._check_credentials(settings, mode)
            await self._check_network(settings, config, mode, address)

            if mode is ExecutionMode.SIMULATION:
                result = await self._simulate(opportunity, started)
            else:
                result = await self._execute_real(
                    opportunity, settings, private_key, address, started, attempt
                )
        except FlashArbitrageError as e:
            result = await self._fail(opportunity, e, mode, started)
        except Exception as e:
            logger.exception(f"Unexpected execution failure for {opportunity.id}")
            wrapped = InfrastructureError(f"Unexpected execution failure: {e}", step="failed")
            result = await self._fail(opportunity, wrapped, mode, started)

        await self._finish(opportunity, result, settings, mode, attempt.get("amount_out"))
        return result

    # Stages

    @staticmethod
    def _resolve_mode(settings: BotSettings) -> ExecutionMode:
        if settings.use_simulation:
            return ExecutionMode.SIMULATION
        return ExecutionMode.REAL

    async def _check_freshness(
        self, opportunity: ArbitrageOpportunity, config: ScanConfig, mode: ExecutionMode
    ) -> None:
        step = "1_validation"
        age = opportunity.age_seconds(self.clock.current_timestamp())
        await self._step(
            "info",
            step,
            f"Validating {opportunity.pair_label} {opportunity.dex_path}",
            opportunity_id=opportunity.id,
            expected_profit=opportunity.estimated_profit_usd,
            mode=mode.value,
            age_seconds=round(age, 3),
        )

        if age > self.revalidation_window_seconds:
            raise ThresholdNotMetError(
                f"Opportunity is {age:.1f}s old (limit {self.revalidation_window_seconds:.0f}s)",
                details={"age_seconds": age},
                step=step,
            )

        if not self.comparator.qualifies(opportunity, config):
            raise ThresholdNotMetError(
                "Opportunity no longer meets the configured profit thresholds",
                details={
                    "gross_percent": opportunity.gross_profit_percent,
                    "net_percent": opportunity.net_profit_percent,
                    "net_usd": opportunity.estimated_profit_usd,
                    "min_profit_percent": config.min_profit_percent,
                    "min_net_profit_percent": config.min_net_profit_percent,
                    "min_net_profit_usd": config.min_net_profit_usd,
                },
                step=step,
            )

    async def _check_credentials(self, settings: BotSettings, mode: ExecutionMode):
        step = "2_key_validation"
        raw_key = settings.private_key
        key = normalize_private_key(raw_key)

        if key is not None and not is_valid_private_key(key):
            raise ConfigurationError(
                "Invalid private key format. Must be 64 hex characters (or 66 with 0x prefix)",
                details={"key_length": len(key)},
                remediation="Check the private key format in the bot settings or PRIVATE_KEY.",
                step=step,
            )

        address = None
        if mode is ExecutionMode.REAL:
            if not settings.enable_real_trading:
                raise ConfigurationError(
                    "Real trading is disabled in configuration",
                    remediation="Set enable_real_trading or switch back to simulation.",
                    step=step,
                )
            if not getattr(self.quote_source, "live_routes", True):
                raise ConfigurationError(
                    f"Real trading needs live swap routes; the {self.quote_source.name} "
                    "quote source only serves simulation",
                    details={"quote_source": self.quote_source.name},
                    remediation=LIVE_ROUTES_REMEDIATION,
                    step=step,
                )
            if key is None:
                raise ConfigurationError(
                    "Private key not configured for real trading",
                    remediation="Set PRIVATE_KEY in the environment or private_key in settings.",
                    step=step,
                )
            try:
                address = signer_address(key)
            except Exception as e:
                raise ConfigurationError(
                    f"Private key rejected: {e}", step=step
                ) from e

        await self._step(
            "info",
            step,
            f"Private key {'configured' if key else 'absent'}",
            is_configured=key is not None,
            mode=mode.value,
            address=address,
        )
        return key, address

    async def _check_network(
        self,
        settings: BotSettings,
        config: ScanConfig,
        mode: ExecutionMode,
        address: Optional[str],
    ) -> None:
        gate = GasBalanceGate(self.chain, settings.rpc_timeout_seconds)

        if mode is ExecutionMode.REAL:
            step = "3_balance_check"
            try:
                balance = await gate.check_native_balance(address, settings.min_native_balance)
            except InfrastructureError as e:
                e.step = step
                raise
            await self._step(
                "info" if balance.sufficient else "error",
                step,
                f"Native balance {balance.balance:.4f} (minimum {balance.minimum})",
                wallet_address=address,
                balance=str(balance.balance),
                min_required=str(balance.minimum),
                is_sufficient=balance.sufficient,
            )
            if not balance.sufficient:
                raise ConfigurationError(
                    f"Insufficient native balance: {balance.balance:.4f} "
                    f"(minimum {balance.minimum} required for gas)",
                    details={"balance": str(balance.balance), "minimum": str(balance.minimum)},
                    remediation=f"Fund wallet {address} with native tokens for gas.",
                    step=step,
                )

        step = "4_gas_check"
        try:
            gas = await gate.check_gas_acceptable(config.max_gas_price_gwei)
        except InfrastructureError as e:
            e.step = step
            raise
        await self._step(
            "info" if gas.acceptable else "error",
            step,
            f"Gas price {gas.current_gwei:.1f} Gwei (max {gas.max_gwei:.0f})",
            gas_gwei=gas.current_gwei,
            max_gas_gwei=gas.max_gwei,
            is_acceptable=gas.acceptable,
        )
        if not gas.acceptable:
            raise ThresholdNotMetError(
                f"Gas price too high: {gas.current_gwei:.1f} Gwei (max {gas.max_gwei:.0f})",
                details={"gas_gwei": gas.current_gwei, "max_gas_gwei": gas.max_gwei},
                remediation="Wait for gas to drop or raise max_gas_price_gwei.",
                step=step,
            )

    async def _simulate(
        self, opportunity: ArbitrageOpportunity, started: float
    ) -> TradeExecutionResult:
        await self._step("info", "5_mock_transaction", "Simulation: preparing mock transaction", mode="simulation")
        tx_id = "0x" + secrets.token_hex(32)
        await self._step(
            "success",
            "7_completed",
            f"Simulation complete, expected profit ${opportunity.estimated_profit_usd:.2f}",
            mode="simulation",
            tx_hash=tx_id,
            profit=opportunity.estimated_profit_usd,
            dex_path=opportunity.dex_path,
        )
        return TradeExecutionResult(
            success=True,
            opportunity_id=opportunity.id,
            message="Simulated trade completed",
            tx_hash=tx_id,
            profit_usd=opportunity.estimated_profit_usd,
            gas_cost_usd=opportunity.estimated_gas_cost_usd,
            execution_time_ms=_elapsed_ms(started),
            simulated=True,
        )

    async def _execute_real(
        self,
        opportunity: ArbitrageOpportunity,
        settings: BotSettings,
        private_key: str,
        address: str,
        started: float,
        attempt: Dict[str, Any],
    ) -> TradeExecutionResult:
        await self._step(
            "info",
            "5_real_execution",
            f"Real trading: building swaps for {mask_address(address)}",
            mode="real",
            wallet_address=address,
        )

        loan_units = to_base_units(opportunity.loan_amount, opportunity.token_in.decimals)

        buy_swap = await self._build_leg(
            "5.2_build_buy_swap",
            opportunity.token_in,
            opportunity.token_out,
            loan_units,
            address,
            settings,
            opportunity.buy_venue,
        )
        if buy_swap.to_amount <= 0:
            raise MalformedRouteError(
                f"Buy swap on {opportunity.buy_venue} returned no output", step="5.2_build_buy_swap"
            )
        attempt["amount_out"] = from_base_units(buy_swap.to_amount, opportunity.token_out.decimals)

        sell_swap = await self._build_leg(
            "5.3_build_sell_swap",
            opportunity.token_out,
            opportunity.token_in,
            buy_swap.to_amount,
            address,
            settings,
            opportunity.sell_venue,
        )

        step = "6.1_route_validation"
        for leg_name, swap in (("buy", buy_swap), ("sell", sell_swap)):
            if not swap.route_target or not Web3.is_address(swap.route_target):
                raise MalformedRouteError(
                    f"Invalid {leg_name} router address for {swap.venue}: {swap.route_target!r}",
                    details={"leg": leg_name, "venue": swap.venue},
                    step=step,
                )
            if not swap.route_call_data or swap.route_call_data in ("0x", "0x0"):
                raise MalformedRouteError(
                    f"{leg_name.capitalize()} swap transaction data is missing",
                    details={"leg": leg_name, "venue": swap.venue},
                    step=step,
                )
        await self._step(
            "info",
            "6.2_router_addresses",
            f"Routers: BUY={mask_address(buy_swap.route_target)} SELL={mask_address(sell_swap.route_target)}",
            buy_router=buy_swap.route_target,
            sell_router=sell_swap.route_target,
            buy_dex=opportunity.buy_venue,
            sell_dex=opportunity.sell_venue,
        )

        contract = await self._validate_contract(settings)

        min_profit = loan_units * MIN_PROFIT_FLOOR_BPS // 10000
        params = encode_arbitrage_params(
            buy_swap.route_target,
            buy_swap.route_call_data,
            sell_swap.route_target,
            sell_swap.route_call_data,
            min_profit,
        )
        await self._step(
            "info",
            "6.4_arbitrage_params",
            f"Arbitrage params: minProfit={from_base_units(min_profit, opportunity.token_in.decimals)} "
            f"{opportunity.token_in.symbol}",
            min_profit=str(min_profit),
            buy_router=buy_swap.route_target,
            sell_router=sell_swap.route_target,
        )

        step = "7_execute_flashloan"
        await self._step(
            "info",
            step,
            "Calling flash loan through the execution contract",
            contract_address=contract,
            loan_amount=str(loan_units),
        )
        try:
            receipt = await asyncio.wait_for(
                self.chain.execute_flash_loan(
                    contract, opportunity.token_in.address, loan_units, params, private_key
                ),
                timeout=settings.flash_loan_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise InfrastructureError(
                f"Flash loan call timed out after {settings.flash_loan_timeout_seconds}s",
                endpoint="executeArbitrage",
                step=step,
            ) from e
        except InfrastructureError as e:
            e.step = step
            raise

        if not receipt.success:
            if receipt.reverted:
                raise OnChainRejectionError(
                    f"Flash loan reverted: {receipt.error}",
                    tx_hash=receipt.tx_hash,
                    details={"contract": contract, "signer": address},
                    remediation=await self._rejection_hint(contract, address),
                    step=step,
                )
            raise InfrastructureError(
                f"Flash loan execution failed: {receipt.error or 'unknown error'}",
                endpoint="executeArbitrage",
                step=step,
            )

        await self._step(
            "success",
            "8_transaction_sent",
            f"Transaction sent: {mask_address(receipt.tx_hash)}",
            tx_hash=receipt.tx_hash,
            profit=opportunity.estimated_profit_usd,
            status="pending_confirmation",
        )
        return TradeExecutionResult(
            success=True,
            opportunity_id=opportunity.id,
            message="Flash loan submitted, awaiting confirmation",
            tx_hash=receipt.tx_hash,
            profit_usd=opportunity.estimated_profit_usd,
            gas_cost_usd=opportunity.estimated_gas_cost_usd,
            execution_time_ms=_elapsed_ms(started),
            simulated=False,
        )

    async def _build_leg(
        self,
        step: str,
        token_in,
        token_out,
        amount: int,
        address: str,
        settings: BotSettings,
        venue: str,
    ) -> SwapQuote:
        await self._step(
            "info",
            step,
            f"Building {token_in.symbol}->{token_out.symbol} swap on {venue}",
            venue=venue,
            amount=str(amount),
        )
        try:
            swap = await asyncio.wait_for(
                self.quote_source.build_swap_transaction(
                    token_in, token_out, amount, address, settings.slippage_bps, venue=venue
                ),
                timeout=settings.quote_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise InfrastructureError(
                f"Swap build on {venue} timed out after {settings.quote_timeout_seconds}s",
                step=step,
            ) from e
        except FlashArbitrageError as e:
            e.step = step
            raise
        await self._step(
            "info",
            f"{step}_done",
            f"Swap on {venue} returns {from_base_units(swap.to_amount, token_out.decimals)} {token_out.symbol}",
            venue=venue,
            to_amount=str(swap.to_amount),
        )
        return swap

    async def _validate_contract(self, settings: BotSettings) -> str:
        step = "6.3_contract_validated"
        contract = settings.flash_loan_contract
        if not contract:
            raise ConfigurationError(
                "Execution contract address is not configured",
                remediation="Set flash_loan_contract in settings or ARBITRAGE_CONTRACT.",
                step=step,
            )
        if not Web3.is_address(contract):
            raise ConfigurationError(f"Invalid execution contract address: {contract}", step=step)

        try:
            code = await asyncio.wait_for(
                self.chain.get_code(contract), timeout=settings.rpc_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise InfrastructureError(
                f"getCode timed out after {settings.rpc_timeout_seconds}s",
                endpoint="eth_getCode",
                step=step,
            ) from e
        except FlashArbitrageError:
            raise
        except Exception as e:
            raise InfrastructureError(
                f"Failed to read contract code: {e}", endpoint="eth_getCode", step=step
            ) from e

        if not code or code in (b"\x00",):
            raise ConfigurationError(
                f"Execution contract not deployed at {contract}",
                details={"contract": contract},
                remediation="Deploy the ArbitrageExecutor contract and update flash_loan_contract.",
                step=step,
            )
        await self._step(
            "info",
            step,
            "Execution contract verified",
            contract_address=contract,
            code_size=len(code),
        )
        return contract

    async def _rejection_hint(self, contract: str, address: str) -> str:
        check = getattr(self.chain, "is_executor_approved", None)
        default = OnChainRejectionError.default_remediation
        if check is None:
            return default
        try:
            approved = await asyncio.wait_for(check(contract, address), timeout=10.0)
        except Exception as e:
            logger.debug(f"Executor approval lookup failed: {e}")
            return default
        if not approved:
            return (
                f"Signer {address} is not an approved executor on {contract}. "
                "Authorize it on the contract before retrying."
            )
        return default

    # Outcome

    async def _fail(
        self,
        opportunity: ArbitrageOpportunity,
        error: FlashArbitrageError,
        mode: ExecutionMode,
        started: float,
    ) -> TradeExecutionResult:
        level = "warning" if error.kind is ErrorKind.THRESHOLD_NOT_MET else "error"
        error_data = error.to_dict()
        error_data["failed_step"] = error_data.pop("step")
        await self._step(
            level,
            "failed",
            f"Execution failed at {error.step or 'unknown step'}: {error}",
            opportunity_id=opportunity.id,
            mode=mode.value,
            pair=opportunity.pair_label,
            dex_path=opportunity.dex_path,
            **error_data,
        )
        return TradeExecutionResult(
            success=False,
            opportunity_id=opportunity.id,
            message=str(error),
            tx_hash=getattr(error, "tx_hash", None),
            profit_usd=opportunity.estimated_profit_usd,
            gas_cost_usd=opportunity.estimated_gas_cost_usd,
            error=str(error),
            error_kind=error.kind,
            remediation=error.remediation,
            failed_step=error.step,
            execution_time_ms=_elapsed_ms(started),
            simulated=mode is ExecutionMode.SIMULATION,
        )

    async def _finish(
        self,
        opportunity: ArbitrageOpportunity,
        result: TradeExecutionResult,
        settings: Optional[BotSettings],
        mode: ExecutionMode,
        amount_out: Optional[Decimal] = None,
    ) -> None:
        if not result.success:
            status = ExecutionStatus.FAILED
        elif result.simulated:
            status = ExecutionStatus.SUCCESS
        else:
            status = ExecutionStatus.PENDING

        if amount_out is None:
            amount_out = opportunity.loan_amount * Decimal(str(opportunity.buy_price))

        record = ExecutionRecord(
            opportunity_id=opportunity.id,
            status=status,
            tx_hash=result.tx_hash or "",
            token_in=opportunity.token_in.symbol,
            token_out=opportunity.token_out.symbol,
            amount_in=str(opportunity.loan_amount),
            amount_out=str(amount_out),
            profit_usd=opportunity.gross_profit_usd,
            gas_cost_usd=opportunity.estimated_gas_cost_usd,
            net_profit_usd=opportunity.estimated_profit_usd,
            dex_path=opportunity.dex_path,
            result=result,
            created_at=self.clock.current_timestamp(),
        )

        self.executions += 1
        try:
            await self.storage.upsert_execution_record(record)
        except Exception as e:
            logger.error(f"Failed to persist execution record {opportunity.id}: {e}")

        result_log = {
            "action": "EXECUTION_COMPLETE",
            "status": status.value,
            "tx_hash": result.tx_hash,
            "error_kind": result.error_kind.value if result.error_kind else None,
            "failed_step": result.failed_step,
            "mode": mode.value,
            "elapsed": format_duration(result.execution_time_ms / 1000.0),
        }
        logger.info(f"EXECUTION_RESULT: {result_log}")

        if result.success:
            self.total_profit_usd += opportunity.estimated_profit_usd
            try:
                await self.storage.update_bot_status(
                    last_trade_at=record.created_at, total_profit_usd=self.total_profit_usd
                )
            except Exception as e:
                logger.warning(f"Failed to update bot status: {e}")

        await self.events.emit(EventType.TRADE_EXECUTED, {"record": record.to_dict()})

        if settings is not None:
            await self._notify(opportunity, result, settings, mode)

    async def _notify(
        self,
        opportunity: ArbitrageOpportunity,
        result: TradeExecutionResult,
        settings: BotSettings,
        mode: ExecutionMode,
    ) -> None:
        if result.success:
            if opportunity.estimated_profit_usd < settings.telegram_profit_threshold_usd:
                return
            if mode is ExecutionMode.SIMULATION:
                event = NotificationEvent.TRADE_SUCCESS
                header = "<b>Simulated trade completed</b>"
            else:
                event = NotificationEvent.TRADE_PENDING
                header = "<b>Trade submitted</b>"
            lines = [
                header,
                f"Pair: {opportunity.pair_label}",
                f"DEX: {opportunity.dex_path}",
                f"Expected profit: ${opportunity.estimated_profit_usd:.2f}",
                f"Gas: ~${opportunity.estimated_gas_cost_usd:.2f}",
                f"TX: {result.tx_hash}",
            ]
        else:
            if not settings.notify_on_failure:
                return
            event = NotificationEvent.TRADE_FAILED
            lines = [
                "<b>Trade failed</b>",
                f"Pair: {opportunity.pair_label}",
                f"DEX: {opportunity.dex_path}",
                f"Step: {result.failed_step}",
                f"Error: {result.error}",
                f"Hint: {result.remediation}",
            ]

        try:
            await self.notifier.send("\n".join(lines), event.value)
        except Exception as e:
            logger.warning(f"Notification failed for {opportunity.id}: {e}")

    async def _step(self, level: str, step: str, message: str, **metadata: Any) -> None:
        metadata["step"] = step
        logger.log(_LEVELS.get(level, logging.INFO), f"[{step}] {message} | {metadata}")
        entry = ActivityLogEntry(
            category=CATEGORY,
            level=level,
            step=step,
            message=message,
            metadata=metadata,
            timestamp=self.clock.current_timestamp(),
        )
        try:
            await self.storage.append_activity_log(entry)
        except Exception as e:
            logger.warning(f"Failed to write activity log entry {step}: {e}")


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000.0
