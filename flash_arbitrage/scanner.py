"""
Opportunity scanner loop.

Each cycle walks ``IDLE -> GATING -> FETCHING -> COMPARING -> DISPATCHING ->
IDLE``: check gas, fetch one quote per (pair, venue) concurrently, price every
venue pair, then register and dispatch the qualifying candidates to the trade
executor as background tasks.
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from .comparator import PriceComparator
from .config_loader import ScanConfig
from .constants import DEFAULT_RPC_TIMEOUT_SECONDS, EventType, ScanPhase
from .events import EventBroadcaster, EventCallback
from .exceptions import InfrastructureError
from .gas_gate import GasBalanceGate
from .interfaces import ChainRpc, StorageBackend, SystemTimeProvider, TimeProvider
from .quote_sources.base import QuoteSource
from .registry import OpportunityRegistry
from .types import ActivityLogEntry, ArbitrageOpportunity, SwapQuote, TokenPair
from .utils import format_profit, get_logger, to_base_units

logger = get_logger(__name__)

CATEGORY = "scanner"

_LEVELS = {"info": logging.INFO, "success": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


class OpportunityScanner:
    """
    Periodic cross-venue scanner.

    Owns its loop task, registry and running flag. Scan cycles are serialized
    by an ``asyncio.Lock`` so a manual ``scan_once`` never overlaps the timer.
    Dispatched executions are tracked separately and survive ``stop_scanning``.
    """

    def __init__(
        self,
        storage: StorageBackend,
        chain: ChainRpc,
        quote_source: QuoteSource,
        executor=None,
        events: Optional[EventBroadcaster] = None,
        registry: Optional[OpportunityRegistry] = None,
        comparator: Optional[PriceComparator] = None,
        clock: Optional[TimeProvider] = None,
        rpc_timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
    ):
        self.storage = storage
        self.chain = chain
        self.quote_source = quote_source
        self.executor = executor
        self.events = events or EventBroadcaster()
        self.registry = registry or OpportunityRegistry()
        self.clock = clock or SystemTimeProvider()
        self.comparator = comparator or PriceComparator(clock=self.clock)
        self.gate = GasBalanceGate(chain, rpc_timeout_seconds)

        self._config: Optional[ScanConfig] = None
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._cycle_lock = asyncio.Lock()
        self._inflight: Set[asyncio.Task] = set()
        self._phase = ScanPhase.IDLE
        self.cycle_count = 0

    @property
    def phase(self) -> ScanPhase:
        return self._phase

    @property
    def config(self) -> Optional[ScanConfig]:
        return self._config

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def is_running(self) -> bool:
        return self._running

    def get_opportunities(self) -> List[ArbitrageOpportunity]:
        """Registry snapshot, most profitable first."""
        return self.registry.snapshot()

    def subscribe(self, callback: EventCallback):
        """Subscribe to scanner and executor events; returns an unsubscribe function."""
        return self.events.subscribe(callback)

    async def resolve_config(
        self, config: Union[ScanConfig, Mapping[str, Any], None] = None
    ) -> ScanConfig:
        if isinstance(config, ScanConfig):
            return config
        settings = await self.storage.get_bot_settings()
        return ScanConfig.from_settings(settings, config)

    async def start_scanning(
        self, config: Union[ScanConfig, Mapping[str, Any], None] = None
    ) -> ScanConfig:
        """
        Resolve the session config and start the loop.

        The first cycle runs immediately; later cycles follow every
        ``scan_interval_seconds``. Calling this while running is a no-op that
        returns the active config.

        Raises:
            ConfigurationError: If the configuration cannot be resolved
        """
        if self._running and self._config is not None:
            logger.warning("Scanner already running")
            return self._config

        self._config = await self.resolve_config(config)
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name="opportunity-scanner")

        logger.info(f"SCANNER_START: {self._config.to_dict()}")
        await self._activity(
            "info",
            "scanner_started",
            f"Scanner started: {len(self._config.token_pairs)} pairs across "
            f"{len(self._config.venues)} venues every {self._config.scan_interval_seconds:g}s",
            config=self._config.to_dict(),
        )
        await self._update_status(is_running=True)
        return self._config

    async def stop_scanning(self) -> None:
        """Cancel the loop. In-flight executions keep running to completion."""
        if not self._running:
            return
        self._running = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._phase = ScanPhase.IDLE

        logger.info(f"SCANNER_STOP: cycles={self.cycle_count} inflight={len(self._inflight)}")
        await self._activity(
            "info",
            "scanner_stopped",
            "Scanner stopped",
            cycles=self.cycle_count,
            inflight_executions=len(self._inflight),
        )
        await self._update_status(is_running=False)

    async def wait_for_inflight(self) -> None:
        """Wait until every dispatched execution has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def scan_once(
        self, config: Union[ScanConfig, Mapping[str, Any], None] = None
    ) -> List[ArbitrageOpportunity]:
        """Run one full cycle; returns the qualifying candidates it found."""
        if config is None and self._config is not None:
            resolved = self._config
        else:
            resolved = await self.resolve_config(config)

        async with self._cycle_lock:
            try:
                found = await self._run_cycle(resolved)
            finally:
                self._phase = ScanPhase.IDLE
            await self._complete_cycle(found)
            return found

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.scan_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Scan cycle failed")
            await asyncio.sleep(self._config.scan_interval_seconds)

    async def _run_cycle(self, config: ScanConfig) -> List[ArbitrageOpportunity]:
        self.cycle_count += 1
        cycle = self.cycle_count

        # Gating
        self._phase = ScanPhase.GATING
        await self._activity(
            "info",
            "1_preparation",
            f"Scan #{cycle}: checking network conditions",
            cycle=cycle,
            max_gas_gwei=config.max_gas_price_gwei,
        )
        try:
            gas = await self.gate.check_gas_acceptable(config.max_gas_price_gwei)
        except InfrastructureError as e:
            await self._activity(
                "warning",
                "1_gas_check_error",
                f"Gas check failed, skipping cycle: {e}",
                cycle=cycle,
                **_error_metadata(e),
            )
            self._evict()
            return []

        if not gas.acceptable:
            await self._activity(
                "warning",
                "1_gas_check_failed",
                f"Gas too high ({gas.current_gwei:.1f} > {gas.max_gwei:.0f} Gwei), skipping scan",
                cycle=cycle,
                gas_gwei=gas.current_gwei,
                max_gas_gwei=gas.max_gwei,
            )
            self._evict()
            return []

        # Fetching
        self._phase = ScanPhase.FETCHING
        await self._activity(
            "info",
            "2_dex_connection",
            f"Requesting quotes from {len(config.venues)} venues for {len(config.token_pairs)} pairs",
            cycle=cycle,
            venues=list(config.venues),
            gas_gwei=gas.current_gwei,
        )
        quotes_by_pair, failures = await self._fetch_quotes(config)

        # Comparing
        self._phase = ScanPhase.COMPARING
        found: List[ArbitrageOpportunity] = []
        analyzed = 0
        for pair in config.token_pairs:
            quotes = quotes_by_pair.get(pair, [])
            if len(quotes) < 2:
                logger.debug(f"{pair.label}: only {len(quotes)} quote(s), skipping")
                continue
            analyzed += 1
            evaluation = self.comparator.compare(pair, quotes, gas.current_gwei, config)
            found.extend(evaluation.qualifying)

        found.sort(key=lambda o: o.estimated_profit_usd, reverse=True)
        await self._activity(
            "info",
            "3_pair_analysis",
            f"Analyzed {analyzed}/{len(config.token_pairs)} pairs, {len(found)} qualifying",
            cycle=cycle,
            analyzed_pairs=analyzed,
            failed_quotes=failures,
            qualifying=len(found),
        )

        # Dispatching
        self._phase = ScanPhase.DISPATCHING
        for opportunity in found:
            self.registry.upsert(opportunity)
            log_data = {
                "id": opportunity.id,
                "pair": opportunity.pair_label,
                "path": opportunity.dex_path,
                "gross_pct": round(opportunity.gross_profit_percent, 4),
                "net_pct": round(opportunity.net_profit_percent, 4),
                "net_usd": round(opportunity.estimated_profit_usd, 2),
                "gas_cost_usd": round(opportunity.estimated_gas_cost_usd, 2),
                "fee_usd": round(opportunity.flash_loan_fee_usd, 2),
            }
            logger.info(f"OPPORTUNITY_FOUND: {log_data}")
            await self.events.emit(EventType.OPPORTUNITY_FOUND, opportunity.to_dict())

        if self.executor is not None:
            for opportunity in found:
                snapshot = self.registry.consume(opportunity.id)
                if snapshot is not None:
                    self._dispatch(snapshot, config)

        evicted = self._evict()

        if found:
            best = found[0]
            await self._activity(
                "success",
                "4_results",
                f"Found {len(found)} opportunities, best {best.pair_label} "
                f"{best.dex_path} ${best.estimated_profit_usd:.2f} "
                f"({format_profit(best.net_profit_percent / 100)} net)",
                cycle=cycle,
                opportunities=len(found),
                best=best.to_dict(),
                evicted=len(evicted),
            )
        else:
            await self._activity(
                "info",
                "4_no_results",
                "No opportunities above the configured thresholds",
                cycle=cycle,
                evicted=len(evicted),
            )
        return found

    async def _fetch_quotes(
        self, config: ScanConfig
    ) -> Tuple[Dict[TokenPair, List[SwapQuote]], int]:
        """One request per (pair, venue), all in flight together."""
        jobs: List[Tuple[TokenPair, str]] = []
        coros = []
        for pair in config.token_pairs:
            amount = to_base_units(config.loan_amount, pair.token_in.decimals)
            for venue in config.venues:
                jobs.append((pair, venue))
                coros.append(
                    asyncio.wait_for(
                        self.quote_source.get_quote(pair.token_in, pair.token_out, amount, venue),
                        timeout=config.quote_timeout_seconds,
                    )
                )

        results = await asyncio.gather(*coros, return_exceptions=True)

        quotes: Dict[TokenPair, List[SwapQuote]] = {}
        failures = 0
        for (pair, venue), result in zip(jobs, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                failures += 1
                reason = "timeout" if isinstance(result, asyncio.TimeoutError) else str(result)
                logger.debug(f"{venue} quote for {pair.label} failed: {reason}")
                continue
            quotes.setdefault(pair, []).append(result)

        if failures:
            logger.warning(f"{failures}/{len(jobs)} quote requests failed")
        return quotes, failures

    def _dispatch(self, opportunity: ArbitrageOpportunity, config: ScanConfig) -> None:
        task = asyncio.create_task(
            self._execute(opportunity, config), name=f"execute-{opportunity.id}"
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _execute(self, opportunity: ArbitrageOpportunity, config: ScanConfig):
        try:
            return await self.executor.execute(opportunity, config)
        except Exception:
            logger.exception(f"Execution task for {opportunity.id} crashed")
            return None

    def _evict(self) -> List[str]:
        evicted = self.registry.evict_stale(self.clock.current_timestamp())
        if evicted:
            logger.debug(f"Evicted {len(evicted)} stale opportunities")
        return evicted

    async def _complete_cycle(self, found: List[ArbitrageOpportunity]) -> None:
        now = self.clock.current_timestamp()
        await self._update_status(active_opportunities=len(self.registry), last_scan_at=now)
        await self.events.emit(
            EventType.SCAN_CYCLE_COMPLETED,
            {
                "cycle": self.cycle_count,
                "opportunities_found": len(found),
                "active_opportunities": len(self.registry),
                "completed_at": now,
            },
        )

    async def _update_status(self, **fields: Any) -> None:
        try:
            await self.storage.update_bot_status(**fields)
        except Exception as e:
            logger.warning(f"Failed to update bot status: {e}")

    async def _activity(self, level: str, step: str, message: str, **metadata: Any) -> None:
        metadata["step"] = step
        logger.log(_LEVELS.get(level, logging.INFO), f"[{step}] {message}")
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


def _error_metadata(error: InfrastructureError) -> Dict[str, Any]:
    data = error.to_dict()
    data["failed_step"] = data.pop("step")
    return data
