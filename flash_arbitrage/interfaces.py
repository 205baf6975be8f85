"""
Collaborator interfaces for the scanner and the trade executor.

Provides lightweight protocols for the clock, the chain RPC, persistence and
notification delivery so the core can run against real services in production
and in-memory doubles in tests.
"""

import time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .types import ActivityLogEntry, ExecutionRecord, FlashLoanReceipt


@runtime_checkable
class TimeProvider(Protocol):
    """Protocol for time-related operations."""

    def current_timestamp(self) -> float:
        """Get current Unix timestamp."""
        ...


class SystemTimeProvider:
    """Production time provider using system time."""

    def current_timestamp(self) -> float:
        """Get current Unix timestamp."""
        return time.time()


class DeterministicTimeProvider:
    """Deterministic time provider for tests."""

    def __init__(self, start_time: float = 1640995200.0):  # 2022-01-01
        self._current_time = start_time

    def current_timestamp(self) -> float:
        """Get current timestamp."""
        return self._current_time

    def advance_time(self, seconds: float) -> None:
        """Manually advance time by specified seconds."""
        self._current_time += seconds

    def set_time(self, timestamp: float) -> None:
        """Set current time to specific timestamp."""
        self._current_time = timestamp


@runtime_checkable
class ChainRpc(Protocol):
    """Read and write access to the chain used by the gate and the executor."""

    async def get_gas_price_gwei(self) -> float:
        """Current gas price in Gwei."""
        ...

    async def get_native_balance(self, address: str) -> Decimal:
        """Native token balance in whole units."""
        ...

    async def get_code(self, address: str) -> bytes:
        """Deployed bytecode, empty when nothing is deployed."""
        ...

    async def execute_flash_loan(
        self,
        contract_address: str,
        asset: str,
        amount: int,
        params: bytes,
        private_key: str,
    ) -> FlashLoanReceipt:
        """Submit the flash loan invocation signed by ``private_key``."""
        ...


@runtime_checkable
class StorageBackend(Protocol):
    """Persistence collaborator: activity log, execution records, settings."""

    async def append_activity_log(self, entry: ActivityLogEntry) -> None:
        ...

    async def upsert_execution_record(self, record: ExecutionRecord) -> None:
        ...

    async def get_bot_settings(self) -> Any:
        """Return the current ``BotSettings``."""
        ...

    async def update_bot_status(self, **fields: Any) -> Dict[str, Any]:
        ...

    async def list_execution_records(self, limit: Optional[int] = None) -> List[ExecutionRecord]:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Fire-and-forget message delivery keyed by event type."""

    async def send(self, message: str, event_type: str) -> bool:
        """Deliver ``message``; returns False when delivery was skipped or failed."""
        ...
