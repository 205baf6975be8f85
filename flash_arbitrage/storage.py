"""
In-memory storage backend.

Keeps the activity log, execution records, bot settings and bot status for a
single process. Bounded deques keep long-running sessions from growing without
limit.
"""

import asyncio
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .config_schema import BotSettings
from .types import ActivityLogEntry, ExecutionRecord
from .utils import get_current_timestamp, get_logger

logger = get_logger(__name__)


class InMemoryStorage:
    """``StorageBackend`` implementation kept in process memory."""

    def __init__(
        self,
        settings: Optional[BotSettings] = None,
        max_activity_entries: int = 1000,
        max_execution_records: int = 500,
    ):
        self.settings = settings or BotSettings()
        self.activity_log: Deque[ActivityLogEntry] = deque(maxlen=max_activity_entries)
        self._records: Dict[str, ExecutionRecord] = {}
        self._record_order: Deque[str] = deque()
        self._max_records = max_execution_records
        self.bot_status: Dict[str, Any] = {
            "is_running": False,
            "active_opportunities": 0,
            "last_scan_at": None,
            "last_trade_at": None,
            "total_profit_usd": 0.0,
            "updated_at": get_current_timestamp(),
        }
        self._lock = asyncio.Lock()

    async def append_activity_log(self, entry: ActivityLogEntry) -> None:
        self.activity_log.append(entry)

    async def upsert_execution_record(self, record: ExecutionRecord) -> None:
        async with self._lock:
            if record.opportunity_id not in self._records:
                self._record_order.append(record.opportunity_id)
                if len(self._record_order) > self._max_records:
                    oldest = self._record_order.popleft()
                    self._records.pop(oldest, None)
            self._records[record.opportunity_id] = record

    async def list_execution_records(self, limit: Optional[int] = None) -> List[ExecutionRecord]:
        """Records, newest first."""
        records = [self._records[i] for i in reversed(self._record_order)]
        return records[:limit] if limit is not None else records

    async def get_bot_settings(self) -> BotSettings:
        return self.settings

    async def update_bot_settings(self, settings: BotSettings) -> None:
        self.settings = settings

    async def update_bot_status(self, **fields: Any) -> Dict[str, Any]:
        async with self._lock:
            self.bot_status.update(fields)
            self.bot_status["updated_at"] = get_current_timestamp()
            return dict(self.bot_status)

    async def get_bot_status(self) -> Dict[str, Any]:
        return dict(self.bot_status)

    def recent_activity(self, limit: int = 100, category: Optional[str] = None) -> List[ActivityLogEntry]:
        entries = [e for e in self.activity_log if category is None or e.category == category]
        return entries[-limit:]
