"""
In-memory registry of live arbitrage opportunities.
"""

import dataclasses
import threading
from typing import Dict, List, Optional

from .constants import OPPORTUNITY_STALENESS_SECONDS
from .types import ArbitrageOpportunity


class OpportunityRegistry:
    """
    Keyed collection of current candidates with time-based eviction.

    The scan cycle is the only writer. Readers (status endpoints, other
    threads) get list snapshots taken under the lock, never the live map.
    """

    def __init__(self, staleness_seconds: float = OPPORTUNITY_STALENESS_SECONDS):
        self.staleness_seconds = staleness_seconds
        self._items: Dict[str, ArbitrageOpportunity] = {}
        self._lock = threading.RLock()

    def upsert(self, opportunity: ArbitrageOpportunity) -> Optional[str]:
        """
        Insert ``opportunity``, superseding any older entry for the same route.

        Returns:
            Id of the superseded entry, if any
        """
        with self._lock:
            superseded = None
            for opp_id, existing in list(self._items.items()):
                if existing.route_key == opportunity.route_key and opp_id != opportunity.id:
                    del self._items[opp_id]
                    superseded = opp_id
            self._items[opportunity.id] = opportunity
            return superseded

    def get(self, opportunity_id: str) -> Optional[ArbitrageOpportunity]:
        with self._lock:
            return self._items.get(opportunity_id)

    def consume(self, opportunity_id: str) -> Optional[ArbitrageOpportunity]:
        """
        Mark an entry as used and return the snapshot to execute.

        Returns None if the entry is gone or was already consumed, which keeps
        a candidate from being executed twice.
        """
        with self._lock:
            opportunity = self._items.get(opportunity_id)
            if opportunity is None or not opportunity.is_valid:
                return None
            self._items[opportunity_id] = dataclasses.replace(opportunity, is_valid=False)
            return opportunity

    def evict_stale(self, now: float) -> List[str]:
        """Remove entries older than the staleness window, consumed or not."""
        with self._lock:
            stale = [
                opp_id
                for opp_id, opp in self._items.items()
                if now - opp.discovered_at > self.staleness_seconds
            ]
            for opp_id in stale:
                del self._items[opp_id]
            return stale

    def snapshot(self) -> List[ArbitrageOpportunity]:
        """Current entries, most profitable first."""
        with self._lock:
            items = list(self._items.values())
        items.sort(key=lambda o: o.estimated_profit_usd, reverse=True)
        return items

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, opportunity_id: str) -> bool:
        with self._lock:
            return opportunity_id in self._items
