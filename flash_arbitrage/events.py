"""
In-process event broadcaster for scanner and executor events.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Union

from .constants import EventType
from .utils import get_current_timestamp, get_logger

logger = get_logger(__name__)

EventCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class EventBroadcaster:
    """
    Fan-out of ``{"type", "data", "ts"}`` messages to subscribers.

    Callbacks may be plain functions or coroutine functions. A failing
    subscriber is logged and skipped; it never affects the emitter.
    """

    def __init__(self):
        self._subscribers: List[EventCallback] = []

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def emit(self, event_type: EventType, data: Dict[str, Any]) -> None:
        message = {"type": event_type.value, "data": data, "ts": get_current_timestamp()}
        for callback in list(self._subscribers):
            try:
                result = callback(message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning(f"Event subscriber failed on {event_type.value}: {e}")
