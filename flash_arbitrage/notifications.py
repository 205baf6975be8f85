"""
Trade notifications over Telegram and generic webhooks.

Delivery is best effort: every notifier returns False instead of raising, so a
broken chat integration can never fail a trade.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from .config_schema import BotSettings
from .utils import get_current_timestamp, get_logger

logger = get_logger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class _HttpNotifier:
    """Shared aiohttp session handling for HTTP based notifiers."""

    def __init__(self, timeout_seconds: float = 10.0, session: Optional[aiohttp.ClientSession] = None):
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> bool:
        session = await self._get_session()
        try:
            async with session.post(url, json=payload) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.warning(f"Notification POST failed: status={response.status} body={body[:200]}")
                    return False
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Notification POST failed: {e}")
            return False

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


class TelegramNotifier(_HttpNotifier):
    """Sends HTML formatted messages through the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        enabled: bool = True,
        api_base_url: str = TELEGRAM_API_BASE,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(timeout_seconds, session)
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.enabled = enabled
        self.api_base_url = api_base_url.rstrip("/")

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        logger.info(f"Telegram notifications {'enabled' if enabled else 'disabled'}")

    async def send(self, message: str, event_type: str) -> bool:
        if not self.enabled:
            logger.debug(f"Telegram disabled, dropping {event_type} notification")
            return False
        url = f"{self.api_base_url}/bot{self.bot_token}/sendMessage"
        payload = {"chat_id": self.chat_id, "text": message, "parse_mode": "HTML"}
        return await self._post_json(url, payload)


class WebhookNotifier(_HttpNotifier):
    """Posts ``{"event", "message", "ts"}`` to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(timeout_seconds, session)
        self.url = url

    async def send(self, message: str, event_type: str) -> bool:
        payload = {"event": event_type, "message": message, "ts": get_current_timestamp()}
        return await self._post_json(self.url, payload)


class CompositeNotifier:
    """Delivers to every child notifier; succeeds if any child does."""

    def __init__(self, notifiers: Sequence[Any]):
        self.notifiers: List[Any] = list(notifiers)

    async def send(self, message: str, event_type: str) -> bool:
        results = await asyncio.gather(
            *(n.send(message, event_type) for n in self.notifiers), return_exceptions=True
        )
        delivered = False
        for notifier, result in zip(self.notifiers, results):
            if isinstance(result, Exception):
                logger.warning(f"{type(notifier).__name__} failed: {result}")
            elif result:
                delivered = True
        return delivered

    async def close(self) -> None:
        for notifier in self.notifiers:
            close = getattr(notifier, "close", None)
            if close is not None:
                await close()


class NullNotifier:
    """Notifier used when nothing is configured."""

    async def send(self, message: str, event_type: str) -> bool:
        return False

    async def close(self) -> None:
        pass


def build_notifier(settings: BotSettings):
    """Assemble the notifier chain from settings."""
    notifiers: List[Any] = []
    if settings.telegram_bot_token and settings.telegram_chat_id:
        notifiers.append(
            TelegramNotifier(
                settings.telegram_bot_token,
                settings.telegram_chat_id,
                enabled=settings.telegram_enabled,
            )
        )
    elif settings.telegram_enabled:
        logger.info("Telegram enabled but bot token or chat id missing; skipping")
    if settings.webhook_url:
        notifiers.append(WebhookNotifier(settings.webhook_url))

    if not notifiers:
        return NullNotifier()
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)
