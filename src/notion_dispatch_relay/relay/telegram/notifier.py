"""Best-effort admin notifications.

`notify` never raises. The returned `NotificationResult` is for logging and
tests only; no caller branches on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from notion_dispatch_relay.relay.telegram.client import TelegramApiError, TelegramClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotificationResult:
    delivered: bool
    error: str | None = None


class Notifier(Protocol):
    def notify(self, message: str) -> NotificationResult: ...


class TelegramNotifier:
    """Sends HTML messages to the admin chat."""

    def __init__(self, *, client: TelegramClient | None, admin_chat_id: str) -> None:
        self._client = client
        self._chat_id = admin_chat_id.strip()

    def notify(self, message: str) -> NotificationResult:
        if self._client is None or not self._chat_id:
            logger.warning("Telegram admin chat is not configured; notification dropped")
            return NotificationResult(delivered=False, error="not configured")
        try:
            self._client.send_message(self._chat_id, message, parse_mode="HTML")
        except TelegramApiError as e:
            logger.error("Failed to send Telegram notification", extra={"error": str(e)})
            return NotificationResult(delivered=False, error=str(e))
        return NotificationResult(delivered=True)
