"""Thin Telegram Bot API client over `requests`."""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE_URL = "https://api.telegram.org"


class TelegramApiError(RuntimeError):
    pass


class InlineKeyboard:
    """Builder for `reply_markup.inline_keyboard`."""

    def __init__(self) -> None:
        self._rows: list[list[dict[str, str]]] = [[]]

    def text(self, label: str, callback_data: str) -> InlineKeyboard:
        self._rows[-1].append({"text": label, "callback_data": callback_data})
        return self

    def row(self) -> InlineKeyboard:
        if self._rows[-1]:
            self._rows.append([])
        return self

    @property
    def rows(self) -> list[list[dict[str, str]]]:
        return [r for r in self._rows if r]

    def to_markup(self) -> dict[str, object]:
        return {"inline_keyboard": self.rows}


class TelegramClient:
    def __init__(
        self,
        *,
        token: str,
        base_url: str = TELEGRAM_API_BASE_URL,
        session: requests.Session | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        if not token:
            raise ValueError("Telegram bot token is required")
        self._url = f"{base_url.rstrip('/')}/bot{token}"
        self._session = session or requests.Session()
        self._timeout = timeout_seconds

    def _call(self, method: str, payload: dict[str, Any]) -> Any:
        try:
            resp = self._session.post(f"{self._url}/{method}", json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise TelegramApiError(f"{method} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.ok or not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise TelegramApiError(
                f"{method} failed: {description or f'HTTP {resp.status_code}'}"
            )
        return data.get("result")

    def send_message(
        self,
        chat_id: str | int,
        text: str,
        *,
        parse_mode: str | None = None,
        reply_markup: InlineKeyboard | None = None,
    ) -> None:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup.to_markup()
        self._call("sendMessage", payload)

    def edit_message_text(
        self,
        chat_id: str | int,
        message_id: int,
        text: str,
        *,
        reply_markup: InlineKeyboard | None = None,
    ) -> None:
        payload: dict[str, Any] = {"chat_id": chat_id, "message_id": message_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup.to_markup()
        self._call("editMessageText", payload)

    def answer_callback_query(self, callback_query_id: str, *, text: str | None = None) -> None:
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        self._call("answerCallbackQuery", payload)

    def set_my_commands(self, commands: list[tuple[str, str]]) -> None:
        self._call(
            "setMyCommands",
            {"commands": [{"command": c, "description": d} for c, d in commands]},
        )

    def set_webhook(self, url: str) -> None:
        self._call("setWebhook", {"url": url})
        logger.info("Telegram webhook registered", extra={"url": url})
