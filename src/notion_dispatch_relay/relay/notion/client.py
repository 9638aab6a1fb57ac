"""Notion REST client for the one lookup the relay needs: database metadata."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from notion_dispatch_relay.relay.triggers.record import normalize_entity_id

logger = logging.getLogger(__name__)

NOTION_API_VERSION = "2022-06-28"


class NotionApiError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class NotionDatabaseInfo:
    id: str
    title: str
    url: str


def _plain_title(data: dict[str, Any]) -> str:
    title = data.get("title")
    if isinstance(title, list) and title:
        first = title[0]
        if isinstance(first, dict):
            text = first.get("plain_text")
            if isinstance(text, str) and text.strip():
                return text
    return "Untitled Database"


class NotionClient:
    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.notion.com/v1",
        session: requests.Session | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        if not token:
            raise ValueError("Notion token is required")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Notion-Version": NOTION_API_VERSION,
                "Content-Type": "application/json",
            }
        )

    def retrieve_database(self, database_id: str) -> NotionDatabaseInfo:
        compact_id = normalize_entity_id(database_id)
        url = f"{self._base_url}/databases/{compact_id}"
        try:
            resp = self._session.get(url, timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(
                "Failed to fetch Notion database",
                extra={"database_id": compact_id, "error": str(e)},
            )
            raise NotionApiError(f"Cannot retrieve Notion database {compact_id}: {e}") from e

        if not isinstance(data, dict):
            raise NotionApiError(f"Unexpected Notion response for database {compact_id}")
        return NotionDatabaseInfo(
            id=str(data.get("id") or compact_id),
            title=_plain_title(data),
            url=str(data.get("url") or f"https://notion.so/{compact_id}"),
        )
