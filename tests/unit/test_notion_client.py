"""Unit tests for the Notion REST client (HTTP session mocked)."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
import requests

from conftest import LINKED_ID, LINKED_ID_HYPHENATED
from notion_dispatch_relay.relay.notion.client import (
    NOTION_API_VERSION,
    NotionApiError,
    NotionClient,
)


def _session(payload: object | None = None, *, error: Exception | None = None) -> Mock:
    session = Mock(spec=requests.Session)
    session.headers = {}
    resp = Mock(spec=requests.Response)
    resp.json.return_value = payload
    if error is not None:
        resp.raise_for_status.side_effect = error
    session.get.return_value = resp
    return session


def test_retrieve_database_reads_title_and_url() -> None:
    session = _session(
        {
            "id": LINKED_ID_HYPHENATED,
            "url": "https://www.notion.so/roadmap",
            "title": [{"plain_text": "Roadmap"}],
        }
    )
    client = NotionClient(token="secret", base_url="https://api.notion.test/v1/", session=session)

    info = client.retrieve_database(LINKED_ID_HYPHENATED)

    assert info.title == "Roadmap"
    assert info.url == "https://www.notion.so/roadmap"
    url = session.get.call_args.args[0]
    assert url == f"https://api.notion.test/v1/databases/{LINKED_ID}"
    assert session.headers["Authorization"] == "Bearer secret"
    assert session.headers["Notion-Version"] == NOTION_API_VERSION


def test_untitled_database_falls_back() -> None:
    client = NotionClient(token="secret", session=_session({"title": []}))

    info = client.retrieve_database(LINKED_ID)

    assert info.title == "Untitled Database"
    assert info.url.endswith(LINKED_ID)


def test_http_error_raises_notion_api_error() -> None:
    session = _session(error=requests.HTTPError("404 Client Error"))

    with pytest.raises(NotionApiError):
        NotionClient(token="secret", session=session).retrieve_database(LINKED_ID)


def test_token_required() -> None:
    with pytest.raises(ValueError):
        NotionClient(token="")
