"""Unit tests for Notion webhook parsing and handling."""

from __future__ import annotations

from typing import Any
from unittest.mock import Mock

import pytest

from conftest import (
    LINKED_ID,
    LINKED_ID_HYPHENATED,
    FakeClock,
    RecordingNotifier,
    make_coordinator,
)
from notion_dispatch_relay.relay.notion.webhook import (
    InvalidPayload,
    NotionChangeEvent,
    NotionVerification,
    NotionWebhookHandler,
    parse_notion_payload,
)
from notion_dispatch_relay.relay.registry import DatabaseRegistry
from notion_dispatch_relay.relay.triggers.coordinator import (
    DispatchCoordinator,
    UpdateOutcome,
    UpdateStatus,
)
from notion_dispatch_relay.relay.triggers.store import TriggerStore


def _event(
    event_type: str = "page.content_updated", parent_id: str | None = LINKED_ID_HYPHENATED
) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if parent_id is not None:
        data["parent"] = {"id": parent_id, "type": "database"}
    return {
        "id": "evt-1",
        "timestamp": "2025-01-01T00:00:00.000Z",
        "type": event_type,
        "entity": {"id": "page-1", "type": "page"},
        "data": data,
    }


def _handler(
    status: UpdateStatus = UpdateStatus.SCHEDULED,
) -> tuple[NotionWebhookHandler, Mock, RecordingNotifier]:
    coordinator = Mock(spec=DispatchCoordinator)
    coordinator.notify_update.return_value = UpdateOutcome(LINKED_ID, status, "done")
    notifier = RecordingNotifier()
    return NotionWebhookHandler(coordinator=coordinator, notifier=notifier), coordinator, notifier


def test_parse_distinguishes_payload_shapes() -> None:
    assert isinstance(parse_notion_payload({"verification_token": "secret_abc"}), NotionVerification)

    event = parse_notion_payload(_event())
    assert isinstance(event, NotionChangeEvent)
    assert event.qualifies
    assert event.database_id == LINKED_ID_HYPHENATED


@pytest.mark.parametrize("body", [[], "text", 3, None])
def test_parse_rejects_non_objects(body: Any) -> None:
    with pytest.raises(InvalidPayload):
        parse_notion_payload(body)


def test_missing_signature_is_unauthorized() -> None:
    handler, coordinator, _ = _handler()

    ack = handler.handle(signature=None, body=_event())

    assert ack.status_code == 401
    coordinator.notify_update.assert_not_called()


def test_verification_token_is_forwarded_to_admin() -> None:
    handler, coordinator, notifier = _handler()

    ack = handler.handle(signature="sha256=x", body={"verification_token": "secret_<abc>"})

    assert ack.status_code == 200
    assert "secret_&lt;abc&gt;" in notifier.messages[0]
    coordinator.notify_update.assert_not_called()


def test_qualifying_event_notifies_coordinator() -> None:
    handler, coordinator, _ = _handler()

    ack = handler.handle(signature="sha256=x", body=_event("database.schema_updated"))

    assert ack.status_code == 200
    assert ack.outcome is not None
    assert ack.outcome.status is UpdateStatus.SCHEDULED
    coordinator.notify_update.assert_called_once_with(LINKED_ID_HYPHENATED)


def test_other_event_types_are_acknowledged_and_ignored() -> None:
    handler, coordinator, _ = _handler()

    ack = handler.handle(signature="sha256=x", body=_event("comment.created"))

    assert ack.status_code == 200
    coordinator.notify_update.assert_not_called()


def test_event_without_parent_is_rejected() -> None:
    handler, coordinator, _ = _handler()

    ack = handler.handle(signature="sha256=x", body=_event(parent_id=None))

    assert ack.status_code == 400
    coordinator.notify_update.assert_not_called()


def test_non_object_body_is_rejected() -> None:
    handler, _, _ = _handler()

    assert handler.handle(signature="sha256=x", body=["x"]).status_code == 400


@pytest.mark.parametrize(
    ("status", "code"),
    [
        (UpdateStatus.UNTRACKED, 200),
        (UpdateStatus.UNLINKED, 200),
        (UpdateStatus.FIRED, 200),
        (UpdateStatus.DISPATCH_FAILED, 200),
        (UpdateStatus.STORE_ERROR, 500),
    ],
)
def test_outcome_maps_to_status_code(status: UpdateStatus, code: int) -> None:
    handler, _, _ = _handler(status)

    assert handler.handle(signature="sha256=x", body=_event()).status_code == code


def test_dispatch_crash_is_acknowledged_and_reported(
    registry: DatabaseRegistry,
    triggers: TriggerStore,
    dispatcher: Mock,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> None:
    dispatcher.dispatch.side_effect = RuntimeError("socket closed")
    coordinator = make_coordinator(
        registry=registry,
        triggers=triggers,
        dispatcher=dispatcher,
        notifier=notifier,
        clock=clock,
        delay_minutes=0,
    )
    handler = NotionWebhookHandler(coordinator=coordinator, notifier=notifier)

    ack = handler.handle(signature="sha256=x", body=_event("page.updated"))

    assert ack.status_code == 200
    assert ack.outcome is not None
    assert ack.outcome.status is UpdateStatus.DISPATCH_FAILED
    assert triggers.get(LINKED_ID) is not None
    assert "socket closed" in notifier.messages[-1]
