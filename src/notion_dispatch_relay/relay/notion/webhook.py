"""Notion webhook payloads and their handling.

One endpoint receives two payload shapes, modelled as a tagged union:
- `NotionVerification`: the subscription handshake carrying `verification_token`
- `NotionChangeEvent`: a page/database change whose parent is the database

The handler returns a `WebhookAck` (status code + short message) and never
raises; the HTTP layer only translates it into a response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from notion_dispatch_relay.relay.telegram.notifier import Notifier
from notion_dispatch_relay.relay.triggers.coordinator import (
    DispatchCoordinator,
    UpdateOutcome,
    UpdateStatus,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-notion-signature"

QUALIFYING_EVENT_PREFIXES = ("page.", "database.")


class NotionVerification(BaseModel):
    model_config = ConfigDict(extra="ignore")

    verification_token: str


class NotionParent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    type: str | None = None


class NotionEventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    parent: NotionParent | None = None


class NotionEntity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    type: str | None = None


class NotionChangeEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    data: NotionEventData | None = None
    entity: NotionEntity | None = None
    timestamp: str | None = None

    @property
    def qualifies(self) -> bool:
        return self.type.startswith(QUALIFYING_EVENT_PREFIXES)

    @property
    def database_id(self) -> str | None:
        if self.data is None or self.data.parent is None:
            return None
        return self.data.parent.id or None


NotionPayload = NotionVerification | NotionChangeEvent


class InvalidPayload(ValueError):
    pass


def parse_notion_payload(body: Any) -> NotionPayload:
    if not isinstance(body, dict):
        raise InvalidPayload("Payload must be a JSON object")
    try:
        if "verification_token" in body:
            return NotionVerification.model_validate(body)
        return NotionChangeEvent.model_validate(body)
    except ValidationError as e:
        raise InvalidPayload(str(e)) from e


@dataclass(frozen=True, slots=True)
class WebhookAck:
    status_code: int
    message: str
    outcome: UpdateOutcome | None = None


class NotionWebhookHandler:
    def __init__(self, *, coordinator: DispatchCoordinator, notifier: Notifier) -> None:
        self._coordinator = coordinator
        self._notifier = notifier

    def handle(self, *, signature: str | None, body: Any) -> WebhookAck:
        if not signature:
            logger.warning("Notion webhook without signature rejected")
            return WebhookAck(401, "Unauthorized")

        try:
            payload = parse_notion_payload(body)
        except InvalidPayload as e:
            logger.warning("Invalid Notion webhook payload", extra={"error": str(e)})
            return WebhookAck(400, "Invalid payload")

        if isinstance(payload, NotionVerification):
            return self._handle_verification(payload)
        return self._handle_change(payload)

    def _handle_verification(self, payload: NotionVerification) -> WebhookAck:
        logger.info("Notion webhook verification request received")
        self._notifier.notify(
            "🔔 <b>Notion webhook verification</b>\n\n"
            "Verification token:\n"
            f"<code>{escape(payload.verification_token)}</code>\n\n"
            "Copy the token into the Notion webhook settings."
        )
        return WebhookAck(200, "OK")

    def _handle_change(self, event: NotionChangeEvent) -> WebhookAck:
        if not event.qualifies:
            logger.info("Ignoring non page/database event", extra={"event_type": event.type})
            return WebhookAck(200, "Accepted")

        database_id = event.database_id
        if database_id is None:
            logger.warning("Notion event has no parent database id", extra={"event_type": event.type})
            return WebhookAck(400, "Invalid event data")

        outcome = self._coordinator.notify_update(database_id)
        if outcome.status is UpdateStatus.STORE_ERROR:
            return WebhookAck(500, "Trigger state unavailable", outcome)
        return WebhookAck(200, "Accepted", outcome)
