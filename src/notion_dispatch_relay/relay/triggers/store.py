"""Trigger-state accessor over the key-value store.

Read and write failures are asymmetric:
- `get` never raises. An unreadable store or an undecodable value reads as
  "no record", so a damaged entry is re-armed by the next update instead of
  blocking that database forever.
- `put` propagates `StoreError`; the caller decides what a lost write means.
- `delete` is idempotent.
- `clear` deletes only the exact record that was fired, so an update written
  while a dispatch was in flight stays pending.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from notion_dispatch_relay.relay.storage.kv import KeyValueStore, StoreError
from notion_dispatch_relay.relay.triggers.record import (
    TRIGGER_STATUS_PREFIX,
    TriggerRecord,
    normalize_entity_id,
    trigger_key,
)

logger = logging.getLogger(__name__)


class TriggerStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    def get(self, entity_id: str) -> TriggerRecord | None:
        key = trigger_key(entity_id)
        try:
            raw = self._kv.get(key)
        except StoreError:
            logger.exception("Failed to read trigger state; treating as absent", extra={"key": key})
            return None
        if raw is None:
            return None
        try:
            return TriggerRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Trigger state is not decodable; treating as absent", extra={"key": key})
            return None

    def put(self, record: TriggerRecord) -> None:
        entity_id = normalize_entity_id(record.entity_id)
        if entity_id != record.entity_id:
            record = record.model_copy(update={"entity_id": entity_id})
        self._kv.put(trigger_key(entity_id), record.to_json())
        logger.debug(
            "Trigger state written",
            extra={"entity_id": entity_id, "next_trigger_time": record.next_trigger_time},
        )

    def delete(self, entity_id: str) -> None:
        self._kv.delete(trigger_key(entity_id))
        logger.debug("Trigger state cleared", extra={"entity_id": normalize_entity_id(entity_id)})

    def clear(self, record: TriggerRecord) -> bool:
        entity_id = normalize_entity_id(record.entity_id)
        if entity_id != record.entity_id:
            record = record.model_copy(update={"entity_id": entity_id})
        cleared = self._kv.delete_if(trigger_key(entity_id), record.to_json())
        logger.debug(
            "Trigger state clear attempted", extra={"entity_id": entity_id, "cleared": cleared}
        )
        return cleared

    def list_records(self) -> list[TriggerRecord]:
        records: list[TriggerRecord] = []
        for key in self._kv.list(TRIGGER_STATUS_PREFIX):
            raw = self._kv.get(key)
            if raw is None:
                continue
            try:
                records.append(TriggerRecord.model_validate_json(raw))
            except ValidationError:
                logger.warning("Skipping undecodable trigger state", extra={"key": key})
        return records
