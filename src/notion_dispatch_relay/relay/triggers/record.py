from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

TRIGGER_STATUS_PREFIX = "trigger_status:"

ENTITY_ID_SEPARATOR = "-"


def normalize_entity_id(raw_id: str) -> str:
    """Strip separators so `abcd-1234` and `abcd1234` name the same database."""

    return raw_id.strip().replace(ENTITY_ID_SEPARATOR, "")


def trigger_key(entity_id: str) -> str:
    return f"{TRIGGER_STATUS_PREFIX}{normalize_entity_id(entity_id)}"


class TriggerRecord(BaseModel):
    """Debounce state for one tracked database.

    Times are epoch milliseconds. The stored JSON uses camelCase keys.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    entity_id: str = Field(alias="entityId")
    next_trigger_time: int = Field(alias="nextTriggerTime")
    pending: bool = True
    updated_at: int = Field(alias="updatedAt")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
