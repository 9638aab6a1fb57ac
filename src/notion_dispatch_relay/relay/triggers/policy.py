"""Debounce policy: pure decisions over a `TriggerRecord` and the current time.

Every qualifying update resets the deadline to `now + delay`, so a database
fires once `delay` has passed since its most recent update. Bursts postpone
the trigger only while they last.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from notion_dispatch_relay.relay.triggers.record import TriggerRecord, normalize_entity_id

Clock = Callable[[], int]

MILLIS_PER_MINUTE = 60 * 1000


def epoch_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class DebouncePolicy:
    delay_ms: int

    def __post_init__(self) -> None:
        if self.delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")

    @classmethod
    def from_minutes(cls, minutes: float) -> DebouncePolicy:
        return cls(delay_ms=int(minutes * MILLIS_PER_MINUTE))

    @property
    def delay_minutes(self) -> float:
        return self.delay_ms / MILLIS_PER_MINUTE

    def schedule(self, *, entity_id: str, now_ms: int) -> TriggerRecord:
        """Return the record to write for an update observed at `now_ms`."""

        return TriggerRecord(
            entity_id=normalize_entity_id(entity_id),
            next_trigger_time=now_ms + self.delay_ms,
            pending=True,
            updated_at=now_ms,
        )


def is_due(record: TriggerRecord | None, now_ms: int) -> bool:
    if record is None or not record.pending:
        return False
    return now_ms >= record.next_trigger_time
