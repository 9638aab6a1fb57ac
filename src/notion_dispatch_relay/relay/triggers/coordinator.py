"""Dispatch coordinator: the per-database debounce state machine.

States:
- IDLE: no record, or a record with ``pending=False``
- PENDING: a record is waiting for its ``next_trigger_time``
- FIRING: the dispatch call is in flight

Transitions:
- update event:  IDLE/PENDING -> PENDING (deadline reset), then FIRING when
  already due (zero delay)
- sweep tick:    PENDING -> FIRING when due
- FIRING -> IDLE on a confirmed dispatch (record deleted)
- FIRING -> PENDING when an update rewrote the record mid-dispatch (newer
  record kept)
- FIRING -> PENDING on failure or a dispatcher exception (record kept,
  retried on the next sweep)

Databases without a dispatch target never leave IDLE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from html import escape

from notion_dispatch_relay.relay.github.dispatch import DispatchResult, GitHubDispatcher
from notion_dispatch_relay.relay.registry import DatabaseRegistry, DispatchTarget, TrackedDatabase
from notion_dispatch_relay.relay.storage.kv import StoreError
from notion_dispatch_relay.relay.telegram.notifier import Notifier
from notion_dispatch_relay.relay.triggers.policy import Clock, DebouncePolicy, epoch_millis, is_due
from notion_dispatch_relay.relay.triggers.record import TriggerRecord, normalize_entity_id
from notion_dispatch_relay.relay.triggers.store import TriggerStore

logger = logging.getLogger(__name__)


class TriggerPhase(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    FIRING = "firing"


class UpdateStatus(str, Enum):
    UNTRACKED = "untracked"
    UNLINKED = "unlinked"
    SCHEDULED = "scheduled"
    FIRED = "fired"
    DISPATCH_FAILED = "dispatch_failed"
    STORE_ERROR = "store_error"


@dataclass(frozen=True, slots=True)
class UpdateOutcome:
    entity_id: str
    status: UpdateStatus
    message: str
    record: TriggerRecord | None = None

    @property
    def phase(self) -> TriggerPhase:
        """Resting phase of the entity after the operation."""

        if self.status in (UpdateStatus.SCHEDULED, UpdateStatus.DISPATCH_FAILED):
            return TriggerPhase.PENDING
        return TriggerPhase.IDLE


@dataclass(slots=True)
class SweepReport:
    checked: int = 0
    fired: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    waiting: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    def to_json(self) -> dict[str, object]:
        return {
            "checked": self.checked,
            "fired": list(self.fired),
            "failed": list(self.failed),
            "waiting": list(self.waiting),
            "errors": dict(self.errors),
        }


def _format_time(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def _database_lines(database: TrackedDatabase) -> str:
    return (
        f"Database: {escape(database.display_name)}\n"
        f"ID: {escape(database.id)}\n"
        f"Repository: {escape(database.github_repo_id or 'not linked')}\n"
    )


class DispatchCoordinator:
    def __init__(
        self,
        *,
        registry: DatabaseRegistry,
        triggers: TriggerStore,
        policy: DebouncePolicy,
        dispatcher: GitHubDispatcher,
        notifier: Notifier,
        clock: Clock = epoch_millis,
    ) -> None:
        self._registry = registry
        self._triggers = triggers
        self._policy = policy
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._clock = clock

    @property
    def policy(self) -> DebouncePolicy:
        return self._policy

    def phase_of(self, entity_id: str) -> TriggerPhase:
        record = self._triggers.get(entity_id)
        return TriggerPhase.PENDING if record is not None and record.pending else TriggerPhase.IDLE

    def _resolve(self, raw_entity_id: str) -> tuple[TrackedDatabase | None, DispatchTarget | None]:
        database = self._registry.find(raw_entity_id)
        if database is None:
            return None, None
        return database, database.dispatch_target

    def notify_update(self, raw_entity_id: str) -> UpdateOutcome:
        """Record a qualifying change for a database and fire when already due."""

        entity_id = normalize_entity_id(raw_entity_id)
        try:
            database, target = self._resolve(entity_id)
        except StoreError as e:
            logger.exception("Registry is unreadable", extra={"entity_id": entity_id})
            return UpdateOutcome(entity_id, UpdateStatus.STORE_ERROR, str(e))

        if database is None:
            logger.info("Update for untracked database ignored", extra={"entity_id": entity_id})
            return UpdateOutcome(entity_id, UpdateStatus.UNTRACKED, "Database is not tracked")

        if target is None:
            logger.info("Update for unlinked database ignored", extra={"entity_id": entity_id})
            self._notifier.notify(
                "📝 <b>Notion database updated</b>\n\n"
                + _database_lines(database)
                + "\nℹ️ No GitHub repository is linked; no action taken."
            )
            return UpdateOutcome(
                entity_id, UpdateStatus.UNLINKED, "Database has no linked GitHub repository"
            )

        now = self._clock()
        previous = self._triggers.get(entity_id)
        record = self._policy.schedule(entity_id=entity_id, now_ms=now)
        try:
            self._triggers.put(record)
        except StoreError as e:
            logger.exception("Failed to persist trigger state", extra={"entity_id": entity_id})
            self._notifier.notify(
                "❌ <b>Could not schedule GitHub Action</b>\n\n"
                + _database_lines(database)
                + f"\nStore error: {escape(str(e))}"
            )
            return UpdateOutcome(entity_id, UpdateStatus.STORE_ERROR, str(e))

        logger.info(
            "Trigger scheduled",
            extra={
                "entity_id": entity_id,
                "next_trigger_time": record.next_trigger_time,
                "previous_trigger_time": previous.next_trigger_time if previous else None,
                "delay_ms": self._policy.delay_ms,
            },
        )

        if is_due(record, self._clock()):
            return self._fire(database, target, record, reason="immediate")

        self._notifier.notify(
            "📝 <b>Notion database updated</b>\n\n"
            + _database_lines(database)
            + f"Updated at: {_format_time(now)}\n\n"
            + f"⏳ GitHub Action scheduled for {_format_time(record.next_trigger_time)} "
            + f"({self._policy.delay_minutes:g} min after the last update)."
        )
        return UpdateOutcome(
            entity_id, UpdateStatus.SCHEDULED, "Delayed trigger scheduled", record=record
        )

    def run_scheduled_sweep(self) -> SweepReport:
        """Fire every linked database whose debounce window has elapsed."""

        report = SweepReport()
        try:
            databases = self._registry.list()
        except StoreError as e:
            logger.exception("Sweep aborted: registry is unreadable")
            report.errors["*"] = str(e)
            return report

        logger.info("Sweep started", extra={"databases": len(databases)})
        for database in databases:
            target = database.dispatch_target
            if target is None:
                continue
            entity_id = database.entity_id
            report.checked += 1
            try:
                record = self._triggers.get(entity_id)
                if record is None or not record.pending:
                    continue
                if not is_due(record, self._clock()):
                    report.waiting.append(entity_id)
                    continue
                outcome = self._fire(database, target, record, reason="delayed")
                if outcome.status is UpdateStatus.FIRED:
                    report.fired.append(entity_id)
                else:
                    report.failed.append(entity_id)
                    report.errors[entity_id] = outcome.message
            except Exception as e:
                logger.exception("Sweep failed for database", extra={"entity_id": entity_id})
                report.failed.append(entity_id)
                report.errors[entity_id] = str(e)

        logger.info("Sweep finished", extra=report.to_json())
        return report

    def trigger_now(self, raw_entity_id: str) -> UpdateOutcome:
        """Dispatch immediately, bypassing the debounce window."""

        entity_id = normalize_entity_id(raw_entity_id)
        try:
            database, target = self._resolve(entity_id)
        except StoreError as e:
            logger.exception("Registry is unreadable", extra={"entity_id": entity_id})
            return UpdateOutcome(entity_id, UpdateStatus.STORE_ERROR, str(e))
        if database is None:
            return UpdateOutcome(entity_id, UpdateStatus.UNTRACKED, "Database is not tracked")
        if target is None:
            return UpdateOutcome(
                entity_id, UpdateStatus.UNLINKED, "Database has no linked GitHub repository"
            )
        return self._fire(database, target, self._triggers.get(entity_id), reason="manual")

    def forget(self, raw_entity_id: str) -> None:
        """Drop any pending trigger, e.g. when a database is no longer tracked."""

        self._triggers.delete(raw_entity_id)

    def _fire(
        self,
        database: TrackedDatabase,
        target: DispatchTarget,
        record: TriggerRecord | None,
        *,
        reason: str,
    ) -> UpdateOutcome:
        entity_id = database.entity_id
        logger.info(
            "Firing GitHub Action",
            extra={"entity_id": entity_id, "repo": target.full_name, "reason": reason},
        )
        try:
            result: DispatchResult = self._dispatcher.dispatch(target, database_id=database.id)
        except Exception as e:
            logger.exception(
                "Dispatch raised unexpectedly",
                extra={"entity_id": entity_id, "repo": target.full_name},
            )
            result = DispatchResult(ok=False, message=str(e) or type(e).__name__)

        if not result.ok:
            self._notifier.notify(
                "❌ <b>GitHub Action trigger failed</b>\n\n"
                + _database_lines(database)
                + f"\nError: {escape(result.message)}\n"
                + ("Will retry on the next sweep." if record is not None else "")
            )
            return UpdateOutcome(entity_id, UpdateStatus.DISPATCH_FAILED, result.message, record)

        if record is not None:
            try:
                if not self._triggers.clear(record):
                    logger.info(
                        "Trigger state changed during dispatch; leaving it pending",
                        extra={"entity_id": entity_id},
                    )
            except StoreError:
                # The record stays pending; the next sweep dispatches again.
                logger.exception(
                    "Dispatched but failed to clear trigger state", extra={"entity_id": entity_id}
                )

        headline = {
            "immediate": "✅ GitHub Action triggered immediately",
            "delayed": "⏰ Delayed GitHub Action triggered",
            "manual": "🚀 GitHub Action triggered manually",
        }[reason]
        self._notifier.notify(
            f"<b>{headline}</b>\n\n"
            + _database_lines(database)
            + f"Triggered at: {_format_time(self._clock())}"
        )
        return UpdateOutcome(entity_id, UpdateStatus.FIRED, result.message)
