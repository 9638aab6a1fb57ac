"""Test configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest

from notion_dispatch_relay.relay.github.dispatch import DispatchResult, GitHubDispatcher
from notion_dispatch_relay.relay.registry import DatabaseRegistry, TrackedDatabase
from notion_dispatch_relay.relay.storage.kv import JsonFileKeyValueStore
from notion_dispatch_relay.relay.telegram.notifier import NotificationResult
from notion_dispatch_relay.relay.triggers.coordinator import DispatchCoordinator
from notion_dispatch_relay.relay.triggers.policy import MILLIS_PER_MINUTE, DebouncePolicy
from notion_dispatch_relay.relay.triggers.store import TriggerStore

LINKED_ID = "1f2e3d4c5b6a79881f2e3d4c5b6a7988"
LINKED_ID_HYPHENATED = "1f2e3d4c-5b6a-7988-1f2e-3d4c5b6a7988"
UNLINKED_ID = "0123456789abcdef0123456789abcdef"
UNTRACKED_ID = "ffffffffffffffffffffffffffffffff"

T0 = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, *, minutes: float = 0, ms: int = 0) -> None:
        self.now += int(minutes * MILLIS_PER_MINUTE) + ms


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> NotificationResult:
        self.messages.append(message)
        return NotificationResult(delivered=True)


@pytest.fixture
def kv(tmp_path: Path) -> JsonFileKeyValueStore:
    """Provide an empty file-backed store."""
    return JsonFileKeyValueStore(tmp_path / "relay_state" / "kv.json")


@pytest.fixture
def registry(kv: JsonFileKeyValueStore) -> DatabaseRegistry:
    """Provide a registry with one linked and one unlinked database."""
    reg = DatabaseRegistry(kv)
    reg.upsert(TrackedDatabase(id=LINKED_ID, name="Roadmap", github_repo_id="acme/site"))
    reg.upsert(TrackedDatabase(id=UNLINKED_ID, name="Scratch"))
    return reg


@pytest.fixture
def triggers(kv: JsonFileKeyValueStore) -> TriggerStore:
    return TriggerStore(kv)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher() -> Mock:
    """Provide a dispatcher that accepts every dispatch."""
    mock = Mock(spec=GitHubDispatcher)
    mock.dispatch.return_value = DispatchResult(ok=True, message="Dispatched")
    mock.verify_access.return_value = True
    mock.configured = True
    return mock


def make_coordinator(
    *,
    registry: DatabaseRegistry,
    triggers: TriggerStore,
    dispatcher: Mock,
    notifier: RecordingNotifier,
    clock: FakeClock,
    delay_minutes: float = 5,
) -> DispatchCoordinator:
    return DispatchCoordinator(
        registry=registry,
        triggers=triggers,
        policy=DebouncePolicy.from_minutes(delay_minutes),
        dispatcher=dispatcher,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def coordinator(
    registry: DatabaseRegistry,
    triggers: TriggerStore,
    dispatcher: Mock,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> DispatchCoordinator:
    """Provide a coordinator with a five minute debounce window."""
    return make_coordinator(
        registry=registry,
        triggers=triggers,
        dispatcher=dispatcher,
        notifier=notifier,
        clock=clock,
    )
