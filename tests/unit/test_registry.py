"""Unit tests for the tracked-database registry."""

from __future__ import annotations

import json

import pytest

from conftest import LINKED_ID, LINKED_ID_HYPHENATED, UNLINKED_ID
from notion_dispatch_relay.relay.registry import (
    NOTION_DATABASES_KEY,
    DatabaseRegistry,
    DispatchTarget,
    InvalidDispatchTarget,
    TrackedDatabase,
)
from notion_dispatch_relay.relay.storage.kv import JsonFileKeyValueStore, StoreError


@pytest.mark.parametrize("value", ["acme", "acme/", "/site", "acme/site/extra", "  "])
def test_dispatch_target_rejects_malformed(value: str) -> None:
    with pytest.raises(InvalidDispatchTarget):
        DispatchTarget.parse(value)


def test_dispatch_target_parse() -> None:
    target = DispatchTarget.parse(" acme/site ")

    assert target.owner == "acme"
    assert target.repo == "site"
    assert target.full_name == "acme/site"


def test_empty_store_has_no_databases(kv: JsonFileKeyValueStore) -> None:
    assert DatabaseRegistry(kv).list() == []


def test_find_accepts_hyphenated_ids(registry: DatabaseRegistry) -> None:
    found = registry.find(LINKED_ID_HYPHENATED)

    assert found is not None
    assert found.name == "Roadmap"
    assert found.dispatch_target == DispatchTarget(owner="acme", repo="site")


def test_linked_excludes_unbound(registry: DatabaseRegistry) -> None:
    assert [db.id for db in registry.linked()] == [LINKED_ID]


def test_malformed_binding_is_treated_as_unlinked(registry: DatabaseRegistry) -> None:
    registry.upsert(TrackedDatabase(id=UNLINKED_ID, github_repo_id="not-a-repo"))

    found = registry.find(UNLINKED_ID)
    assert found is not None
    assert found.dispatch_target is None
    assert [db.id for db in registry.linked()] == [LINKED_ID]


def test_upsert_merges_only_set_fields(registry: DatabaseRegistry) -> None:
    merged = registry.upsert(TrackedDatabase(id=LINKED_ID_HYPHENATED, title="Roadmap 2025"))

    assert merged.title == "Roadmap 2025"
    assert merged.name == "Roadmap"
    assert merged.github_repo_id == "acme/site"
    assert len(registry.list()) == 2


def test_bind_existing_database(registry: DatabaseRegistry) -> None:
    updated = registry.bind(UNLINKED_ID, "acme/notes")

    assert updated.github_repo_id == "acme/notes"
    assert registry.find(UNLINKED_ID).dispatch_target.full_name == "acme/notes"  # type: ignore[union-attr]


def test_bind_unknown_database_raises(registry: DatabaseRegistry) -> None:
    with pytest.raises(KeyError):
        registry.bind("ffffffffffffffffffffffffffffffff", "acme/notes")


def test_bind_rejects_bad_repo(registry: DatabaseRegistry) -> None:
    with pytest.raises(InvalidDispatchTarget):
        registry.bind(UNLINKED_ID, "acme")


def test_remove(registry: DatabaseRegistry) -> None:
    assert registry.remove(LINKED_ID_HYPHENATED) is True
    assert registry.remove(LINKED_ID) is False
    assert [db.id for db in registry.list()] == [UNLINKED_ID]


def test_invalid_entries_are_skipped(kv: JsonFileKeyValueStore) -> None:
    kv.put(
        NOTION_DATABASES_KEY,
        json.dumps([{"id": LINKED_ID, "github_repo_id": "acme/site"}, {"name": "no id"}, 42]),
    )

    databases = DatabaseRegistry(kv).list()
    assert [db.id for db in databases] == [LINKED_ID]
    assert databases[0].title == "Untitled Database"


def test_non_list_registry_raises(kv: JsonFileKeyValueStore) -> None:
    kv.put(NOTION_DATABASES_KEY, json.dumps({"id": LINKED_ID}))

    with pytest.raises(StoreError):
        DatabaseRegistry(kv).list()
