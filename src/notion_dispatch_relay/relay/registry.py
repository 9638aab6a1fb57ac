"""Registry of tracked Notion databases and their bound GitHub repositories.

The whole registry is one JSON list under the ``notion_databases`` key. Ids are
compared after normalization, so the hyphenated form Notion sends in webhooks
matches the compact form users paste into Telegram.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, Field, ValidationError

from notion_dispatch_relay.relay.storage.kv import KeyValueStore, StoreError
from notion_dispatch_relay.relay.triggers.record import normalize_entity_id

logger = logging.getLogger(__name__)

NOTION_DATABASES_KEY = "notion_databases"


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


class InvalidDispatchTarget(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class DispatchTarget:
    """The repository that receives `repository_dispatch` events."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def parse(cls, value: str) -> DispatchTarget:
        parts = value.strip().split("/")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise InvalidDispatchTarget(f"Expected 'owner/repo', got {value!r}")
        return cls(owner=parts[0].strip(), repo=parts[1].strip())


class TrackedDatabase(BaseModel):
    id: str
    name: str | None = None
    title: str = "Untitled Database"
    url: str = ""
    last_synced: str = Field(default_factory=_utc_now_iso)
    github_repo_id: str | None = None
    updated_at: str = Field(default_factory=_utc_now_iso)

    @property
    def entity_id(self) -> str:
        return normalize_entity_id(self.id)

    @property
    def display_name(self) -> str:
        return self.name or self.title or self.id

    @property
    def dispatch_target(self) -> DispatchTarget | None:
        """The bound repository, or None when unbound or malformed."""

        if not self.github_repo_id:
            return None
        try:
            return DispatchTarget.parse(self.github_repo_id)
        except InvalidDispatchTarget:
            logger.warning(
                "Malformed GitHub repository binding",
                extra={"database_id": self.id, "github_repo_id": self.github_repo_id},
            )
            return None


class DatabaseRegistry:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    def list(self) -> list[TrackedDatabase]:
        raw = self._kv.get(NOTION_DATABASES_KEY)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Registry entry {NOTION_DATABASES_KEY!r} is not valid JSON") from e
        if not isinstance(items, list):
            raise StoreError(f"Registry entry {NOTION_DATABASES_KEY!r} is not a list")

        databases: list[TrackedDatabase] = []
        for item in items:
            try:
                databases.append(TrackedDatabase.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed registry entry", extra={"entry": item})
        return databases

    def linked(self) -> list[TrackedDatabase]:
        return [db for db in self.list() if db.dispatch_target is not None]

    def find(self, database_id: str) -> TrackedDatabase | None:
        wanted = normalize_entity_id(database_id)
        for db in self.list():
            if db.entity_id == wanted:
                return db
        return None

    def _save(self, databases: list[TrackedDatabase]) -> None:
        payload = [db.model_dump(mode="json") for db in databases]
        self._kv.put(NOTION_DATABASES_KEY, json.dumps(payload, ensure_ascii=False))

    def upsert(self, database: TrackedDatabase) -> TrackedDatabase:
        databases = self.list()
        for idx, existing in enumerate(databases):
            if existing.entity_id == database.entity_id:
                merged = existing.model_copy(
                    update={
                        **database.model_dump(exclude_unset=True),
                        "updated_at": _utc_now_iso(),
                    }
                )
                databases[idx] = merged
                self._save(databases)
                logger.info("Updated tracked database", extra={"database_id": database.id})
                return merged
        databases.append(database)
        self._save(databases)
        logger.info("Added tracked database", extra={"database_id": database.id})
        return database

    def bind(self, database_id: str, github_repo_id: str) -> TrackedDatabase:
        """Point an already tracked database at a repository."""

        DispatchTarget.parse(github_repo_id)
        existing = self.find(database_id)
        if existing is None:
            raise KeyError(database_id)
        updated = existing.model_copy(
            update={"github_repo_id": github_repo_id.strip(), "updated_at": _utc_now_iso()}
        )
        databases = [updated if db.entity_id == updated.entity_id else db for db in self.list()]
        self._save(databases)
        logger.info(
            "Bound database to repository",
            extra={"database_id": database_id, "github_repo_id": github_repo_id},
        )
        return updated

    def remove(self, database_id: str) -> bool:
        wanted = normalize_entity_id(database_id)
        databases = self.list()
        remaining = [db for db in databases if db.entity_id != wanted]
        if len(remaining) == len(databases):
            return False
        self._save(remaining)
        logger.info("Removed tracked database", extra={"database_id": database_id})
        return True
