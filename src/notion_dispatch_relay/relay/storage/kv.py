"""Key-value store shared by every relay invocation.

Values are opaque strings (callers store JSON), keys are flat strings with
conventional prefixes such as ``trigger_status:``. The file-backed store keeps
everything in one JSON object and is the single source of truth for trigger
state and the database registry.

The only conditional operation is `delete_if`, which removes a key only while
it still holds an expected value. Other read-modify-write sequences from
overlapping invocations are last-writer-wins.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


class StoreError(Exception):
    """Raised when the backing store cannot be read or written."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_if(self, key: str, expected: str) -> bool: ...

    def list(self, prefix: str = "") -> list[str]: ...


@dataclass
class JsonFileKeyValueStore:
    """A `KeyValueStore` persisted as a single JSON object on disk."""

    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read store file {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise StoreError(f"Store file {self.path} does not contain a JSON object")
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _save_unlocked(self, data: dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True) + "\n",
                encoding="utf-8",
            )
            os.replace(tmp, self.path)
        except OSError as e:
            raise StoreError(f"Cannot write store file {self.path}: {e}") from e

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load_unlocked().get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load_unlocked()
            data[key] = value
            self._save_unlocked(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load_unlocked()
            if data.pop(key, None) is None:
                return
            self._save_unlocked(data)

    def delete_if(self, key: str, expected: str) -> bool:
        """Delete `key` only if it still holds `expected`; report whether it did."""
        with self._lock:
            data = self._load_unlocked()
            if data.get(key) != expected:
                return False
            del data[key]
            self._save_unlocked(data)
            return True

    def list(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._load_unlocked() if k.startswith(prefix))
