"""
File-backed key-value store.

Plays the role of the device's defaults database: a flat mapping of string
keys to JSON values, persisted as a single JSON document. Reads are served
from memory; every write rewrites the file atomically.

Persistence is best-effort. A corrupt or unreadable file loads as an empty
store and write failures are logged, never raised.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from loguru import logger

from gokigen.utils.helpers import ensure_dir


class KeyValueStore:
    """
    Flat JSON key-value store.

    Pass path=None for a purely in-memory store (useful in tests and for
    sessions that should not touch disk).
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._data: dict[str, Any] = {}
        if path is not None:
            ensure_dir(path.parent)
            self._data = self._read()

    def _read(self) -> dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Failed to read state file {}: {}", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("State file {} is not a JSON object, ignoring it", self.path)
            return {}
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write state file {}: {}", self.path, e)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._data.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def set_many(self, values: dict[str, Any]) -> None:
        """Set several keys with a single write."""
        self._data.update(values)
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> list[str]:
        return list(self._data.keys())


class PeriodCounter:
    """
    Integer usage counter bucketed by a period key.

    Stored under two fixed keys ({name}.key and {name}.count). The count
    only grows while the period key stays the same and reads as zero as
    soon as the period key changes.
    """

    def __init__(self, store: KeyValueStore, name: str):
        self.store = store
        self.name = name

    @property
    def _key_slot(self) -> str:
        return f"{self.name}.key"

    @property
    def _count_slot(self) -> str:
        return f"{self.name}.count"

    def value(self, period_key: str) -> int:
        if self.store.get(self._key_slot) != period_key:
            return 0
        return max(0, self.store.get_int(self._count_slot))

    def increment(self, period_key: str) -> int:
        count = self.value(period_key) + 1
        self.store.set_many({self._key_slot: period_key, self._count_slot: count})
        return count
