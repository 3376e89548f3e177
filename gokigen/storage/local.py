"""
Per-user local persistence of entries and the sync outbox.

Layout inside the key-value store:
- entries_v1_{user_id}: serialized entry list
- pending_entry_ids_{user_id}: ids whose remote write has not been confirmed
- deleted_entry_ids_{user_id}: ids whose remote delete has not been confirmed
- entries_v1: legacy list written before any user was signed in

Nothing in this module raises to the caller. Decode failures read as an
empty collection; write failures are logged by the underlying store.
"""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from loguru import logger

from gokigen.errors import DecodeFailureError
from gokigen.models.entry import Entry
from gokigen.storage.kv import KeyValueStore

LEGACY_ENTRIES_KEY = "entries_v1"


def _entries_key(user_id: str) -> str:
    return f"entries_v1_{user_id}"


def _pending_key(user_id: str) -> str:
    return f"pending_entry_ids_{user_id}"


def _deleted_key(user_id: str) -> str:
    return f"deleted_entry_ids_{user_id}"


def _decode_entries(raw: Any) -> list[Entry]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise DecodeFailureError(f"expected a list, got {type(raw).__name__}")
    try:
        return [Entry.from_dict(item) for item in raw]
    except (KeyError, ValueError, TypeError) as e:
        raise DecodeFailureError(str(e)) from e


def _decode_ids(raw: Any) -> list[UUID]:
    if not isinstance(raw, list):
        return []
    ids: list[UUID] = []
    for value in raw:
        try:
            entry_id = UUID(str(value))
        except ValueError:
            continue
        if entry_id not in ids:
            ids.append(entry_id)
    return ids


class LocalStore:
    """Durable, synchronous entry cache and outbox, scoped per user."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def _load(self, key: str) -> list[Entry]:
        try:
            return _decode_entries(self.store.get(key))
        except DecodeFailureError as e:
            logger.error("Discarding undecodable entry cache {}: {}", key, e)
            return []

    def load_entries(self, user_id: str) -> list[Entry]:
        return self._load(_entries_key(user_id))

    def save_entries(self, entries: Iterable[Entry], user_id: str) -> None:
        self.store.set(_entries_key(user_id), [e.to_dict() for e in entries])

    def load_legacy_entries(self) -> list[Entry]:
        """Entries saved while no user was signed in."""
        return self._load(LEGACY_ENTRIES_KEY)

    def save_legacy_entries(self, entries: Iterable[Entry]) -> None:
        self.store.set(LEGACY_ENTRIES_KEY, [e.to_dict() for e in entries])

    def clear_legacy_entries(self) -> None:
        self.store.delete(LEGACY_ENTRIES_KEY)

    # ------------------------------------------------------------------
    # Outbox (pending remote writes)
    # ------------------------------------------------------------------

    def load_pending_ids(self, user_id: str) -> list[UUID]:
        return _decode_ids(self.store.get(_pending_key(user_id)))

    def save_pending_ids(self, ids: Iterable[UUID], user_id: str) -> None:
        unique: list[str] = []
        for entry_id in ids:
            value = str(entry_id)
            if value not in unique:
                unique.append(value)
        self.store.set(_pending_key(user_id), unique)

    def add_pending_id(self, entry_id: UUID, user_id: str) -> None:
        ids = self.load_pending_ids(user_id)
        if entry_id not in ids:
            ids.append(entry_id)
            self.save_pending_ids(ids, user_id)

    def remove_pending_id(self, entry_id: UUID, user_id: str) -> None:
        ids = self.load_pending_ids(user_id)
        if entry_id in ids:
            self.save_pending_ids([i for i in ids if i != entry_id], user_id)

    # ------------------------------------------------------------------
    # Tombstones (pending remote deletes)
    # ------------------------------------------------------------------

    def load_deleted_ids(self, user_id: str) -> list[UUID]:
        return _decode_ids(self.store.get(_deleted_key(user_id)))

    def add_deleted_ids(self, entry_ids: Iterable[UUID], user_id: str) -> None:
        ids = self.load_deleted_ids(user_id)
        added = False
        for entry_id in entry_ids:
            if entry_id not in ids:
                ids.append(entry_id)
                added = True
        if added:
            self.store.set(_deleted_key(user_id), [str(i) for i in ids])

    def remove_deleted_id(self, entry_id: UUID, user_id: str) -> None:
        ids = self.load_deleted_ids(user_id)
        if entry_id in ids:
            self.store.set(_deleted_key(user_id), [str(i) for i in ids if i != entry_id])

    def clear_deleted_ids(self, user_id: str) -> None:
        self.store.delete(_deleted_key(user_id))
