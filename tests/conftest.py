"""Shared fakes and fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import pytest

from gokigen.models.entry import Entry, Mood, sort_newest_first
from gokigen.providers.base import LLMProvider, LLMResponse
from gokigen.storage.kv import KeyValueStore
from gokigen.storage.local import LocalStore
from gokigen.sync.remote import RemotePage, RemoteStore

BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_entry(
    text: str = "今日はふつう",
    mood: Mood = Mood.NEUTRAL,
    minutes: int = 0,
    **kwargs: Any,
) -> Entry:
    """Entry dated BASE_TIME + minutes."""
    return Entry(mood=mood, original_text=text, date=BASE_TIME + timedelta(minutes=minutes), **kwargs)


class FakeRemoteStore(RemoteStore):
    """In-memory remote store with failure switches and call logs."""

    def __init__(self):
        self.docs: dict[str, dict[UUID, Entry]] = {}
        self.online = True
        self.fail_ids: set[UUID] = set()
        self.fail_delete_all = False
        self.saved: list[UUID] = []
        self.deleted: list[UUID] = []
        self.page_calls: list[Any] = []
        self.migrated: list[Entry] = []
        self.gate: asyncio.Event | None = None

    def _check(self, entry_id: UUID | None = None) -> None:
        if not self.online:
            raise ConnectionError("offline")
        if entry_id is not None and entry_id in self.fail_ids:
            raise ConnectionError(f"rejected {entry_id}")

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def save_document(self, entry: Entry, user_id: str) -> None:
        await self._wait()
        self._check(entry.id)
        self.docs.setdefault(user_id, {})[entry.id] = entry
        self.saved.append(entry.id)

    async def load_page(self, user_id: str, limit: int, cursor: Any | None = None) -> RemotePage:
        await self._wait()
        self._check()
        self.page_calls.append(cursor)
        ordered = sort_newest_first(list(self.docs.get(user_id, {}).values()))
        start = cursor or 0
        chunk = ordered[start : start + limit]
        next_cursor = start + len(chunk) if start + len(chunk) < len(ordered) else None
        return RemotePage(entries=chunk, next_cursor=next_cursor)

    async def delete_document(self, entry_id: UUID, user_id: str) -> None:
        await self._wait()
        self._check(entry_id)
        self.docs.get(user_id, {}).pop(entry_id, None)
        self.deleted.append(entry_id)

    async def delete_all(self, user_id: str) -> None:
        await self._wait()
        self._check()
        if self.fail_delete_all:
            raise ConnectionError("delete_all rejected")
        self.docs.pop(user_id, None)

    async def batch_migrate(self, entries: list[Entry], user_id: str) -> None:
        self._check()
        for entry in entries:
            self.docs.setdefault(user_id, {})[entry.id] = entry
        self.migrated.extend(entries)


class FakeProvider(LLMProvider):
    """Scripted text-generation provider."""

    def __init__(self, replies: list[str] | None = None):
        super().__init__()
        self.replies = list(replies or [])
        self.default_reply = '{"empathy": "よくがんばったね。", "next_step": "水を一杯飲もう。"}'
        self.calls: list[str] = []
        self.error: str | None = None
        self.gate: asyncio.Event | None = None

    async def chat(self, messages, model=None, max_tokens=1024, temperature=0.7) -> LLMResponse:
        self.calls.append(messages[-1]["content"])
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            return LLMResponse(content=self.error, finish_reason="error")
        reply = self.replies.pop(0) if self.replies else self.default_reply
        return LLMResponse(content=reply)

    def get_default_model(self) -> str:
        return "fake-model"


@pytest.fixture
def kv() -> KeyValueStore:
    return KeyValueStore()


@pytest.fixture
def local(kv) -> LocalStore:
    return LocalStore(kv)


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
