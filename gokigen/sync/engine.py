"""
Offline-first sync between the local entry cache and the remote store.

The engine owns the in-memory entry list for the bound user. Every mutation
is applied to memory and the local cache synchronously, then mirrored to
the remote store by a background task. Remote writes that fail land in the
outbox and are retried by flush_pending(). Deletes are tombstoned before the
remote call and the tombstone is cleared once the remote confirms, so an
entry cannot come back from a page fetched around the delete.

All state lives on the event loop that drives the engine. Background tasks
only touch shared state after their single await completes, and discard
their result if the session they started in has since been replaced.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Iterable
from uuid import UUID

from loguru import logger

from gokigen.bus.observable import Observable
from gokigen.errors import EmptyInputError
from gokigen.models.entry import Entry, sort_newest_first
from gokigen.storage.local import LocalStore
from gokigen.sync.network import NetworkMonitor
from gokigen.sync.remote import RemotePage, RemoteStore


def merge(local: Iterable[Entry], remote: Iterable[Entry]) -> list[Entry]:
    """
    Last-writer-wins merge of two entry collections.

    On an id collision the record with the greater updated_at wins; ties keep
    the local copy so an unsynced local edit is never overwritten by an
    equal-timestamp remote one. The result is sorted by date, newest first.

    Concurrent edits of the same entry on two devices keep only the later
    record as a whole; the loser's other fields are dropped.
    """
    by_id: dict[UUID, Entry] = {e.id: e for e in local}
    for candidate in remote:
        existing = by_id.get(candidate.id)
        if existing is None or candidate.updated_at > existing.updated_at:
            by_id[candidate.id] = candidate
    return sort_newest_first(list(by_id.values()))


class SyncEngine:
    """
    Reconciles LocalStore and RemoteStore for one bound user at a time.

    Lifecycle: unbound -> bind(user_id) -> ... -> unbind(). While unbound,
    entries live in the legacy (signed-out) cache and nothing is sent
    remotely; they are uploaded by batch migration on the next bind.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore,
        network: NetworkMonitor | None = None,
        page_size: int = 30,
        load_more_debounce_s: float = 0.7,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.local = local
        self.remote = remote
        self.page_size = max(1, page_size)
        self.load_more_debounce_s = load_more_debounce_s
        self._clock = clock

        self.entries: Observable[list[Entry]] = Observable([], name="entries")
        self.user_id: str | None = None
        self.has_more = True

        self._generation = 0
        self._cursor: Any | None = None
        self._is_loading_page = False
        self._is_flushing = False
        self._last_load_more_at: float | None = None
        self._removed_ids: set[UUID] = set()
        self._wipe_count = 0
        self._background_tasks: set[asyncio.Task] = set()

        if network is not None:
            network.on_reconnect(self._on_reconnect)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def is_bound(self) -> bool:
        return self.user_id is not None

    @property
    def is_flushing(self) -> bool:
        return self._is_flushing

    @property
    def is_loading_page(self) -> bool:
        return self._is_loading_page

    @property
    def cursor(self) -> Any | None:
        return self._cursor

    def load_unbound(self) -> None:
        """Publish the signed-out cache. Used before any user is bound."""
        if self.is_bound:
            return
        self.entries.set(sort_newest_first(self.local.load_legacy_entries()))

    def bind(self, user_id: str) -> asyncio.Task | None:
        """
        Bind the engine to a user.

        Publishes the user's local cache immediately, then schedules legacy
        migration, an outbox drain and a first-page fetch in the background.
        Must be called from a running event loop.

        Returns:
            The background initial-sync task, or None if already bound to user_id.
        """
        if self.user_id == user_id:
            return None

        self._reset_session()
        self.user_id = user_id
        self.entries.set(sort_newest_first(self.local.load_entries(user_id)))
        logger.info("Sync bound to user {} ({} cached entries)", user_id, len(self.entries.value))

        return self._schedule_background(self._initial_sync(user_id, self._generation), f"initial-sync:{user_id}")

    def unbind(self) -> None:
        """Drop the current user session and fall back to the signed-out cache."""
        if not self.is_bound:
            return
        logger.info("Sync unbound from user {}", self.user_id)
        self._reset_session()
        self.load_unbound()

    def _reset_session(self) -> None:
        self._generation += 1
        self.user_id = None
        self._cursor = None
        self.has_more = True
        self._is_loading_page = False
        self._is_flushing = False
        self._last_load_more_at = None
        self._removed_ids = set()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _initial_sync(self, user_id: str, generation: int) -> None:
        await self._migrate_legacy(user_id, generation)
        if not self._is_current(generation):
            return
        await self.flush_pending()
        if not self._is_current(generation):
            return
        await self.refresh()

    async def _migrate_legacy(self, user_id: str, generation: int) -> bool:
        """Upload signed-out entries to the user's remote collection."""
        legacy = self.local.load_legacy_entries()
        if not legacy:
            return False

        try:
            await self.remote.batch_migrate(legacy, user_id)
        except Exception as e:
            logger.warning("Legacy migration for {} failed, will retry on next bind: {}", user_id, e)
            return False

        self.local.clear_legacy_entries()
        if self._is_current(generation):
            self._commit(merge(self.entries.value, legacy))
        else:
            self.local.save_entries(merge(self.local.load_entries(user_id), legacy), user_id)
        logger.info("Migrated {} signed-out entries to user {}", len(legacy), user_id)
        return True

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _commit(self, entries: list[Entry]) -> None:
        """Publish entries and write them through to the local cache."""
        self.entries.set(entries)
        if self.user_id is not None:
            self.local.save_entries(entries, self.user_id)
        else:
            self.local.save_legacy_entries(entries)

    def get(self, entry_id: UUID) -> Entry | None:
        for entry in self.entries.value:
            if entry.id == entry_id:
                return entry
        return None

    def _schedule_background(self, coro: Awaitable, task_name: str) -> asyncio.Task:
        """
        Schedule a background task (fire-and-forget).

        Failures are logged, never fatal. Tasks are tracked so callers can
        wait for quiescence and so close() can cancel them.
        """
        async def _wrapped():
            try:
                return await coro
            except asyncio.CancelledError:
                logger.debug("Background task cancelled: {}", task_name)
            except Exception as e:
                logger.warning("Background task failed (non-fatal): {}: {}", task_name, e)
            finally:
                self._background_tasks.discard(asyncio.current_task())

        task = asyncio.create_task(_wrapped(), name=task_name)
        self._background_tasks.add(task)
        return task

    async def wait_idle(self) -> None:
        """Wait until every background task (including ones they spawn) is done."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding background tasks."""
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """
        Reload the first remote page and merge it into local state.

        Resets the pagination cursor. Returns True if a page was applied.
        """
        return await self._fetch_page(None)

    async def load_more(self) -> bool:
        """
        Fetch the next page after the stored cursor.

        No-op while a fetch is in flight, when no further pages exist, or
        when called again within the debounce interval.
        """
        if not self.is_bound:
            return False
        if self._is_loading_page:
            logger.debug("load_more skipped: fetch already in flight")
            return False
        if not self.has_more:
            logger.debug("load_more skipped: no more pages")
            return False

        now = self._clock()
        if self._last_load_more_at is not None and now - self._last_load_more_at < self.load_more_debounce_s:
            logger.debug("load_more skipped: debounced")
            return False
        self._last_load_more_at = now

        return await self._fetch_page(self._cursor)

    async def _fetch_page(self, cursor: Any | None) -> bool:
        if not self.is_bound or self._is_loading_page:
            return False

        user_id = self.user_id
        generation = self._generation
        wipe_count = self._wipe_count
        self._is_loading_page = True
        try:
            page: RemotePage = await self.remote.load_page(user_id, self.page_size, cursor)
        except Exception as e:
            logger.warning("Failed to load entries page for {}: {}", user_id, e)
            return False
        finally:
            if self._is_current(generation):
                self._is_loading_page = False

        if not self._is_current(generation):
            return False
        if wipe_count != self._wipe_count:
            logger.debug("Discarding page for {}: entries were wiped while it loaded", user_id)
            return False

        self._cursor = page.next_cursor
        self.has_more = page.next_cursor is not None and len(page.entries) >= self.page_size

        deleted = set(self.local.load_deleted_ids(user_id)) | self._removed_ids
        incoming = [e for e in page.entries if e.id not in deleted]
        self._commit(merge(self.entries.value, incoming))
        logger.info(
            "Loaded {} entries for {} ({}, has_more={})",
            len(incoming),
            user_id,
            "first page" if cursor is None else "next page",
            self.has_more,
        )
        return True

    # ------------------------------------------------------------------
    # Outbox
    # ------------------------------------------------------------------

    def _on_reconnect(self) -> None:
        if self.is_bound:
            self._schedule_background(self.flush_pending(), f"flush-on-reconnect:{self.user_id}")

    async def flush_pending(self) -> int:
        """
        Drain the outbox, oldest modification first.

        Ids that no longer exist locally are dropped. The drain stops at the
        first failed write so a newer edit is never sent ahead of an older
        one. Pending deletes are retried after all writes went through.

        Returns:
            Number of remote operations that succeeded.
        """
        if not self.is_bound or self._is_flushing:
            return 0

        user_id = self.user_id
        generation = self._generation
        pending = self.local.load_pending_ids(user_id)
        tombstones = self.local.load_deleted_ids(user_id)
        if not pending and not tombstones:
            return 0

        self._is_flushing = True
        sent = 0
        try:
            queued: list[Entry] = []
            for entry_id in pending:
                entry = self.get(entry_id)
                if entry is None:
                    logger.debug("Dropping outbox id {}: entry no longer exists", entry_id)
                    self.local.remove_pending_id(entry_id, user_id)
                else:
                    queued.append(entry)
            queued.sort(key=lambda e: e.updated_at)

            for queued_entry in queued:
                if not self._is_current(generation):
                    return sent
                entry = self.get(queued_entry.id)
                if entry is None:
                    self.local.remove_pending_id(queued_entry.id, user_id)
                    continue
                try:
                    await self.remote.save_document(entry, user_id)
                except Exception as e:
                    logger.warning("Outbox drain stopped at {}: {}", entry.id, e)
                    return sent
                self._confirm_save(entry, user_id)
                sent += 1

            for entry_id in tombstones:
                if not self._is_current(generation):
                    return sent
                try:
                    await self.remote.delete_document(entry_id, user_id)
                except Exception as e:
                    logger.warning("Pending delete of {} failed again: {}", entry_id, e)
                    return sent
                self.local.remove_deleted_id(entry_id, user_id)
                sent += 1

            return sent
        finally:
            if self._is_current(generation):
                self._is_flushing = False
            if sent:
                logger.info("Outbox drain for {} sent {} operation(s)", user_id, sent)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, entry: Entry) -> asyncio.Task | None:
        """
        Insert or replace an entry.

        New entries go to the top of the list; existing ones are replaced in
        place. The remote write runs in the background and the id is queued
        in the outbox if it fails.

        Returns:
            The background write task, or None when unbound.

        Raises:
            EmptyInputError: If the entry has no original text.
        """
        if not entry.original_text.strip():
            raise EmptyInputError("entry text is empty")

        entries = list(self.entries.value)
        for index, existing in enumerate(entries):
            if existing.id == entry.id:
                entries[index] = entry
                break
        else:
            entries.insert(0, entry)
        self._commit(entries)

        if self.user_id is None:
            return None
        return self._schedule_background(self._mirror_save(entry, self.user_id), f"save:{entry.id}")

    async def _mirror_save(self, entry: Entry, user_id: str) -> bool:
        try:
            await self.remote.save_document(entry, user_id)
        except Exception as e:
            logger.warning("Remote save of {} failed, queued for retry: {}", entry.id, e)
            self.local.add_pending_id(entry.id, user_id)
            return False
        self._confirm_save(entry, user_id)
        return True

    def _known_copy(self, entry_id: UUID, user_id: str) -> Entry | None:
        if self.user_id == user_id:
            return self.get(entry_id)
        for entry in self.local.load_entries(user_id):
            if entry.id == entry_id:
                return entry
        return None

    def _confirm_save(self, sent: Entry, user_id: str) -> None:
        """
        Settle the outbox after a remote write of `sent` succeeded.

        Writes can complete out of order. The id only leaves the outbox when
        nothing newer exists locally; otherwise it stays queued so the newer
        copy overwrites the one just written. An entry deleted while its
        write was in flight is tombstoned again.
        """
        current = self._known_copy(sent.id, user_id)
        if current is None:
            self.local.remove_pending_id(sent.id, user_id)
            if self.user_id == user_id and sent.id in self._removed_ids:
                logger.debug("Entry {} was deleted during its write, re-queueing the delete", sent.id)
                self.local.add_deleted_ids([sent.id], user_id)
            return
        if current.updated_at > sent.updated_at:
            logger.debug("Remote write of {} superseded by a newer local edit, keeping it queued", sent.id)
            self.local.add_pending_id(sent.id, user_id)
            return
        self.local.remove_pending_id(sent.id, user_id)

    def delete(self, entry_ids: Iterable[UUID]) -> asyncio.Task | None:
        """Delete entries by id locally, then remotely in the background."""
        targets = set(entry_ids)
        removed = [e.id for e in self.entries.value if e.id in targets]
        if not removed:
            return None
        self._commit([e for e in self.entries.value if e.id not in targets])

        if self.user_id is None:
            return None
        self._removed_ids.update(removed)
        for entry_id in removed:
            self.local.remove_pending_id(entry_id, self.user_id)
        self.local.add_deleted_ids(removed, self.user_id)
        return self._schedule_background(self._mirror_delete(removed, self.user_id), "delete")

    async def _mirror_delete(self, entry_ids: list[UUID], user_id: str) -> bool:
        ok = True
        for entry_id in entry_ids:
            try:
                await self.remote.delete_document(entry_id, user_id)
            except Exception as e:
                logger.warning("Remote delete of {} failed, keeping tombstone: {}", entry_id, e)
                ok = False
                continue
            self.local.remove_deleted_id(entry_id, user_id)
        return ok

    def delete_all(self) -> asyncio.Task | None:
        """Delete every entry locally, then remotely in the background."""
        removed = [e.id for e in self.entries.value]
        self._commit([])

        if self.user_id is None:
            return None
        self._wipe_count += 1
        self._removed_ids.update(removed)
        self.local.save_pending_ids([], self.user_id)
        self.local.add_deleted_ids(removed, self.user_id)
        return self._schedule_background(self._mirror_delete_all(self.user_id), "delete-all")

    async def _mirror_delete_all(self, user_id: str) -> bool:
        try:
            await self.remote.delete_all(user_id)
        except Exception as e:
            logger.warning("Remote delete-all for {} failed, keeping tombstones: {}", user_id, e)
            return False
        self.local.clear_deleted_ids(user_id)
        return True

    def reorder(self, source_indices: Iterable[int], destination: int) -> None:
        """
        Move the entries at source_indices so they land before destination.

        Indices refer to the list before the move. Ordering is a local
        presentation concern and is not mirrored remotely; the next merge
        restores date order.
        """
        entries = list(self.entries.value)
        sources = sorted({i for i in source_indices if 0 <= i < len(entries)})
        if not sources:
            return
        moving = [entries[i] for i in sources]
        remaining = [e for i, e in enumerate(entries) if i not in sources]
        destination = max(0, min(destination, len(entries)))
        destination -= sum(1 for i in sources if i < destination)
        remaining[destination:destination] = moving
        self._commit(remaining)
