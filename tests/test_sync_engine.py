"""Tests for SyncEngine: merge, outbox, pagination, deletes and sessions."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from gokigen.errors import EmptyInputError
from gokigen.models.entry import Mood
from gokigen.sync.engine import SyncEngine, merge
from gokigen.sync.network import NetworkMonitor

from conftest import BASE_TIME, make_entry


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def network():
    return NetworkMonitor()


@pytest.fixture
def engine(local, remote, network, clock):
    return SyncEngine(local, remote, network=network, page_size=2, load_more_debounce_s=0.7, clock=clock)


def _seed(remote, user_id, entries):
    remote.docs[user_id] = {e.id: e for e in entries}


class TestMerge:
    def test_union_sorted_newest_first(self):
        a, b, c = make_entry(minutes=0), make_entry(minutes=10), make_entry(minutes=5)
        assert merge([a], [b, c]) == [b, c, a]

    def test_newer_remote_wins(self):
        local = make_entry(text="local")
        remote = local.revised(now=BASE_TIME + timedelta(minutes=1), original_text="remote")
        assert merge([local], [remote]) == [remote]

    def test_newer_local_wins(self):
        remote = make_entry(text="remote")
        local = remote.revised(now=BASE_TIME + timedelta(minutes=1), original_text="local")
        assert merge([local], [remote]) == [local]

    def test_tie_keeps_local(self):
        local = make_entry(text="local")
        remote = local.revised(now=local.updated_at, original_text="remote")
        assert merge([local], [remote])[0].original_text == "local"

    def test_ids_are_unique(self):
        a = make_entry()
        assert len(merge([a, a], [a])) == 1

    def test_empty(self):
        assert merge([], []) == []

    def test_one_sided_merge_is_sorted_copy(self):
        entries = [make_entry(minutes=0), make_entry(minutes=9), make_entry(minutes=3)]
        expected = sorted(entries, key=lambda e: e.date, reverse=True)
        assert merge(entries, []) == expected
        assert merge([], entries) == expected


class TestBind:
    @pytest.mark.asyncio
    async def test_publishes_cache_before_remote(self, engine, local, remote):
        cached = make_entry(text="cached", minutes=0)
        fresh = make_entry(text="remote", minutes=10)
        local.save_entries([cached], "u1")
        _seed(remote, "u1", [fresh])

        task = engine.bind("u1")
        assert engine.entries.value == [cached]

        await task
        assert engine.entries.value == [fresh, cached]
        assert local.load_entries("u1") == [fresh, cached]

    @pytest.mark.asyncio
    async def test_rebinding_same_user_is_noop(self, engine):
        await engine.bind("u1")
        assert engine.bind("u1") is None

    @pytest.mark.asyncio
    async def test_migrates_signed_out_entries(self, engine, local, remote):
        legacy = make_entry(text="before sign-in")
        local.save_legacy_entries([legacy])

        await engine.bind("u1")

        assert remote.migrated == [legacy]
        assert legacy.id in remote.docs["u1"]
        assert local.load_legacy_entries() == []
        assert engine.entries.value == [legacy]
        assert local.load_entries("u1") == [legacy]

    @pytest.mark.asyncio
    async def test_failed_migration_keeps_legacy(self, engine, local, remote):
        legacy = make_entry()
        local.save_legacy_entries([legacy])
        remote.online = False

        await engine.bind("u1")

        assert local.load_legacy_entries() == [legacy]

    @pytest.mark.asyncio
    async def test_stale_page_is_discarded_after_switching_user(self, engine, local, remote):
        other = make_entry(text="belongs to u1")
        _seed(remote, "u1", [other])
        remote.gate = asyncio.Event()

        engine.bind("u1")
        await asyncio.sleep(0)
        engine.bind("u2")
        remote.gate.set()
        await engine.wait_idle()

        assert engine.user_id == "u2"
        assert engine.entries.value == []
        assert local.load_entries("u2") == []

    @pytest.mark.asyncio
    async def test_unbind_falls_back_to_signed_out_cache(self, engine, local):
        legacy = make_entry()
        await engine.bind("u1")
        local.save_legacy_entries([legacy])

        engine.unbind()

        assert not engine.is_bound
        assert engine.entries.value == [legacy]


class TestSave:
    def test_unbound_save_writes_legacy_cache(self, engine, local):
        entry = make_entry()
        assert engine.save(entry) is None
        assert engine.entries.value == [entry]
        assert local.load_legacy_entries() == [entry]

    def test_blank_text_is_rejected(self, engine, local):
        with pytest.raises(EmptyInputError):
            engine.save(make_entry(text="  \n"))
        assert engine.entries.value == []
        assert local.load_legacy_entries() == []

    def test_new_entries_go_on_top_and_edits_replace_in_place(self, engine):
        first, second = make_entry(minutes=0), make_entry(minutes=1)
        engine.save(first)
        engine.save(second)
        edited = first.revised(original_text="edited")
        engine.save(edited)
        assert engine.entries.value == [second, edited]

    @pytest.mark.asyncio
    async def test_bound_save_mirrors_remotely(self, engine, local, remote):
        await engine.bind("u1")
        entry = make_entry()

        ok = await engine.save(entry)

        assert ok is True
        assert remote.docs["u1"][entry.id] == entry
        assert local.load_pending_ids("u1") == []
        assert engine.get(entry.id) == entry

    @pytest.mark.asyncio
    async def test_failed_save_is_queued(self, engine, local, remote):
        await engine.bind("u1")
        remote.online = False
        entry = make_entry()

        ok = await engine.save(entry)

        assert ok is False
        assert engine.entries.value == [entry]
        assert local.load_pending_ids("u1") == [entry.id]


class TestFlush:
    async def _queue(self, engine, remote, entries):
        remote.online = False
        for entry in entries:
            engine.save(entry)
        await engine.wait_idle()
        remote.online = True

    @pytest.mark.asyncio
    async def test_drains_outbox(self, engine, local, remote):
        await engine.bind("u1")
        entries = [make_entry(minutes=i) for i in range(3)]
        await self._queue(engine, remote, entries)

        assert await engine.flush_pending() == 3
        assert local.load_pending_ids("u1") == []
        assert set(remote.docs["u1"]) == {e.id for e in entries}

    @pytest.mark.asyncio
    async def test_second_flush_is_a_noop(self, engine, remote):
        await engine.bind("u1")
        await self._queue(engine, remote, [make_entry()])

        await engine.flush_pending()
        saves = len(remote.saved)
        assert await engine.flush_pending() == 0
        assert len(remote.saved) == saves

    @pytest.mark.asyncio
    async def test_stops_at_first_failure_oldest_first(self, engine, local, remote):
        await engine.bind("u1")
        a, b, c = (make_entry(minutes=i) for i in range(3))
        await self._queue(engine, remote, [c, a, b])
        remote.fail_ids = {b.id}

        assert await engine.flush_pending() == 1

        assert remote.saved == [a.id]
        assert set(local.load_pending_ids("u1")) == {b.id, c.id}

    @pytest.mark.asyncio
    async def test_concurrent_flush_sends_each_entry_once(self, engine, remote):
        await engine.bind("u1")
        entries = [make_entry(minutes=i) for i in range(2)]
        await self._queue(engine, remote, entries)
        remote.gate = asyncio.Event()

        first = asyncio.create_task(engine.flush_pending())
        await asyncio.sleep(0)
        assert engine.is_flushing
        assert await engine.flush_pending() == 0

        remote.gate.set()
        assert await first == 2
        assert sorted(remote.saved) == sorted(e.id for e in entries)

    @pytest.mark.asyncio
    async def test_drops_ids_without_entry(self, engine, local):
        await engine.bind("u1")
        local.add_pending_id(uuid4(), "u1")

        assert await engine.flush_pending() == 0
        assert local.load_pending_ids("u1") == []

    @pytest.mark.asyncio
    async def test_unbound_flush_does_nothing(self, engine):
        assert await engine.flush_pending() == 0

    @pytest.mark.asyncio
    async def test_reconnect_triggers_flush(self, engine, local, remote, network):
        await engine.bind("u1")
        network.set_online(False)
        remote.online = False
        entry = make_entry(text="書いたのはオフライン", mood=Mood.SAD)
        await engine.save(entry)
        assert local.load_pending_ids("u1") == [entry.id]

        remote.online = True
        network.set_online(True)
        await engine.wait_idle()

        assert remote.docs["u1"][entry.id] == entry
        assert local.load_pending_ids("u1") == []


class TestPagination:
    @pytest.mark.asyncio
    async def test_load_more_follows_cursor_until_exhausted(self, engine, remote, clock):
        entries = [make_entry(minutes=i) for i in range(5)]
        _seed(remote, "u1", entries)

        await engine.bind("u1")
        assert len(engine.entries.value) == 2
        assert engine.has_more

        assert await engine.load_more()
        assert len(engine.entries.value) == 4

        clock.now += 1.0
        assert await engine.load_more()
        assert len(engine.entries.value) == 5
        assert not engine.has_more

        clock.now += 1.0
        assert not await engine.load_more()
        assert remote.page_calls == [None, 2, 4]

    @pytest.mark.asyncio
    async def test_load_more_is_debounced(self, engine, remote, clock):
        _seed(remote, "u1", [make_entry(minutes=i) for i in range(6)])
        await engine.bind("u1")

        assert await engine.load_more()
        clock.now += 0.3
        assert not await engine.load_more()
        clock.now += 0.5
        assert await engine.load_more()

    @pytest.mark.asyncio
    async def test_load_more_while_loading_is_noop(self, engine, remote):
        _seed(remote, "u1", [make_entry(minutes=i) for i in range(6)])
        await engine.bind("u1")
        remote.gate = asyncio.Event()

        pending = asyncio.create_task(engine.load_more())
        await asyncio.sleep(0)
        assert engine.is_loading_page
        assert not await engine.refresh()

        remote.gate.set()
        assert await pending

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_entries(self, engine, local, remote):
        cached = make_entry()
        local.save_entries([cached], "u1")
        remote.online = False

        await engine.bind("u1")

        assert not await engine.refresh()
        assert engine.entries.value == [cached]

    @pytest.mark.asyncio
    async def test_short_page_ends_pagination(self, engine, remote):
        _seed(remote, "u1", [make_entry()])
        await engine.bind("u1")
        assert not engine.has_more
        assert engine.cursor is None


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_everywhere(self, engine, local, remote):
        entry = make_entry()
        _seed(remote, "u1", [entry])
        await engine.bind("u1")

        assert await engine.delete([entry.id])

        assert engine.entries.value == []
        assert local.load_entries("u1") == []
        assert entry.id not in remote.docs["u1"]

    @pytest.mark.asyncio
    async def test_delete_clears_pending_write(self, engine, local, remote):
        await engine.bind("u1")
        remote.online = False
        entry = make_entry()
        await engine.save(entry)
        remote.online = True

        await engine.delete([entry.id])

        assert local.load_pending_ids("u1") == []

    @pytest.mark.asyncio
    async def test_failed_delete_is_tombstoned_and_retried(self, engine, local, remote):
        keep, gone = make_entry(minutes=0), make_entry(minutes=1)
        _seed(remote, "u1", [keep, gone])
        await engine.bind("u1")
        remote.fail_ids = {gone.id}

        assert not await engine.delete([gone.id])
        assert local.load_deleted_ids("u1") == [gone.id]

        # The remote still has it, but a refresh must not bring it back.
        await engine.refresh()
        assert engine.entries.value == [keep]

        remote.fail_ids = set()
        assert await engine.flush_pending() == 1
        assert gone.id not in remote.docs["u1"]
        assert local.load_deleted_ids("u1") == []

    def test_delete_unknown_id_is_noop(self, engine):
        assert engine.delete([uuid4()]) is None

    @pytest.mark.asyncio
    async def test_delete_all(self, engine, local, remote):
        entries = [make_entry(minutes=i) for i in range(3)]
        _seed(remote, "u1", entries)
        await engine.bind("u1")

        assert await engine.delete_all()

        assert engine.entries.value == []
        assert "u1" not in remote.docs
        assert local.load_deleted_ids("u1") == []

    @pytest.mark.asyncio
    async def test_failed_delete_all_tombstones_known_ids(self, engine, local, remote):
        entries = [make_entry(minutes=i) for i in range(2)]
        _seed(remote, "u1", entries)
        await engine.bind("u1")
        remote.fail_delete_all = True

        assert not await engine.delete_all()

        assert set(local.load_deleted_ids("u1")) == {e.id for e in entries}
        await engine.refresh()
        assert engine.entries.value == []


class TestInterleaving:
    @pytest.mark.asyncio
    async def test_delete_during_page_fetch_stays_deleted(self, engine, local, remote):
        keep, gone = make_entry(text="keep", minutes=0), make_entry(text="to delete", minutes=1)
        _seed(remote, "u1", [keep, gone])
        local.save_entries([gone, keep], "u1")
        remote.gate = asyncio.Event()

        engine.bind("u1")
        await asyncio.sleep(0)
        engine.delete([gone.id])
        assert local.load_deleted_ids("u1") == [gone.id]

        # The page read the server before the delete reached it.
        remote.gate.set()
        await engine.wait_idle()

        assert gone.id not in remote.docs["u1"]
        assert engine.get(gone.id) is None
        assert local.load_entries("u1") == [keep]
        assert local.load_deleted_ids("u1") == []

        await engine.refresh()
        assert engine.entries.value == [keep]

    @pytest.mark.asyncio
    async def test_delete_all_during_page_fetch_discards_the_page(self, engine, local, remote):
        known, unseen = make_entry(minutes=0), make_entry(minutes=1)
        _seed(remote, "u1", [known, unseen])
        local.save_entries([known], "u1")
        remote.gate = asyncio.Event()

        engine.bind("u1")
        await asyncio.sleep(0)
        engine.delete_all()
        remote.gate.set()
        await engine.wait_idle()

        assert engine.entries.value == []
        assert local.load_entries("u1") == []
        assert "u1" not in remote.docs
        assert local.load_deleted_ids("u1") == []

    @pytest.mark.asyncio
    async def test_older_write_finishing_last_keeps_newer_edit_queued(self, engine, local, remote):
        await engine.bind("u1")
        v1 = make_entry(text="first")
        slow = asyncio.Event()
        remote.gate = slow
        first_write = engine.save(v1)
        await asyncio.sleep(0)

        remote.gate = None
        remote.fail_ids = {v1.id}
        v2 = v1.revised(now=v1.updated_at + timedelta(minutes=1), original_text="second")
        assert await engine.save(v2) is False
        assert local.load_pending_ids("u1") == [v1.id]

        remote.fail_ids = set()
        slow.set()
        assert await first_write is True

        assert remote.docs["u1"][v1.id].original_text == "first"
        assert local.load_pending_ids("u1") == [v1.id]

        assert await engine.flush_pending() == 1
        assert remote.docs["u1"][v1.id].original_text == "second"
        assert local.load_pending_ids("u1") == []

    @pytest.mark.asyncio
    async def test_entry_deleted_during_its_write_is_deleted_again(self, engine, local, remote):
        await engine.bind("u1")
        entry = make_entry()
        slow = asyncio.Event()
        remote.gate = slow
        write = engine.save(entry)
        await asyncio.sleep(0)

        # Delete finishes first, then the write lands on the server.
        remote.gate = None
        assert await engine.delete([entry.id]) is True
        slow.set()
        assert await write is True

        assert entry.id in remote.docs["u1"]
        assert local.load_deleted_ids("u1") == [entry.id]
        assert local.load_pending_ids("u1") == []

        assert await engine.flush_pending() == 1
        assert entry.id not in remote.docs["u1"]


class TestReorder:
    def test_moves_entries_locally(self, engine, local):
        a, b, c = make_entry(minutes=2), make_entry(minutes=1), make_entry(minutes=0)
        local.save_legacy_entries([c, a, b])
        engine.load_unbound()
        assert engine.entries.value == [a, b, c]

        engine.reorder([0], 3)
        assert engine.entries.value == [b, c, a]

        engine.reorder([2], 0)
        assert engine.entries.value == [a, b, c]

    def test_out_of_range_is_ignored(self, engine):
        engine.save(make_entry())
        before = engine.entries.value
        engine.reorder([5], 0)
        assert engine.entries.value == before
