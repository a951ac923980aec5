"""Tests for reminder sessions, the session registry and the periodic watcher."""

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import make_record
from followups.errors import PersistenceError
from followups.services.records import Viewer
from followups.services.reminder_session import ReminderSession, ReminderSessionRegistry
from followups.services.reminder_watcher import PeriodicLoop, ReminderWatcher


class TestReminderSession:
    @pytest.mark.asyncio
    async def test_due_soon_refreshes_open_follow_ups(self, store, now, sales_viewer):
        record = make_record(due_at=now + timedelta(minutes=10))
        store.list_for_viewer.return_value = [record]
        session = ReminderSession(sales_viewer)

        alerts = await session.check_due_soon(store, now)

        store.list_for_viewer.assert_awaited_once_with(sales_viewer, completed=False)
        assert session.follow_ups == [record]
        assert [a.follow_up_id for a in alerts] == [record.id]
        assert session.last_seen == now

    @pytest.mark.asyncio
    async def test_refresh_replaces_list(self, store, now, sales_viewer):
        session = ReminderSession(sales_viewer)
        store.list_for_viewer.return_value = [make_record(due_at=now)]
        await session.refresh(store)

        store.list_for_viewer.return_value = []
        await session.refresh(store)

        assert session.follow_ups == []

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_list(self, store, now, sales_viewer):
        session = ReminderSession(sales_viewer)
        record = make_record(due_at=now)
        store.list_for_viewer.return_value = [record]
        await session.refresh(store)

        store.list_for_viewer.side_effect = PersistenceError("Could not load follow-ups")
        with pytest.raises(PersistenceError):
            await session.refresh(store)

        assert session.follow_ups == [record]


class TestRegistry:
    def test_same_key_reuses_session(self, now, sales_viewer):
        registry = ReminderSessionRegistry()
        first = registry.get_or_create(sales_viewer, "tab-1", now)
        second = registry.get_or_create(sales_viewer, "tab-1", now + timedelta(minutes=1))

        assert first is second
        assert len(registry) == 1

    def test_sessions_are_per_tab(self, now, sales_viewer):
        registry = ReminderSessionRegistry()
        first = registry.get_or_create(sales_viewer, "tab-1", now)
        second = registry.get_or_create(sales_viewer, "tab-2", now)

        assert first is not second
        assert first.ledger is not second.ledger

    def test_role_change_starts_fresh(self, now, sales_viewer):
        registry = ReminderSessionRegistry()
        first = registry.get_or_create(sales_viewer, "tab-1", now)
        promoted = Viewer(user_id=sales_viewer.user_id, is_admin=True)

        assert registry.get(promoted, "tab-1") is None
        second = registry.get_or_create(promoted, "tab-1", now)
        assert second is not first
        assert second.viewer.is_admin

    def test_idle_sessions_evicted(self, now, sales_viewer, admin_viewer):
        registry = ReminderSessionRegistry(idle_timeout=timedelta(minutes=15))
        registry.get_or_create(sales_viewer, "old", now)

        registry.get_or_create(admin_viewer, "new", now + timedelta(minutes=20))

        assert registry.get(sales_viewer, "old") is None
        assert len(registry) == 1

    def test_discard(self, now, sales_viewer):
        registry = ReminderSessionRegistry()
        registry.get_or_create(sales_viewer, "tab-1", now)
        registry.discard(sales_viewer, "tab-1")
        assert len(registry) == 0


class SyntheticClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _store_factory(store):
    @asynccontextmanager
    async def factory():
        yield store

    return factory


class TestReminderWatcher:
    @pytest.mark.asyncio
    async def test_single_stepped_ticks(self, store, now, sales_viewer):
        clock = SyntheticClock(now)
        record = make_record(due_at=now + timedelta(minutes=10, seconds=30))
        store.list_for_viewer.return_value = [record]
        store.list_unacknowledged_overdue.return_value = []
        seen = []
        watcher = ReminderWatcher(
            ReminderSession(sales_viewer),
            _store_factory(store),
            clock=clock,
            on_due_soon=seen.append,
        )

        await watcher.due_soon_tick()
        clock.advance(seconds=20)
        await watcher.due_soon_tick()
        clock.advance(minutes=5)
        await watcher.due_soon_tick()

        assert [a.threshold_minutes for a in seen] == [10, 5]

    @pytest.mark.asyncio
    async def test_overdue_tick_reports_modal(self, store, now, sales_viewer):
        record = make_record(due_at=now - timedelta(minutes=1))
        store.list_unacknowledged_overdue.return_value = [record]
        prompts = []
        watcher = ReminderWatcher(
            ReminderSession(sales_viewer),
            _store_factory(store),
            clock=lambda: now,
            on_overdue=prompts.append,
        )

        prompt = await watcher.overdue_tick()

        assert prompt.modal == record
        assert prompts == [prompt]

    @pytest.mark.asyncio
    async def test_start_and_stop_cancel_loops(self, store, now, sales_viewer):
        store.list_for_viewer.return_value = []
        store.list_unacknowledged_overdue.return_value = []
        gate = asyncio.Event()

        async def blocking_sleep(_seconds):
            await gate.wait()

        watcher = ReminderWatcher(
            ReminderSession(sales_viewer),
            _store_factory(store),
            clock=lambda: now,
            sleep=blocking_sleep,
        )

        watcher.start()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert watcher.due_soon_loop.running
        assert watcher.overdue_loop.running

        await watcher.stop()

        assert not watcher.due_soon_loop.running
        assert not watcher.overdue_loop.running
        store.list_for_viewer.assert_awaited_once()
        store.list_unacknowledged_overdue.assert_awaited_once()


class TestPeriodicLoop:
    @pytest.mark.asyncio
    async def test_run_once_swallows_domain_error(self):
        tick = AsyncMock(side_effect=PersistenceError("Could not load follow-ups"))
        loop = PeriodicLoop("test", 60, tick)

        await loop.run_once()

        tick.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_once_survives_unexpected_error(self):
        tick = AsyncMock(side_effect=RuntimeError("boom"))
        loop = PeriodicLoop("test", 60, tick)

        await loop.run_once()

        tick.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        loop = PeriodicLoop("test", 60, AsyncMock())
        await loop.stop()
        assert not loop.running

    @pytest.mark.asyncio
    async def test_keeps_ticking_after_failure(self):
        ticks = AsyncMock(side_effect=[PersistenceError("down"), None, None])
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 3:
                raise asyncio.CancelledError

        loop = PeriodicLoop("test", 30, ticks, sleep=fake_sleep)
        loop.start()
        with pytest.raises(asyncio.CancelledError):
            await loop._task

        assert ticks.await_count == 3
        assert sleeps == [30, 30, 30]
