"""Periodic reconciliation loops driving a ReminderSession.

Two independent loops (due-soon scan and overdue scan) share one event loop.
Each tick runs to completion, store I/O included, before its own next sleep.
Stopping the watcher cancels the timers; a store call already in flight is
left to finish or fail on its own.
"""

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from typing import Awaitable, Callable

from followups.errors import FollowUpError
from followups.services.acknowledgment_flow import AcknowledgmentPrompt
from followups.services.due_soon_detector import DueSoonAlert
from followups.services.follow_up_store import FollowUpStore
from followups.services.reminder_session import ReminderSession

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
StoreFactory = Callable[[], AbstractAsyncContextManager[FollowUpStore]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PeriodicLoop:
    """Run ``tick`` immediately, then every ``interval`` seconds until stopped."""

    def __init__(
        self,
        name: str,
        interval: float,
        tick: Callable[[], Awaitable[None]],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.interval = interval
        self._tick = tick
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run_once(self) -> None:
        try:
            await self._tick()
        except FollowUpError as e:
            logger.warning("%s tick failed: %s", self.name, e.message)
        except Exception:
            logger.exception("%s tick crashed", self.name)

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await self._sleep(self.interval)


class ReminderWatcher:
    def __init__(
        self,
        session: ReminderSession,
        store_factory: StoreFactory,
        *,
        due_soon_interval: float = 60,
        overdue_interval: float = 60,
        clock: Clock = utcnow,
        on_due_soon: Callable[[DueSoonAlert], None] | None = None,
        on_overdue: Callable[[AcknowledgmentPrompt], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self._store_factory = store_factory
        self._clock = clock
        self._on_due_soon = on_due_soon
        self._on_overdue = on_overdue
        self.due_soon_loop = PeriodicLoop("due-soon", due_soon_interval, self.due_soon_tick, sleep)
        self.overdue_loop = PeriodicLoop("overdue", overdue_interval, self.overdue_tick, sleep)

    async def due_soon_tick(self) -> list[DueSoonAlert]:
        async with self._store_factory() as store:
            alerts = await self.session.check_due_soon(store, self._clock())
        if self._on_due_soon:
            for alert in alerts:
                self._on_due_soon(alert)
        return alerts

    async def overdue_tick(self) -> AcknowledgmentPrompt:
        async with self._store_factory() as store:
            prompt = await self.session.check_overdue(store, self._clock())
        if self._on_overdue and prompt.modal is not None:
            self._on_overdue(prompt)
        return prompt

    def start(self) -> None:
        self.due_soon_loop.start()
        self.overdue_loop.start()
        logger.info("Reminder watcher started for user %s", self.session.viewer.user_id)

    async def stop(self) -> None:
        await self.due_soon_loop.stop()
        await self.overdue_loop.stop()
        logger.info("Reminder watcher stopped for user %s", self.session.viewer.user_id)
