"""Per-viewer reminder state: dedup ledger, due-soon detector, acknowledgment modal.

A session lives as long as the viewer's client keeps polling with the same
session id. Nothing in it is persisted, so a new session (e.g. after a page
reload) may repeat an alert that was already shown.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Sequence

from followups.services.acknowledgment_flow import AcknowledgmentFlow, AcknowledgmentPrompt
from followups.services.due_soon_detector import DEFAULT_THRESHOLDS_MINUTES, DueSoonAlert, DueSoonDetector
from followups.services.follow_up_store import FollowUpStore
from followups.services.notification_ledger import InMemoryNotificationLedger, NotificationLedger
from followups.services.records import FollowUpRecord, Viewer

logger = logging.getLogger(__name__)


class ReminderSession:
    def __init__(
        self,
        viewer: Viewer,
        *,
        ledger: NotificationLedger | None = None,
        thresholds_minutes: Sequence[int] = DEFAULT_THRESHOLDS_MINUTES,
    ) -> None:
        self.viewer = viewer
        self.ledger = ledger or InMemoryNotificationLedger()
        self.detector = DueSoonDetector(self.ledger, thresholds_minutes)
        self.acknowledgments = AcknowledgmentFlow(viewer)
        self.follow_ups: list[FollowUpRecord] = []
        self.last_seen: datetime | None = None

    async def refresh(self, store: FollowUpStore) -> list[FollowUpRecord]:
        """Reload the viewer's open follow-ups; never merged with the old list."""
        self.follow_ups = await store.list_for_viewer(self.viewer, completed=False)
        return self.follow_ups

    async def check_due_soon(self, store: FollowUpStore, now: datetime) -> list[DueSoonAlert]:
        self.last_seen = now
        await self.refresh(store)
        return await self.detector.check(store, self.follow_ups, now, self.viewer)

    async def check_overdue(self, store: FollowUpStore, now: datetime) -> AcknowledgmentPrompt:
        self.last_seen = now
        return await self.acknowledgments.poll(store, now)

    async def acknowledge(self, store: FollowUpStore, follow_up_id: uuid.UUID) -> FollowUpRecord:
        return await self.acknowledgments.acknowledge(store, follow_up_id)

    def dismiss(self) -> None:
        self.acknowledgments.dismiss()


class ReminderSessionRegistry:
    """Process-local sessions keyed by (user id, client session id)."""

    def __init__(
        self,
        *,
        thresholds_minutes: Sequence[int] = DEFAULT_THRESHOLDS_MINUTES,
        idle_timeout: timedelta = timedelta(minutes=15),
    ) -> None:
        self._thresholds = tuple(thresholds_minutes)
        self._idle_timeout = idle_timeout
        self._sessions: dict[tuple[uuid.UUID, str], ReminderSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, viewer: Viewer, session_id: str) -> ReminderSession | None:
        session = self._sessions.get((viewer.user_id, session_id))
        if session is not None and session.viewer != viewer:
            return None
        return session

    def get_or_create(self, viewer: Viewer, session_id: str, now: datetime) -> ReminderSession:
        self.evict_idle(now)
        key = (viewer.user_id, session_id)
        session = self._sessions.get(key)
        # A role change starts over with a fresh ledger
        if session is None or session.viewer != viewer:
            session = ReminderSession(viewer, thresholds_minutes=self._thresholds)
            self._sessions[key] = session
            logger.info("Started reminder session %s for user %s", session_id, viewer.user_id)
        session.last_seen = now
        return session

    def discard(self, viewer: Viewer, session_id: str) -> None:
        self._sessions.pop((viewer.user_id, session_id), None)

    def evict_idle(self, now: datetime) -> int:
        cutoff = now - self._idle_timeout
        stale = [key for key, s in self._sessions.items() if s.last_seen is not None and s.last_seen < cutoff]
        for key in stale:
            del self._sessions[key]
        if stale:
            logger.debug("Evicted %d idle reminder sessions", len(stale))
        return len(stale)
