"""Due-soon detector: one-shot alerts at fixed minute thresholds before due time.

Matching is by exact equality on the floored minute difference, so a tick that
runs late can step over a threshold minute and that alert is never sent. There
is no catch-up logic.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from followups.errors import PersistenceError
from followups.metrics import due_soon_alerts_total, notification_failures_total, notifications_sent_total
from followups.services.follow_up_status import coerce_timestamp, display_note, minutes_until
from followups.services.follow_up_store import FollowUpStore
from followups.services.notification_ledger import NotificationKey, NotificationLedger
from followups.services.records import FollowUpRecord, Viewer

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS_MINUTES = (10, 5)


@dataclass(frozen=True)
class DueSoonAlert:
    follow_up_id: uuid.UUID
    threshold_minutes: int
    client_name: str
    due_at: datetime
    message: str


class DueSoonDetector:
    def __init__(
        self,
        ledger: NotificationLedger,
        thresholds_minutes: Sequence[int] = DEFAULT_THRESHOLDS_MINUTES,
    ) -> None:
        self._ledger = ledger
        self._thresholds = tuple(thresholds_minutes)

    @property
    def thresholds(self) -> tuple[int, ...]:
        return self._thresholds

    async def check(
        self,
        store: FollowUpStore,
        follow_ups: Iterable[FollowUpRecord],
        now: datetime,
        viewer: Viewer | None = None,
    ) -> list[DueSoonAlert]:
        """Run one tick over ``follow_ups`` and return the alerts for the viewer.

        ``viewer`` is None for server-side scans: only assignees get rows then.
        """
        alerts: list[DueSoonAlert] = []
        for record in follow_ups:
            if record.is_completed:
                continue
            due_at = coerce_timestamp(record.due_at)
            if due_at is None:
                continue
            diff_minutes = minutes_until(due_at, now)

            for threshold in self._thresholds:
                if diff_minutes != threshold:
                    continue
                key = NotificationKey(record.id, threshold)
                if await self._ledger.has_fired(key):
                    continue
                # Claim the key before any store I/O so an overlapping tick loses
                if not await self._ledger.mark_fired(key):
                    continue

                alert = DueSoonAlert(
                    follow_up_id=record.id,
                    threshold_minutes=threshold,
                    client_name=record.client_label,
                    due_at=due_at,
                    message=f"Follow-up with {record.client_label} in {threshold} minutes: {display_note(record)}",
                )
                alerts.append(alert)
                due_soon_alerts_total.labels(threshold=str(threshold)).inc()
                logger.info("Due-soon alert for follow-up %s at %d minutes", record.id, threshold)

                await self._insert_notifications(store, record, threshold, viewer)

        return alerts

    async def release(self, alerts: Iterable[DueSoonAlert]) -> None:
        """Free the ledger keys of alerts whose notification rows were rolled back."""
        for alert in alerts:
            await self._ledger.release(NotificationKey(alert.follow_up_id, alert.threshold_minutes))
            logger.info(
                "Released due-soon key for follow-up %s at %d minutes", alert.follow_up_id, alert.threshold_minutes
            )

    async def _insert_notifications(
        self,
        store: FollowUpStore,
        record: FollowUpRecord,
        threshold: int,
        viewer: Viewer | None,
    ) -> None:
        recipients = [record.assigned_user_id]
        if viewer is not None and viewer.is_admin and viewer.user_id not in recipients:
            recipients.append(viewer.user_id)

        message = f"Follow-up with {record.client_label} in {threshold} minutes"
        for recipient_id in recipients:
            try:
                await store.insert_notification(
                    follow_up_id=record.id,
                    recipient_id=recipient_id,
                    message=message,
                    sent_by=viewer.user_id if viewer else None,
                )
            except PersistenceError as e:
                # Not retried; the alert and ledger key stand
                notification_failures_total.inc()
                logger.warning(
                    "Dropped due-soon notification for follow-up %s to user %s: %s",
                    record.id,
                    recipient_id,
                    e.message,
                )
                continue
            notifications_sent_total.labels(type="due_soon").inc()
