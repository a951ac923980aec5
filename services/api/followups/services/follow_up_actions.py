"""Follow-up state transitions: create, complete, reschedule, delete, send reminder.

Input is validated before any store call. Nothing is updated optimistically:
each handler returns the record re-fetched from the store after the write.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from followups.errors import FollowUpNotFoundError, InvalidActionError
from followups.metrics import follow_up_actions_total, notifications_sent_total
from followups.services import audit_service
from followups.services.follow_up_status import normalize_due_at, to_display_time
from followups.services.follow_up_store import FollowUpStore
from followups.services.records import FollowUpRecord, Viewer

logger = logging.getLogger(__name__)

DEFAULT_MIN_LEAD = timedelta(seconds=60)


def require_reason(reason: str | None) -> str:
    if reason is None or not reason.strip():
        raise InvalidActionError("Please enter a reason.")
    return reason.strip()


class FollowUpActions:
    def __init__(
        self,
        store: FollowUpStore,
        viewer: Viewer,
        *,
        min_lead: timedelta = DEFAULT_MIN_LEAD,
        display_tz: ZoneInfo | None = None,
    ) -> None:
        self._store = store
        self._viewer = viewer
        self._min_lead = min_lead
        self._tz = display_tz or ZoneInfo("UTC")

    def require_future(self, due_at: datetime | None, now: datetime, missing_message: str) -> datetime:
        """Normalize ``due_at`` to UTC and require it strictly after now + lead."""
        if due_at is None:
            raise InvalidActionError(missing_message)
        due_at = normalize_due_at(due_at, self._tz)
        if due_at <= now + self._min_lead:
            raise InvalidActionError("Pick a future time.")
        return due_at

    async def _refetch(self, follow_up_id: uuid.UUID) -> FollowUpRecord:
        record = await self._store.get(follow_up_id, self._viewer)
        if record is None:
            raise FollowUpNotFoundError(follow_up_id)
        return record

    async def create(
        self,
        *,
        client_id: uuid.UUID,
        due_at: datetime | None,
        note: str | None = None,
        assigned_user_id: uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> FollowUpRecord:
        now = now or datetime.now(timezone.utc)
        due_at = self.require_future(due_at, now, "Please select a follow-up date!")

        assignee = assigned_user_id or self._viewer.user_id
        if assignee != self._viewer.user_id and not self._viewer.is_admin:
            raise InvalidActionError("Only admins can assign follow-ups to other users.")
        if await self._store.get_client_name(client_id) is None:
            raise InvalidActionError("Client does not exist.")

        follow_up_id = await self._store.insert(
            client_id=client_id,
            assigned_user_id=assignee,
            due_at=due_at,
            note=note.strip() if note else None,
        )
        await self._store.write_audit(
            self._viewer.user_id,
            audit_service.FOLLOW_UP_CREATED,
            follow_up_id,
            {"due_at": due_at.isoformat(), "assigned_user_id": str(assignee)},
        )
        follow_up_actions_total.labels(action="create").inc()
        logger.info("Follow-up %s created for client %s due %s", follow_up_id, client_id, due_at.isoformat())
        return await self._refetch(follow_up_id)

    async def complete(self, follow_up_id: uuid.UUID, reason: str | None) -> FollowUpRecord:
        reason = require_reason(reason)

        updated = await self._store.update(follow_up_id, self._viewer, is_completed=True, action_reason=reason)
        if not updated:
            raise FollowUpNotFoundError(follow_up_id)
        await self._store.write_audit(
            self._viewer.user_id, audit_service.FOLLOW_UP_COMPLETED, follow_up_id, {"reason": reason}
        )
        follow_up_actions_total.labels(action="complete").inc()
        logger.info("Follow-up %s completed by %s", follow_up_id, self._viewer.user_id)
        return await self._refetch(follow_up_id)

    async def reschedule(
        self,
        follow_up_id: uuid.UUID,
        new_due_at: datetime | None,
        reason: str | None,
        now: datetime | None = None,
    ) -> FollowUpRecord:
        """Move the due time; also reopens a completed follow-up."""
        now = now or datetime.now(timezone.utc)
        new_due_at = self.require_future(new_due_at, now, "Please select a new date!")
        reason = require_reason(reason)

        previous = await self._store.get(follow_up_id, self._viewer)
        if previous is None:
            raise FollowUpNotFoundError(follow_up_id)
        updated = await self._store.update(
            follow_up_id,
            self._viewer,
            due_at=new_due_at,
            action_reason=reason,
            is_completed=False,
        )
        if not updated:
            raise FollowUpNotFoundError(follow_up_id)
        await self._store.write_audit(
            self._viewer.user_id,
            audit_service.FOLLOW_UP_RESCHEDULED,
            follow_up_id,
            {
                "reason": reason,
                "previous_due_at": previous.due_at.isoformat() if previous.due_at else None,
                "new_due_at": new_due_at.isoformat(),
            },
        )
        follow_up_actions_total.labels(action="reschedule").inc()
        logger.info("Follow-up %s rescheduled to %s", follow_up_id, new_due_at.isoformat())
        return await self._refetch(follow_up_id)

    async def delete(self, follow_up_id: uuid.UUID, reason: str | None, confirmed: bool = False) -> None:
        """Remove the follow-up for good. Requires explicit confirmation."""
        if not confirmed:
            raise InvalidActionError("Deleting a follow-up must be confirmed.")
        reason = require_reason(reason)

        deleted = await self._store.delete(follow_up_id, self._viewer)
        if not deleted:
            raise FollowUpNotFoundError(follow_up_id)
        await self._store.write_audit(
            self._viewer.user_id, audit_service.FOLLOW_UP_DELETED, follow_up_id, {"reason": reason}
        )
        follow_up_actions_total.labels(action="delete").inc()
        logger.info("Follow-up %s deleted by %s", follow_up_id, self._viewer.user_id)

    async def send_reminder(self, follow_up_id: uuid.UUID) -> str:
        """Queue a pending reminder notification for the assignee."""
        record = await self._refetch(follow_up_id)
        when = to_display_time(record.due_at, self._tz)
        message = f"Reminder: Follow-up with {record.client_label} at {when}"

        await self._store.insert_notification(
            follow_up_id=record.id,
            recipient_id=record.assigned_user_id,
            message=message,
            sent_by=self._viewer.user_id,
        )
        await self._store.write_audit(
            self._viewer.user_id,
            audit_service.FOLLOW_UP_REMINDER_SENT,
            follow_up_id,
            {"recipient_id": str(record.assigned_user_id)},
        )
        notifications_sent_total.labels(type="manual").inc()
        return message
