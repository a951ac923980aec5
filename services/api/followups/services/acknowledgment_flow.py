"""Overdue follow-up acknowledgment flow for one viewer.

Each poll surfaces at most one blocking modal. The modal stays up across polls
until the viewer acknowledges it; acknowledging does not advance to the next
item, the following poll does.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from followups.errors import FollowUpNotFoundError
from followups.metrics import acknowledgments_total
from followups.services.follow_up_store import FollowUpStore
from followups.services.records import FollowUpRecord, Viewer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverdueAlert:
    follow_up_id: uuid.UUID
    client_name: str
    message: str


@dataclass
class AcknowledgmentPrompt:
    modal: FollowUpRecord | None = None
    pending: list[FollowUpRecord] = field(default_factory=list)
    alerts: list[OverdueAlert] = field(default_factory=list)


class AcknowledgmentFlow:
    def __init__(self, viewer: Viewer) -> None:
        self._viewer = viewer
        self._modal: FollowUpRecord | None = None
        self._visible = False

    @property
    def modal(self) -> FollowUpRecord | None:
        """The follow-up currently shown, or None when hidden or nothing is pending."""
        return self._modal if self._visible else None

    async def poll(self, store: FollowUpStore, now: datetime) -> AcknowledgmentPrompt:
        pending = await store.list_unacknowledged_overdue(self._viewer, now)

        if not pending:
            self._modal = None
            self._visible = False
            return AcknowledgmentPrompt()

        current = None
        if self._modal is not None:
            current = next((r for r in pending if r.id == self._modal.id), None)
        self._modal = current or pending[0]
        self._visible = True

        alerts = [
            OverdueAlert(
                follow_up_id=record.id,
                client_name=record.client_label,
                message=f"Follow-up with {record.client_label} is due now!",
            )
            for record in pending
        ]
        return AcknowledgmentPrompt(modal=self._modal, pending=pending, alerts=alerts)

    def dismiss(self) -> None:
        """Hide the modal without acknowledging; the next poll brings it back."""
        self._visible = False

    async def acknowledge(self, store: FollowUpStore, follow_up_id: uuid.UUID) -> FollowUpRecord:
        record = await store.get(follow_up_id, self._viewer)
        if record is None:
            raise FollowUpNotFoundError(follow_up_id)

        if await store.acknowledge(follow_up_id, self._viewer.user_id):
            acknowledgments_total.inc()
            logger.info("User %s acknowledged follow-up %s", self._viewer.user_id, follow_up_id)
        else:
            logger.debug("Follow-up %s already acknowledged by %s", follow_up_id, self._viewer.user_id)

        if self._modal is not None and self._modal.id == follow_up_id:
            self._modal = None
            self._visible = False
        return record
