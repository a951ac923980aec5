"""Reminder polling for a client session: due-soon alerts and overdue acknowledgments.

Clients call ``/reminders/poll`` on their timer (every 60 s by default) with a
stable ``X-Reminder-Session`` header. The dedup ledger lives with that session
in this process.
"""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, Query

from followups.config import Settings, get_settings
from followups.dependencies import get_session_registry, get_store, get_viewer
from followups.errors import FollowUpError, PersistenceError
from followups.metrics import notification_failures_total
from followups.models.follow_up_notification import NotificationStatus
from followups.schemas.follow_up import FollowUpResponse
from followups.schemas.reminder import (
    AcknowledgeResponse,
    DueSoonAlertResponse,
    NotificationResponse,
    OverdueAlertResponse,
    ReminderPollResponse,
)
from followups.services.acknowledgment_flow import AcknowledgmentPrompt
from followups.services.follow_up_store import FollowUpStore
from followups.services.records import Viewer
from followups.services.reminder_session import ReminderSessionRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reminders", tags=["reminders"])

SESSION_HEADER = "X-Reminder-Session"


@router.post("/poll", response_model=ReminderPollResponse)
async def poll_reminders(
    session_id: str = Header(..., alias=SESSION_HEADER, min_length=1, max_length=128),
    viewer: Viewer = Depends(get_viewer),
    store: FollowUpStore = Depends(get_store),
    registry: ReminderSessionRegistry = Depends(get_session_registry),
    settings: Settings = Depends(get_settings),
):
    """Run one due-soon tick and one overdue tick for this session."""
    now = datetime.now(timezone.utc)
    session = registry.get_or_create(viewer, session_id, now)

    alerts = await session.check_due_soon(store, now)
    if alerts:
        # The ledger keys are already claimed; save the rows before anything else can fail
        try:
            await store.commit()
        except PersistenceError as e:
            notification_failures_total.inc()
            logger.warning("Due-soon notifications for session %s not saved: %s", session_id, e.message)

    overdue_available = True
    try:
        prompt = await session.check_overdue(store, now)
    except FollowUpError as e:
        logger.warning("Overdue check failed for session %s: %s", session_id, e.message)
        prompt = AcknowledgmentPrompt()
        overdue_available = False

    modal = session.acknowledgments.modal
    return ReminderPollResponse(
        session_id=session_id,
        due_soon=[DueSoonAlertResponse.model_validate(a) for a in alerts],
        overdue=[OverdueAlertResponse.model_validate(a) for a in prompt.alerts],
        modal=FollowUpResponse.from_record(modal, now, settings.display_tz) if modal else None,
        pending_acknowledgments=len(prompt.pending),
        overdue_available=overdue_available,
    )


@router.post("/acknowledge/{follow_up_id}", response_model=AcknowledgeResponse)
async def acknowledge_follow_up(
    follow_up_id: uuid.UUID,
    session_id: str = Header(..., alias=SESSION_HEADER, min_length=1, max_length=128),
    viewer: Viewer = Depends(get_viewer),
    store: FollowUpStore = Depends(get_store),
    registry: ReminderSessionRegistry = Depends(get_session_registry),
):
    """Record that the caller has seen this overdue follow-up."""
    session = registry.get_or_create(viewer, session_id, datetime.now(timezone.utc))
    record = await session.acknowledge(store, follow_up_id)
    return AcknowledgeResponse(
        follow_up_id=follow_up_id,
        message=f"Acknowledged follow-up for {record.client_label}",
    )


@router.post("/dismiss")
async def dismiss_modal(
    session_id: str = Header(..., alias=SESSION_HEADER, min_length=1, max_length=128),
    viewer: Viewer = Depends(get_viewer),
    registry: ReminderSessionRegistry = Depends(get_session_registry),
):
    """Close the overdue modal without acknowledging it."""
    session = registry.get(viewer, session_id)
    if session is not None:
        session.dismiss()
    return {"status": "ok"}


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    status_filter: NotificationStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    viewer: Viewer = Depends(get_viewer),
    store: FollowUpStore = Depends(get_store),
):
    """Reminder notification rows addressed to the caller."""
    rows = await store.list_notifications(viewer.user_id, status=status_filter, limit=limit, offset=offset)
    return [NotificationResponse.model_validate(r) for r in rows]
