"""Follow-up list, lifecycle actions and stats."""

import uuid
from datetime import datetime, time, timedelta, timezone

from fastapi import APIRouter, Depends, Query

from followups.config import Settings, get_settings
from followups.dependencies import get_actions, get_store, get_viewer
from followups.schemas.follow_up import (
    CompleteRequest,
    FollowUpCreate,
    FollowUpList,
    FollowUpResponse,
    FollowUpStatsResponse,
    RescheduleRequest,
    SendReminderResponse,
    UserFollowUpStatsResponse,
)
from followups.services.follow_up_actions import FollowUpActions
from followups.services.follow_up_stats import compute_follow_up_stats
from followups.services.follow_up_status import FollowUpStatus, classify
from followups.services.follow_up_store import FollowUpStore
from followups.services.records import Viewer

router = APIRouter(prefix="/follow-ups", tags=["follow-ups"])


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.get("", response_model=FollowUpList)
async def list_follow_ups(
    status_filter: FollowUpStatus | None = Query(None, alias="status"),
    client_id: uuid.UUID | None = Query(None),
    viewer: Viewer = Depends(get_viewer),
    store: FollowUpStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """All follow-ups visible to the caller, with derived status and time left."""
    now = _now()
    records = await store.list_for_viewer(viewer, client_id=client_id)
    if status_filter is not None:
        records = [r for r in records if classify(r.due_at, r.is_completed, now) == status_filter]
    items = [FollowUpResponse.from_record(r, now, settings.display_tz) for r in records]
    return FollowUpList(follow_ups=items, total=len(items))


@router.get("/upcoming", response_model=FollowUpList)
async def list_upcoming(
    limit: int = Query(2, ge=1, le=50),
    viewer: Viewer = Depends(get_viewer),
    store: FollowUpStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Next follow-ups due in the future, soonest first."""
    now = _now()
    records = await store.list_for_viewer(viewer, completed=False, due_after=now, limit=limit)
    items = [FollowUpResponse.from_record(r, now, settings.display_tz) for r in records]
    return FollowUpList(follow_ups=items, total=len(items))


@router.get("/due", response_model=FollowUpList)
async def list_due(
    viewer: Viewer = Depends(get_viewer),
    store: FollowUpStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """The caller's own open follow-ups due today or earlier (display zone)."""
    now = _now()
    tz = settings.display_tz
    end_of_today = datetime.combine(now.astimezone(tz).date() + timedelta(days=1), time.min, tzinfo=tz)
    own = Viewer(user_id=viewer.user_id, is_admin=False)
    records = await store.list_for_viewer(
        own, completed=False, due_before=end_of_today.astimezone(timezone.utc) - timedelta(microseconds=1)
    )
    items = [FollowUpResponse.from_record(r, now, tz) for r in records]
    return FollowUpList(follow_ups=items, total=len(items))


@router.get("/stats", response_model=FollowUpStatsResponse)
async def follow_up_stats(
    viewer: Viewer = Depends(get_viewer),
    store: FollowUpStore = Depends(get_store),
):
    """Completed, missed and rescheduled counts per user."""
    stats = await compute_follow_up_stats(store, viewer, _now())
    users = [UserFollowUpStatsResponse.model_validate(s) for s in stats]
    return FollowUpStatsResponse(
        users=users,
        total_completed=sum(s.completed for s in stats),
        total_missed=sum(s.missed for s in stats),
        total_rescheduled=sum(s.rescheduled for s in stats),
    )


@router.post("", response_model=FollowUpResponse, status_code=201)
async def create_follow_up(
    body: FollowUpCreate,
    actions: FollowUpActions = Depends(get_actions),
    settings: Settings = Depends(get_settings),
):
    now = _now()
    record = await actions.create(
        client_id=body.client_id,
        due_at=body.due_at,
        note=body.note,
        assigned_user_id=body.assigned_user_id,
        now=now,
    )
    return FollowUpResponse.from_record(record, now, settings.display_tz)


@router.post("/{follow_up_id}/complete", response_model=FollowUpResponse)
async def complete_follow_up(
    follow_up_id: uuid.UUID,
    body: CompleteRequest,
    actions: FollowUpActions = Depends(get_actions),
    settings: Settings = Depends(get_settings),
):
    record = await actions.complete(follow_up_id, body.reason)
    return FollowUpResponse.from_record(record, _now(), settings.display_tz)


@router.post("/{follow_up_id}/reschedule", response_model=FollowUpResponse)
async def reschedule_follow_up(
    follow_up_id: uuid.UUID,
    body: RescheduleRequest,
    actions: FollowUpActions = Depends(get_actions),
    settings: Settings = Depends(get_settings),
):
    now = _now()
    record = await actions.reschedule(follow_up_id, body.due_at, body.reason, now=now)
    return FollowUpResponse.from_record(record, now, settings.display_tz)


@router.delete("/{follow_up_id}", status_code=204)
async def delete_follow_up(
    follow_up_id: uuid.UUID,
    reason: str = Query("", max_length=2000),
    confirm: bool = Query(False),
    actions: FollowUpActions = Depends(get_actions),
):
    """Permanently delete a follow-up (requires ``confirm=true`` and a reason)."""
    await actions.delete(follow_up_id, reason, confirmed=confirm)


@router.post("/{follow_up_id}/send-reminder", response_model=SendReminderResponse, status_code=202)
async def send_reminder(
    follow_up_id: uuid.UUID,
    actions: FollowUpActions = Depends(get_actions),
):
    """Queue a pending reminder notification for the assignee."""
    message = await actions.send_reminder(follow_up_id)
    return SendReminderResponse(message=message)
