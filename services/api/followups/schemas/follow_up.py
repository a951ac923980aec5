"""Request/response schemas for follow-up endpoints."""

import uuid
from datetime import datetime
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from followups.services.follow_up_status import (
    FollowUpStatus,
    classify,
    display_note,
    format_remaining_time,
    to_display_time,
)
from followups.services.records import FollowUpRecord


class FollowUpCreate(BaseModel):
    client_id: uuid.UUID
    due_at: datetime
    note: str | None = Field(None, max_length=5000)
    assigned_user_id: uuid.UUID | None = None


# Reasons are validated by the action handlers so that blank input is rejected
# before any store call, with the same message the UI shows.
class CompleteRequest(BaseModel):
    reason: str = Field("", max_length=2000)


class RescheduleRequest(BaseModel):
    due_at: datetime | None = None
    reason: str = Field("", max_length=2000)


class FollowUpResponse(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    client_name: str | None = None
    assigned_user_id: uuid.UUID
    assignee_name: str | None = None
    due_at: datetime | None = None
    due_at_local: str
    note: str | None = None
    action_reason: str | None = None
    display_note: str
    is_completed: bool
    status: FollowUpStatus
    remaining: str
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, record: FollowUpRecord, now: datetime, tz: ZoneInfo) -> "FollowUpResponse":
        return cls(
            id=record.id,
            client_id=record.client_id,
            client_name=record.client_name,
            assigned_user_id=record.assigned_user_id,
            assignee_name=record.assignee_name,
            due_at=record.due_at,
            due_at_local=to_display_time(record.due_at, tz),
            note=record.note,
            action_reason=record.action_reason,
            display_note=display_note(record),
            is_completed=record.is_completed,
            status=classify(record.due_at, record.is_completed, now),
            remaining=format_remaining_time(record.due_at, now),
            created_at=record.created_at,
        )


class FollowUpList(BaseModel):
    follow_ups: list[FollowUpResponse]
    total: int


class SendReminderResponse(BaseModel):
    status: str = "pending"
    message: str


class UserFollowUpStatsResponse(BaseModel):
    user_id: uuid.UUID
    name: str | None = None
    completed: int
    missed: int
    rescheduled: int

    model_config = {"from_attributes": True}


class FollowUpStatsResponse(BaseModel):
    users: list[UserFollowUpStatsResponse]
    total_completed: int
    total_missed: int
    total_rescheduled: int
