"""Reminder polling, acknowledgment and notification schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from followups.models.follow_up_notification import NotificationStatus
from followups.schemas.follow_up import FollowUpResponse


class DueSoonAlertResponse(BaseModel):
    follow_up_id: uuid.UUID
    threshold_minutes: int
    client_name: str
    due_at: datetime
    message: str

    model_config = {"from_attributes": True}


class OverdueAlertResponse(BaseModel):
    follow_up_id: uuid.UUID
    client_name: str
    message: str

    model_config = {"from_attributes": True}


class ReminderPollResponse(BaseModel):
    session_id: str
    due_soon: list[DueSoonAlertResponse]
    overdue: list[OverdueAlertResponse]
    modal: FollowUpResponse | None = None
    pending_acknowledgments: int
    overdue_available: bool = True


class AcknowledgeResponse(BaseModel):
    status: str = "ok"
    follow_up_id: uuid.UUID
    message: str


class NotificationResponse(BaseModel):
    id: uuid.UUID
    follow_up_id: uuid.UUID
    user_id: uuid.UUID
    message: str
    sent_by: uuid.UUID | None = None
    status: NotificationStatus
    created_at: datetime

    model_config = {"from_attributes": True}
