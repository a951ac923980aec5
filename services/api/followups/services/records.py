"""Immutable value objects the follow-up core operates on."""

import uuid
from dataclasses import dataclass
from datetime import datetime

from followups.models.follow_up import FollowUp


@dataclass(frozen=True)
class Viewer:
    """Identity context of the current session."""

    user_id: uuid.UUID
    is_admin: bool = False


@dataclass(frozen=True)
class FollowUpRecord:
    """A follow-up as read from the store.

    ``client_name`` and ``assignee_name`` are denormalized display values
    resolved by a join at the store boundary; they may be absent.
    """

    id: uuid.UUID
    client_id: uuid.UUID
    assigned_user_id: uuid.UUID
    due_at: datetime | None
    note: str | None = None
    action_reason: str | None = None
    is_completed: bool = False
    created_at: datetime | None = None
    client_name: str | None = None
    assignee_name: str | None = None

    @classmethod
    def from_row(
        cls,
        row: FollowUp,
        client_name: str | None = None,
        assignee_name: str | None = None,
    ) -> "FollowUpRecord":
        return cls(
            id=row.id,
            client_id=row.client_id,
            assigned_user_id=row.assigned_user_id,
            due_at=row.due_at,
            note=row.note,
            action_reason=row.action_reason,
            is_completed=row.is_completed,
            created_at=row.created_at,
            client_name=client_name,
            assignee_name=assignee_name,
        )

    @property
    def client_label(self) -> str:
        return self.client_name or "Unknown"
