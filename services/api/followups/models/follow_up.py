"""Follow-up model: a scheduled obligation to contact a client by a due time."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from followups.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class FollowUp(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "follow_ups"

    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    action_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    # Relationships
    client: Mapped["Client"] = relationship("Client", back_populates="follow_ups")
    assignee: Mapped["User"] = relationship("User", back_populates="follow_ups")
    acknowledgments: Mapped[list["FollowUpAcknowledgment"]] = relationship(
        "FollowUpAcknowledgment", back_populates="follow_up", cascade="all, delete-orphan"
    )
    notifications: Mapped[list["FollowUpNotification"]] = relationship(
        "FollowUpNotification", back_populates="follow_up", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<FollowUp {self.id} due_at={self.due_at} completed={self.is_completed}>"
