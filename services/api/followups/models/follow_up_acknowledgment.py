"""Per-user acknowledgment of an overdue follow-up alert."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from followups.models.base import Base, UUIDPrimaryKeyMixin


class FollowUpAcknowledgment(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "follow_up_acknowledgments"
    __table_args__ = (UniqueConstraint("follow_up_id", "user_id"),)

    follow_up_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("follow_ups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    triggered_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    acknowledged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    follow_up: Mapped["FollowUp"] = relationship("FollowUp", back_populates="acknowledgments")

    def __repr__(self) -> str:
        return f"<FollowUpAcknowledgment follow_up={self.follow_up_id} user={self.user_id}>"
