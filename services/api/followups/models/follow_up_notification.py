"""Persisted reminder notification rows.

Rows are inserted as pending; delivery and status advancement belong to an
external consumer.
"""

import enum
import uuid

from sqlalchemy import Enum, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from followups.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class NotificationStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    READ = "read"


class FollowUpNotification(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    __tablename__ = "follow_up_notifications"

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
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sent_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(NotificationStatus, name="notification_status", values_callable=lambda e: [m.value for m in e]),
        default=NotificationStatus.PENDING,
        nullable=False,
    )

    follow_up: Mapped["FollowUp"] = relationship("FollowUp", back_populates="notifications")

    def __repr__(self) -> str:
        return f"<FollowUpNotification {self.id} status={self.status.value}>"
