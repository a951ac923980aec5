"""CRM follow-up database models."""

from followups.models.audit_log import AuditLog
from followups.models.client import Client
from followups.models.follow_up import FollowUp
from followups.models.follow_up_acknowledgment import FollowUpAcknowledgment
from followups.models.follow_up_notification import FollowUpNotification, NotificationStatus
from followups.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Client",
    "FollowUp",
    "FollowUpAcknowledgment",
    "FollowUpNotification",
    "NotificationStatus",
    "AuditLog",
]
