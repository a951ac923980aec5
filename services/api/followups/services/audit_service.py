"""Audit trail of follow-up lifecycle actions.

Rescheduled counts in the stats view are read back from these entries, so the
action names are part of the stored data.
"""

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from followups.models.audit_log import AuditLog

ENTITY_TYPE = "follow_up"

FOLLOW_UP_CREATED = "follow_up.created"
FOLLOW_UP_COMPLETED = "follow_up.completed"
FOLLOW_UP_RESCHEDULED = "follow_up.rescheduled"
FOLLOW_UP_DELETED = "follow_up.deleted"
FOLLOW_UP_REMINDER_SENT = "follow_up.reminder_sent"

FOLLOW_UP_ACTIONS = frozenset(
    {
        FOLLOW_UP_CREATED,
        FOLLOW_UP_COMPLETED,
        FOLLOW_UP_RESCHEDULED,
        FOLLOW_UP_DELETED,
        FOLLOW_UP_REMINDER_SENT,
    }
)


async def record_follow_up_action(
    db: AsyncSession,
    actor_id: uuid.UUID,
    action: str,
    follow_up_id: uuid.UUID,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    """Add an entry for ``action`` by ``actor_id`` and flush it.

    The follow-up id is stored as plain text so the entry outlives a delete.
    """
    if action not in FOLLOW_UP_ACTIONS:
        raise ValueError(f"Unknown follow-up audit action: {action}")
    entry = AuditLog(
        user_id=actor_id,
        action=action,
        entity_type=ENTITY_TYPE,
        entity_id=str(follow_up_id),
        extra_data=metadata,
    )
    db.add(entry)
    await db.flush()
    return entry
