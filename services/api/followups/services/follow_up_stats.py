"""Per-user follow-up outcome counts for the analytics view."""

import uuid
from dataclasses import dataclass
from datetime import datetime

from followups.services.audit_service import FOLLOW_UP_RESCHEDULED
from followups.services.follow_up_store import FollowUpStore
from followups.services.records import Viewer


@dataclass
class UserFollowUpStats:
    user_id: uuid.UUID
    name: str | None
    completed: int = 0
    missed: int = 0
    rescheduled: int = 0


async def compute_follow_up_stats(store: FollowUpStore, viewer: Viewer, now: datetime) -> list[UserFollowUpStats]:
    """Completed and missed (expired, still open) per assignee; rescheduled per acting user."""
    by_user: dict[uuid.UUID, UserFollowUpStats] = {}
    for user_id, name, completed, missed in await store.status_counts(viewer, now):
        by_user[user_id] = UserFollowUpStats(user_id=user_id, name=name, completed=completed, missed=missed)

    for user_id, count in (await store.action_counts(FOLLOW_UP_RESCHEDULED, viewer)).items():
        stats = by_user.setdefault(user_id, UserFollowUpStats(user_id=user_id, name=None))
        stats.rescheduled = count

    return sorted(by_user.values(), key=lambda s: (s.name or "", str(s.user_id)))
