"""Derived follow-up status and display helpers.

Everything here is pure: no I/O, no clock reads, never raises on bad input.
"""

import enum
import math
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from followups.services.records import FollowUpRecord

NO_DATE_SET = "No date set"
INVALID_DATE = "Invalid date"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M"


class FollowUpStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    EXPIRED = "expired"


def coerce_timestamp(value: object) -> datetime | None:
    """Return an aware UTC datetime, or None when the value is unset or unusable.

    Naive datetimes are taken to be UTC, matching how the store persists them.
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def classify(due_at: object, is_completed: bool, now: datetime) -> FollowUpStatus:
    """Derive the display status of a follow-up.

    Priority: completed, then unset due time (upcoming), then past due time
    (expired), otherwise upcoming.
    """
    if is_completed:
        return FollowUpStatus.COMPLETED
    due = coerce_timestamp(due_at)
    current = coerce_timestamp(now)
    if due is None or current is None:
        return FollowUpStatus.UPCOMING
    if due < current:
        return FollowUpStatus.EXPIRED
    return FollowUpStatus.UPCOMING


def format_remaining_time(due_at: object, now: datetime) -> str:
    """Coarse, floor-rounded time left: "Nm left", "Nh left" or "Nd left".

    Past due times clamp to "0m left".
    """
    if due_at is None:
        return NO_DATE_SET
    due = coerce_timestamp(due_at)
    current = coerce_timestamp(now)
    if due is None or current is None:
        return INVALID_DATE

    diff = due - current
    if diff <= timedelta(0):
        return "0m left"
    minutes = math.floor(diff / timedelta(minutes=1))
    if minutes < 60:
        return f"{minutes}m left"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h left"
    return f"{hours // 24}d left"


def minutes_until(due_at: datetime, now: datetime) -> int:
    """Whole minutes until due, floored (negative once overdue)."""
    return math.floor((due_at - now) / timedelta(minutes=1))


def display_note(record: FollowUpRecord) -> str:
    """The action reason supersedes the original note once present."""
    return record.action_reason or record.note or ""


def to_display_time(due_at: object, tz: ZoneInfo) -> str:
    due = coerce_timestamp(due_at)
    if due is None:
        return ""
    return due.astimezone(tz).strftime(DISPLAY_FORMAT)


def normalize_due_at(value: datetime, tz: ZoneInfo) -> datetime:
    """Normalize a due time entered at the boundary to UTC.

    Naive input (a local date-time picker value) is read in the display zone.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)
