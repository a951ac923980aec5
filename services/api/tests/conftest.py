"""Shared test fixtures."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from followups.services.follow_up_store import FollowUpStore
from followups.services.records import FollowUpRecord, Viewer

SALES_USER_ID = uuid.UUID("12345678-1234-1234-1234-123456789abc")
ADMIN_USER_ID = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")
CLIENT_ID = uuid.UUID("cccccccc-cccc-cccc-cccc-cccccccccccc")


def make_record(
    *,
    follow_up_id: uuid.UUID | None = None,
    assigned_user_id: uuid.UUID = SALES_USER_ID,
    due_at: datetime | None = None,
    note: str | None = "Call about renewal",
    action_reason: str | None = None,
    is_completed: bool = False,
    client_name: str | None = "Acme",
) -> FollowUpRecord:
    return FollowUpRecord(
        id=follow_up_id or uuid.uuid4(),
        client_id=CLIENT_ID,
        assigned_user_id=assigned_user_id,
        due_at=due_at,
        note=note,
        action_reason=action_reason,
        is_completed=is_completed,
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        client_name=client_name,
        assignee_name="Sam Sales",
    )


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def sales_viewer() -> Viewer:
    return Viewer(user_id=SALES_USER_ID, is_admin=False)


@pytest.fixture
def admin_viewer() -> Viewer:
    return Viewer(user_id=ADMIN_USER_ID, is_admin=True)


@pytest.fixture
def store() -> AsyncMock:
    """A FollowUpStore double; every method is an AsyncMock."""
    return AsyncMock(spec=FollowUpStore)
