"""Tests for the follow-up store: scoping, row mapping and error wrapping."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from conftest import CLIENT_ID, SALES_USER_ID
from followups.errors import PersistenceError
from followups.models.follow_up import FollowUp
from followups.services import audit_service
from followups.services.follow_up_store import FollowUpStore, open_store


def _mock_db(rows=None, rowcount=1):
    db = MagicMock()
    result = MagicMock()
    result.all.return_value = rows or []
    result.rowcount = rowcount
    db.execute = AsyncMock(return_value=result)
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=None)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    db.begin_nested.return_value = savepoint
    return db


def _row(**overrides):
    fields = dict(
        id=uuid.uuid4(),
        client_id=CLIENT_ID,
        assigned_user_id=SALES_USER_ID,
        due_at=datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc),
        note="Intro call",
        action_reason=None,
        is_completed=False,
    )
    fields.update(overrides)
    return FollowUp(**fields)


def _sql(db) -> str:
    return str(db.execute.await_args.args[0])


class TestReads:
    @pytest.mark.asyncio
    async def test_rows_mapped_to_records(self, sales_viewer):
        row = _row()
        db = _mock_db(rows=[(row, "Acme", "Sam Sales")])

        records = await FollowUpStore(db).list_for_viewer(sales_viewer)

        assert len(records) == 1
        assert records[0].id == row.id
        assert records[0].client_name == "Acme"
        assert records[0].assignee_name == "Sam Sales"

    @pytest.mark.asyncio
    async def test_non_admin_scoped_to_assignee(self, sales_viewer):
        db = _mock_db()

        await FollowUpStore(db).list_for_viewer(sales_viewer)

        assert "WHERE follow_ups.assigned_user_id" in _sql(db)

    @pytest.mark.asyncio
    async def test_admin_sees_everything(self, admin_viewer):
        db = _mock_db()

        await FollowUpStore(db).list_for_viewer(admin_viewer)

        assert "WHERE" not in _sql(db)

    @pytest.mark.asyncio
    async def test_unset_due_times_ordered_last(self, admin_viewer):
        db = _mock_db()

        await FollowUpStore(db).list_for_viewer(admin_viewer)

        assert "NULLS LAST" in _sql(db)

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, sales_viewer):
        db = _mock_db(rows=[])
        assert await FollowUpStore(db).get(uuid.uuid4(), sales_viewer) is None

    @pytest.mark.asyncio
    async def test_overdue_query_excludes_acknowledged(self, sales_viewer):
        db = _mock_db()

        await FollowUpStore(db).list_unacknowledged_overdue(sales_viewer, datetime.now(timezone.utc))

        sql = _sql(db)
        assert "NOT" in sql and "EXISTS" in sql
        assert "follow_up_acknowledgments" in sql

    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self, sales_viewer):
        db = _mock_db()
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

        with pytest.raises(PersistenceError, match="Could not load follow-ups"):
            await FollowUpStore(db).list_for_viewer(sales_viewer)


class TestWrites:
    @pytest.mark.asyncio
    async def test_insert_runs_in_savepoint(self):
        db = _mock_db()

        await FollowUpStore(db).insert(
            client_id=CLIENT_ID,
            assigned_user_id=SALES_USER_ID,
            due_at=datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc),
            note=None,
        )

        db.begin_nested.assert_called_once()
        db.add.assert_called_once()
        added = db.add.call_args.args[0]
        assert added.is_completed is False
        assert added.client_id == CLIENT_ID

    @pytest.mark.asyncio
    async def test_write_failure_wrapped(self):
        db = _mock_db()
        db.flush.side_effect = SQLAlchemyError("constraint violated")

        with pytest.raises(PersistenceError, match="Failed to insert notification"):
            await FollowUpStore(db).insert_notification(
                follow_up_id=uuid.uuid4(), recipient_id=SALES_USER_ID, message="hi", sent_by=None
            )

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, sales_viewer):
        db = _mock_db()

        with pytest.raises(ValueError):
            await FollowUpStore(db).update(uuid.uuid4(), sales_viewer, client_id=CLIENT_ID)
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_reports_missing_row(self, sales_viewer):
        db = _mock_db(rowcount=0)
        assert await FollowUpStore(db).update(uuid.uuid4(), sales_viewer, is_completed=True) is False

    @pytest.mark.asyncio
    async def test_delete_reports_hit(self, admin_viewer):
        db = _mock_db(rowcount=1)
        assert await FollowUpStore(db).delete(uuid.uuid4(), admin_viewer) is True

    @pytest.mark.asyncio
    async def test_acknowledge_inserts_row(self):
        db = _mock_db()
        db.execute.return_value.scalar_one_or_none.return_value = uuid.uuid4()

        assert await FollowUpStore(db).acknowledge(uuid.uuid4(), SALES_USER_ID) is True

        db.begin_nested.assert_called_once()
        sql = _sql(db)
        assert "INSERT INTO follow_up_acknowledgments" in sql
        assert "ON CONFLICT" in sql and "DO NOTHING" in sql

    @pytest.mark.asyncio
    async def test_acknowledge_conflict_is_not_an_error(self):
        db = _mock_db()
        # A concurrent request already inserted the row; nothing is returned
        db.execute.return_value.scalar_one_or_none.return_value = None

        assert await FollowUpStore(db).acknowledge(uuid.uuid4(), SALES_USER_ID) is False
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_commit_failure_wrapped_and_rolled_back(self):
        db = _mock_db()
        db.commit.side_effect = OperationalError("COMMIT", {}, Exception("connection reset"))

        with pytest.raises(PersistenceError, match="Failed to save changes"):
            await FollowUpStore(db).commit()
        db.rollback.assert_awaited_once()


class TestAudit:
    @pytest.mark.asyncio
    async def test_write_audit_records_follow_up_entry(self):
        db = _mock_db()
        follow_up_id = uuid.uuid4()

        await FollowUpStore(db).write_audit(
            SALES_USER_ID, audit_service.FOLLOW_UP_RESCHEDULED, follow_up_id, {"reason": "later"}
        )

        entry = db.add.call_args.args[0]
        assert entry.action == "follow_up.rescheduled"
        assert entry.entity_type == "follow_up"
        assert entry.entity_id == str(follow_up_id)
        assert entry.extra_data == {"reason": "later"}
        db.begin_nested.assert_called_once()

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self):
        db = _mock_db()

        with pytest.raises(ValueError):
            await FollowUpStore(db).write_audit(SALES_USER_ID, "follow_up.archived", uuid.uuid4())
        db.add.assert_not_called()


class TestOpenStore:
    @pytest.mark.asyncio
    async def test_commits_on_success(self):
        db = _mock_db()
        factory = MagicMock(return_value=AsyncMock(
            __aenter__=AsyncMock(return_value=db),
            __aexit__=AsyncMock(return_value=False),
        ))

        async with open_store(factory) as store:
            assert isinstance(store, FollowUpStore)

        db.commit.assert_awaited_once()
        db.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self):
        db = _mock_db()
        factory = MagicMock(return_value=AsyncMock(
            __aenter__=AsyncMock(return_value=db),
            __aexit__=AsyncMock(return_value=False),
        ))

        with pytest.raises(PersistenceError):
            async with open_store(factory):
                raise PersistenceError("Failed to update follow-up")

        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_commit_failure_raises_persistence_error(self):
        db = _mock_db()
        db.commit.side_effect = OperationalError("COMMIT", {}, Exception("connection reset"))
        factory = MagicMock(return_value=AsyncMock(
            __aenter__=AsyncMock(return_value=db),
            __aexit__=AsyncMock(return_value=False),
        ))

        with pytest.raises(PersistenceError):
            async with open_store(factory):
                pass

        db.rollback.assert_awaited_once()
