"""Persistence adapter for follow-ups, acknowledgments and notification rows.

This is the only module that talks SQL for the reminder core. Every failure is
re-raised as ``PersistenceError``; every write runs in a SAVEPOINT so a failed
statement does not poison the surrounding session.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

from sqlalchemy import and_, delete, exists, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from followups.errors import PersistenceError
from followups.models.audit_log import AuditLog
from followups.models.client import Client
from followups.models.follow_up import FollowUp
from followups.models.follow_up_acknowledgment import FollowUpAcknowledgment
from followups.models.follow_up_notification import FollowUpNotification, NotificationStatus
from followups.models.user import User
from followups.services.audit_service import record_follow_up_action
from followups.services.records import FollowUpRecord, Viewer

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"due_at", "note", "action_reason", "is_completed"})


class FollowUpStore:
    """Store operations scoped by viewer.

    A ``None`` viewer means global scope (background workers); otherwise admins
    see every follow-up and other users only the ones assigned to them.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # -- helpers --

    @asynccontextmanager
    async def _reading(self, what: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("Failed to load %s: %s", what, e)
            raise PersistenceError(f"Could not load {what}") from e

    @asynccontextmanager
    async def _writing(self, what: str) -> AsyncIterator[None]:
        try:
            async with self._db.begin_nested():
                yield
        except SQLAlchemyError as e:
            logger.error("Failed to %s: %s", what, e)
            raise PersistenceError(f"Failed to {what}") from e

    @staticmethod
    def _scoped(query, viewer: Viewer | None):
        if viewer is not None and not viewer.is_admin:
            query = query.where(FollowUp.assigned_user_id == viewer.user_id)
        return query

    @staticmethod
    def _joined_select():
        return (
            select(FollowUp, Client.client_name, User.name)
            .join(Client, FollowUp.client_id == Client.id, isouter=True)
            .join(User, FollowUp.assigned_user_id == User.id, isouter=True)
        )

    async def _fetch_records(self, query, what: str) -> list[FollowUpRecord]:
        async with self._reading(what):
            result = await self._db.execute(query)
            rows = result.all()
        return [FollowUpRecord.from_row(fu, client_name, assignee_name) for fu, client_name, assignee_name in rows]

    async def commit(self) -> None:
        """Commit what this store has written so far; rolls back on failure."""
        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error("Failed to commit follow-up changes: %s", e)
            raise PersistenceError("Failed to save changes") from e

    # -- follow-up queries --

    async def list_for_viewer(
        self,
        viewer: Viewer | None,
        *,
        completed: bool | None = None,
        client_id: uuid.UUID | None = None,
        due_after: datetime | None = None,
        due_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[FollowUpRecord]:
        """Follow-ups visible to the viewer, ordered by due time (unset last)."""
        query = self._scoped(self._joined_select(), viewer)
        if completed is not None:
            query = query.where(FollowUp.is_completed.is_(completed))
        if client_id is not None:
            query = query.where(FollowUp.client_id == client_id)
        if due_after is not None:
            query = query.where(FollowUp.due_at > due_after)
        if due_before is not None:
            query = query.where(FollowUp.due_at <= due_before)
        query = query.order_by(FollowUp.due_at.asc().nulls_last(), FollowUp.created_at.asc())
        if limit is not None:
            query = query.limit(limit)
        return await self._fetch_records(query, "follow-ups")

    async def get(self, follow_up_id: uuid.UUID, viewer: Viewer | None) -> FollowUpRecord | None:
        query = self._scoped(self._joined_select().where(FollowUp.id == follow_up_id), viewer)
        records = await self._fetch_records(query, "follow-up")
        return records[0] if records else None

    async def list_unacknowledged_overdue(self, viewer: Viewer, now: datetime) -> list[FollowUpRecord]:
        """Open follow-ups due at or before ``now`` the viewer has not acknowledged."""
        acknowledged = exists().where(
            FollowUpAcknowledgment.follow_up_id == FollowUp.id,
            FollowUpAcknowledgment.user_id == viewer.user_id,
        )
        query = (
            self._scoped(self._joined_select(), viewer)
            .where(
                FollowUp.is_completed.is_(False),
                FollowUp.due_at <= now,
                ~acknowledged,
            )
            .order_by(FollowUp.due_at.asc())
        )
        return await self._fetch_records(query, "overdue follow-ups")

    async def get_client_name(self, client_id: uuid.UUID) -> str | None:
        async with self._reading("client"):
            result = await self._db.execute(select(Client.client_name).where(Client.id == client_id))
            return result.scalar_one_or_none()

    # -- follow-up mutations --

    async def insert(
        self,
        *,
        client_id: uuid.UUID,
        assigned_user_id: uuid.UUID,
        due_at: datetime,
        note: str | None,
    ) -> uuid.UUID:
        follow_up = FollowUp(
            client_id=client_id,
            assigned_user_id=assigned_user_id,
            due_at=due_at,
            note=note,
            is_completed=False,
        )
        async with self._writing("create follow-up"):
            self._db.add(follow_up)
            await self._db.flush()
        return follow_up.id

    async def update(self, follow_up_id: uuid.UUID, viewer: Viewer | None, **fields: Any) -> bool:
        """Apply a partial update. Returns False when no visible row matched."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update follow-up fields: {sorted(unknown)}")
        stmt = self._scoped(update(FollowUp).where(FollowUp.id == follow_up_id), viewer).values(**fields)
        async with self._writing("update follow-up"):
            result = await self._db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount > 0

    async def delete(self, follow_up_id: uuid.UUID, viewer: Viewer | None) -> bool:
        stmt = self._scoped(delete(FollowUp).where(FollowUp.id == follow_up_id), viewer)
        async with self._writing("delete follow-up"):
            result = await self._db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount > 0

    # -- acknowledgments --

    async def acknowledge(
        self,
        follow_up_id: uuid.UUID,
        user_id: uuid.UUID,
        triggered_by: uuid.UUID | None = None,
    ) -> bool:
        """Idempotent insert. Returns False when the user had already acknowledged."""
        stmt = (
            pg_insert(FollowUpAcknowledgment)
            .values(follow_up_id=follow_up_id, user_id=user_id, triggered_by=triggered_by)
            .on_conflict_do_nothing(index_elements=["follow_up_id", "user_id"])
            .returning(FollowUpAcknowledgment.id)
        )
        async with self._writing("record acknowledgment"):
            result = await self._db.execute(stmt)
            inserted = result.scalar_one_or_none()
        return inserted is not None

    # -- notifications --

    async def insert_notification(
        self,
        *,
        follow_up_id: uuid.UUID,
        recipient_id: uuid.UUID,
        message: str,
        sent_by: uuid.UUID | None,
    ) -> FollowUpNotification:
        notification = FollowUpNotification(
            follow_up_id=follow_up_id,
            user_id=recipient_id,
            message=message,
            sent_by=sent_by,
            status=NotificationStatus.PENDING,
        )
        async with self._writing("insert notification"):
            self._db.add(notification)
            await self._db.flush()
        return notification

    async def list_notifications(
        self,
        user_id: uuid.UUID,
        *,
        status: NotificationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[FollowUpNotification]:
        query = (
            select(FollowUpNotification)
            .where(FollowUpNotification.user_id == user_id)
            .order_by(FollowUpNotification.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        if status is not None:
            query = query.where(FollowUpNotification.status == status)
        async with self._reading("notifications"):
            result = await self._db.execute(query)
            return list(result.scalars().all())

    # -- audit & stats --

    async def write_audit(
        self,
        actor_id: uuid.UUID,
        action: str,
        follow_up_id: uuid.UUID,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        async with self._writing("write audit log"):
            await record_follow_up_action(self._db, actor_id, action, follow_up_id, metadata)

    async def status_counts(self, viewer: Viewer, now: datetime) -> list[tuple[uuid.UUID, str | None, int, int]]:
        """Per assignee: (user_id, name, completed, missed)."""
        completed = func.count().filter(FollowUp.is_completed.is_(True))
        missed = func.count().filter(and_(FollowUp.is_completed.is_(False), FollowUp.due_at < now))
        query = self._scoped(
            select(FollowUp.assigned_user_id, User.name, completed, missed)
            .join(User, FollowUp.assigned_user_id == User.id, isouter=True)
            .group_by(FollowUp.assigned_user_id, User.name),
            viewer,
        )
        async with self._reading("follow-up stats"):
            result = await self._db.execute(query)
            return [tuple(row) for row in result.all()]

    async def action_counts(self, action: str, viewer: Viewer) -> dict[uuid.UUID, int]:
        """Audit entries for ``action`` grouped by the acting user."""
        query = select(AuditLog.user_id, func.count()).where(AuditLog.action == action).group_by(AuditLog.user_id)
        if not viewer.is_admin:
            query = query.where(AuditLog.user_id == viewer.user_id)
        async with self._reading("audit stats"):
            result = await self._db.execute(query)
            return {user_id: count for user_id, count in result.all()}


@asynccontextmanager
async def open_store(session_factory: async_sessionmaker) -> AsyncIterator[FollowUpStore]:
    """Store over a fresh session, committed on success (for loops and workers)."""
    async with session_factory() as db:
        store = FollowUpStore(db)
        try:
            yield store
        except Exception:
            await db.rollback()
            raise
        await store.commit()
