"""Celery tasks for server-side follow-up reminders."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis
from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from followups.config import get_settings
from followups.errors import PersistenceError
from followups.services.due_soon_detector import DueSoonAlert, DueSoonDetector
from followups.services.follow_up_store import open_store
from followups.services.notification_ledger import RedisNotificationLedger

logger = logging.getLogger(__name__)


def _get_async_session() -> async_sessionmaker:
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    return async_sessionmaker(engine, expire_on_commit=False)


def _get_redis() -> aioredis.Redis:
    return aioredis.from_url(get_settings().redis_url, decode_responses=True)


@shared_task(name="followups.tasks.reminder_tasks.check_due_soon_follow_ups")
def check_due_soon_follow_ups() -> int:
    """Periodic task: fire due-soon notifications for every open follow-up.

    Runs without a viewer, so only assignees get notification rows. The Redis
    ledger is shared across workers and survives restarts until its TTL.
    Returns the number of alerts fired.
    """

    async def _check() -> int:
        settings = get_settings()
        session_factory = _get_async_session()
        redis = _get_redis()
        ledger = RedisNotificationLedger(redis, settings.ledger_key_ttl_seconds)
        detector = DueSoonDetector(ledger, settings.due_soon_thresholds_minutes)
        alerts: list[DueSoonAlert] = []
        try:
            async with open_store(session_factory) as store:
                now = datetime.now(timezone.utc)
                horizon = now + timedelta(minutes=max(detector.thresholds) + 1)
                follow_ups = await store.list_for_viewer(None, completed=False, due_after=now, due_before=horizon)
                alerts = await detector.check(store, follow_ups, now)
        except PersistenceError:
            # Rows were rolled back; let a later run fire these thresholds again
            await detector.release(alerts)
            raise
        finally:
            await redis.aclose()

        for alert in alerts:
            logger.info("Server reminder: %s", alert.message)
        return len(alerts)

    return asyncio.run(_check())
