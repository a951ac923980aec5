"""Terminal reminder watcher: polls due-soon and overdue follow-ups for one user.

Usage: python scripts/watch_follow_ups.py <user-email>

Prints due-soon alerts as they fire and the overdue modal whenever one is up.
Type the follow-up id shown in the modal and press enter to acknowledge it.
"""

import asyncio
import sys
import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from followups.config import get_settings
from followups.errors import FollowUpError
from followups.middleware.logging import setup_logging
from followups.models.user import User, UserRole
from followups.services.acknowledgment_flow import AcknowledgmentPrompt
from followups.services.due_soon_detector import DueSoonAlert
from followups.services.follow_up_status import to_display_time
from followups.services.follow_up_store import open_store
from followups.services.records import Viewer
from followups.services.reminder_session import ReminderSession
from followups.services.reminder_watcher import ReminderWatcher

logger = structlog.get_logger()


async def _load_viewer(session_factory: async_sessionmaker, email: str) -> Viewer | None:
    async with session_factory() as db:
        result = await db.execute(select(User.id, User.role).where(User.email == email))
        row = result.first()
    if row is None:
        return None
    return Viewer(user_id=row.id, is_admin=row.role == UserRole.ADMIN)


async def watch(email: str) -> None:
    settings = get_settings()
    setup_logging(debug=settings.debug)
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    viewer = await _load_viewer(session_factory, email)
    if viewer is None:
        print(f"No user with email {email}.")
        await engine.dispose()
        return

    tz = settings.display_tz
    shown: set[uuid.UUID] = set()

    def on_due_soon(alert: DueSoonAlert) -> None:
        print(f"[due soon] {alert.message} (due {to_display_time(alert.due_at, tz)})")

    def on_overdue(prompt: AcknowledgmentPrompt) -> None:
        modal = prompt.modal
        if modal.id in shown:
            return
        shown.add(modal.id)
        print(f"[overdue] Follow-up with {modal.client_label} is due now! ({len(prompt.pending)} pending)")
        print(f"          acknowledge with: {modal.id}")

    session = ReminderSession(viewer, thresholds_minutes=settings.due_soon_thresholds_minutes)
    watcher = ReminderWatcher(
        session,
        lambda: open_store(session_factory),
        due_soon_interval=settings.due_soon_poll_seconds,
        overdue_interval=settings.overdue_poll_seconds,
        on_due_soon=on_due_soon,
        on_overdue=on_overdue,
    )
    watcher.start()
    await logger.ainfo("watching_follow_ups", user_id=str(viewer.user_id), admin=viewer.is_admin)

    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            raw = line.strip()
            if not raw:
                continue
            try:
                follow_up_id = uuid.UUID(raw)
            except ValueError:
                print(f"Not a follow-up id: {raw}")
                continue
            try:
                async with open_store(session_factory) as store:
                    record = await session.acknowledge(store, follow_up_id)
            except FollowUpError as e:
                print(f"Could not acknowledge: {e.message}")
                continue
            shown.discard(follow_up_id)
            print(f"Acknowledged follow-up with {record.client_label}.")
            # Surface the next pending item right away
            await watcher.overdue_loop.run_once()
    finally:
        await watcher.stop()
        await engine.dispose()


def main() -> None:
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    try:
        asyncio.run(watch(sys.argv[1]))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
