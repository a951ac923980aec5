"""Seed script: populates dev DB with an admin, a sales rep, clients and follow-ups."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from followups.config import get_settings
from followups.models.client import Client
from followups.models.follow_up import FollowUp
from followups.models.user import User, UserRole

SEED_ADMIN_ID = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")
SEED_SALES_ID = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-ffffffffffff")
SEED_ADMIN_EMAIL = "admin@example.com"
SEED_SALES_EMAIL = "sales@example.com"


async def seed():
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as db:
        # Check if seed admin already exists
        result = await db.execute(text("SELECT id FROM users WHERE email = :email"), {"email": SEED_ADMIN_EMAIL})
        if result.scalar():
            print(f"Seed user {SEED_ADMIN_EMAIL} already exists, skipping.")
            await engine.dispose()
            return

        now = datetime.now(timezone.utc).replace(second=0, microsecond=0)

        admin = User(id=SEED_ADMIN_ID, email=SEED_ADMIN_EMAIL, name="Dev Admin", role=UserRole.ADMIN)
        sales = User(id=SEED_SALES_ID, email=SEED_SALES_EMAIL, name="Dev Sales", role=UserRole.SALES)
        db.add_all([admin, sales])
        await db.flush()

        acme = Client(client_name="Acme Corp", assigned_to=SEED_SALES_ID)
        globex = Client(client_name="Globex", assigned_to=SEED_SALES_ID)
        initech = Client(client_name="Initech", assigned_to=SEED_ADMIN_ID)
        db.add_all([acme, globex, initech])
        await db.flush()

        follow_ups = [
            # Crosses the 10- and 5-minute thresholds shortly after seeding
            FollowUp(
                client_id=acme.id,
                assigned_user_id=SEED_SALES_ID,
                due_at=now + timedelta(minutes=12),
                note="Confirm renewal pricing",
            ),
            FollowUp(
                client_id=globex.id,
                assigned_user_id=SEED_SALES_ID,
                due_at=now - timedelta(hours=2),
                note="Send revised proposal",
            ),
            FollowUp(
                client_id=globex.id,
                assigned_user_id=SEED_SALES_ID,
                due_at=now + timedelta(days=3),
                note=None,
            ),
            FollowUp(
                client_id=initech.id,
                assigned_user_id=SEED_ADMIN_ID,
                due_at=now - timedelta(days=1),
                note="Quarterly check-in",
                is_completed=True,
                action_reason="Call done, next review in Q3",
            ),
            FollowUp(
                client_id=initech.id,
                assigned_user_id=SEED_ADMIN_ID,
                due_at=None,
                note="Schedule onboarding call",
            ),
        ]
        db.add_all(follow_ups)

        await db.commit()
        print(f"Seeded: users={SEED_ADMIN_EMAIL},{SEED_SALES_EMAIL}, 3 clients, {len(follow_ups)} follow-ups")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
