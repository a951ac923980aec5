"""FastAPI dependency injection."""

import uuid
from datetime import timedelta
from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from followups.config import Settings, get_settings
from followups.models.user import User, UserRole
from followups.services.follow_up_actions import FollowUpActions
from followups.services.follow_up_store import FollowUpStore
from followups.services.records import Viewer
from followups.services.reminder_session import ReminderSessionRegistry

# Database engine and session factory (initialized in lifespan)
_engine = None
_session_factory = None

security = HTTPBearer()


def get_session_factory(settings: Settings | None = None) -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        init_db(settings or get_settings())
    return _session_factory


async def get_db(settings: Settings = Depends(get_settings)) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session, committed when the request succeeds."""
    factory = get_session_factory(settings)
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
) -> uuid.UUID:
    """Extract and validate user_id from the auth service's JWT."""
    token = credentials.credentials
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
        user_id = payload.get("sub")
        if user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token payload",
            )
        return uuid.UUID(user_id)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from e
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token",
        ) from e


async def get_viewer(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Viewer:
    """Resolve the caller's role; admins see every follow-up."""
    result = await db.execute(select(User.role).where(User.id == user_id))
    role = result.scalar_one_or_none()
    if role is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return Viewer(user_id=user_id, is_admin=role == UserRole.ADMIN)


def get_store(db: AsyncSession = Depends(get_db)) -> FollowUpStore:
    return FollowUpStore(db)


def get_actions(
    store: FollowUpStore = Depends(get_store),
    viewer: Viewer = Depends(get_viewer),
    settings: Settings = Depends(get_settings),
) -> FollowUpActions:
    return FollowUpActions(
        store,
        viewer,
        min_lead=timedelta(seconds=settings.reschedule_min_lead_seconds),
        display_tz=settings.display_tz,
    )


@lru_cache
def get_session_registry() -> ReminderSessionRegistry:
    settings = get_settings()
    return ReminderSessionRegistry(
        thresholds_minutes=settings.due_soon_thresholds_minutes,
        idle_timeout=timedelta(seconds=settings.reminder_session_idle_seconds),
    )


def init_db(settings: Settings) -> tuple:
    """Initialize database engine and session factory. Called from lifespan."""
    global _engine, _session_factory
    _engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine, _session_factory


async def shutdown_db():
    """Dispose of the database engine. Called from lifespan."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
    _engine = None
    _session_factory = None
