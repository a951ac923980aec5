"""CRM follow-up service FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest, multiprocess
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

from followups.config import Settings, get_settings
from followups.dependencies import get_session_factory, get_session_registry, init_db, shutdown_db
from followups.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from followups.middleware.logging import LoggingMiddleware, setup_logging
from followups.routers import follow_ups, reminders
from followups.services.reminder_session import ReminderSessionRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(debug=settings.debug)
    logger.info(
        "Starting follow-up API (env=%s, server reminders %s)",
        settings.app_env,
        "on" if settings.server_reminders_enabled else "off",
    )
    init_db(settings)

    yield

    logger.info("Follow-up API shutting down with %d reminder sessions", len(get_session_registry()))
    await shutdown_db()


async def check_database(settings: Settings) -> str:
    try:
        async with get_session_factory(settings)() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Readiness: database unavailable: %s", e)
        return f"error: {type(e).__name__}"
    return "ok"


async def check_redis(settings: Settings) -> str:
    """Redis only backs the shared ledger of the server-side scan."""
    r = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        await r.ping()
    except Exception as e:
        logger.warning("Readiness: redis unavailable: %s", e)
        return f"error: {type(e).__name__}"
    finally:
        await r.aclose()
    return "ok"


def render_metrics() -> Response:
    # Gunicorn/uvicorn workers share counters through the multiprocess dir
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        data = generate_latest(registry)
    else:
        data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


def create_app(settings: Settings | None = None) -> FastAPI:
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="CRM Follow-ups",
        description="Client follow-up lifecycle, due-soon reminders and overdue acknowledgments",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_exception_handlers(app)

    # Outermost first
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", reminders.SESSION_HEADER],
        max_age=600,
    )

    app.include_router(follow_ups.router, prefix=settings.api_prefix)
    app.include_router(reminders.router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health(registry: ReminderSessionRegistry = Depends(get_session_registry)):
        return {"status": "ok", "reminder_sessions": len(registry)}

    @app.get("/health/ready")
    async def health_ready():
        checks = {"database": await check_database(settings)}
        if settings.server_reminders_enabled:
            checks["redis"] = await check_redis(settings)

        ready = all(v == "ok" for v in checks.values())
        return JSONResponse(
            status_code=200 if ready else 503,
            content={"status": "ready" if ready else "degraded", "checks": checks},
        )

    Instrumentator(excluded_handlers=["/health", "/health/ready", "/metrics"]).instrument(app)
    app.add_api_route("/metrics", render_metrics, methods=["GET"], include_in_schema=False)

    return app


app = create_app()
