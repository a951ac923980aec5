"""Error handling: domain errors become user-facing responses, the rest a safe 500."""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from followups.errors import FollowUpError, FollowUpNotFoundError, InvalidActionError, PersistenceError
from followups.middleware.logging import redact_pii

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[FollowUpError], int] = {
    InvalidActionError: 422,
    FollowUpNotFoundError: 404,
    PersistenceError: 503,
}


async def follow_up_error_handler(request: Request, exc: FollowUpError) -> JSONResponse:
    status_code = next(
        (code for cls, code in STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        400,
    )
    if isinstance(exc, PersistenceError):
        logger.warning("Store failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error_type": type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FollowUpError, follow_up_error_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch unhandled exceptions and return safe error responses."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            error_msg = redact_pii(str(exc))
            tb = traceback.format_exc()

            logger.error(
                "Unhandled exception: %s\n%s",
                error_msg,
                redact_pii(tb),
            )

            return JSONResponse(
                status_code=500,
                content={
                    "detail": "An internal error occurred. Please try again later.",
                    "error_type": type(exc).__name__,
                },
            )
