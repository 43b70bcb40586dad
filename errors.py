"""Error taxonomy for the job tracker and its mapping to HTTP responses.

Each error carries the status code and the short, client-safe reason that is
returned as ``{"detail": ...}``. Anything more specific (SQL text, provider
messages) goes to the log only.
"""
from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)


class JobTrackerError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    reason: str = "Internal error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.reason)


class DuplicateUser(JobTrackerError):
    status_code = status.HTTP_400_BAD_REQUEST
    reason = "User exists"


class InvalidCredentials(JobTrackerError):
    status_code = status.HTTP_403_FORBIDDEN
    reason = "Invalid credentials"


class MissingToken(JobTrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    reason = "Missing token"


class InvalidToken(JobTrackerError):
    status_code = status.HTTP_403_FORBIDDEN
    reason = "Invalid token"


class ProviderError(JobTrackerError):
    status_code = status.HTTP_502_BAD_GATEWAY
    reason = "Suggestion provider failed"


class StoreError(JobTrackerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    reason = "Storage failure"


async def _job_tracker_error_handler(request: Request, exc: JobTrackerError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        error=type(exc).__name__,
        message=str(exc),
        path=request.url.path,
        status_code=exc.status_code,
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, MissingToken) else None
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.reason}, headers=headers
    )


async def _sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Unhandled database error", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=StoreError.status_code, content={"detail": StoreError.reason}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(JobTrackerError, _job_tracker_error_handler)
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)
