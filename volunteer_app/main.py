"""FastAPI entrypoint for the volunteer service ledger."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from volunteer_app.api.v1.api import api_router
from volunteer_app.core.config import settings
from volunteer_app.core.errors import (
    ChainBrokenError,
    IdempotencyConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    StateConflictError,
)
from volunteer_app.db import session as db_session
from volunteer_app.db.base import Base
from volunteer_app.db.transaction import is_retryable_tx_error

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[ServiceError], int] = {
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateConflictError: status.HTTP_409_CONFLICT,
    ChainBrokenError: status.HTTP_409_CONFLICT,
    IdempotencyConflictError: status.HTTP_409_CONFLICT,
}

app = FastAPI(title=settings.app_name)
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup() -> None:
    logger.info("Starting %s (env=%s)", settings.app_name, settings.app_env)
    Base.metadata.create_all(bind=db_session.engine)


def status_code_for(exc: ServiceError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status_code = status_code_for(exc)
    if isinstance(exc, ChainBrokenError):
        logger.error("Integrity check failed on %s %s: %s", request.method, request.url.path, exc.message)
    elif status_code >= status.HTTP_409_CONFLICT:
        logger.warning("Request rejected on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    if not is_retryable_tx_error(exc):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "database error", "code": "database_error"},
        )
    logger.warning("Transaction retries exhausted on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "database busy, retry later", "code": "transaction_conflict"},
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "app": settings.app_name}
