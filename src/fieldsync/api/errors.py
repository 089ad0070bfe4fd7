"""Exception handlers mapping fieldsync errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..exceptions import (
    AuthorizationError,
    FieldSyncError,
    InvalidTransition,
    TaskNotFound,
    TaskValidationError,
    WorkerNotFound,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type, int]] = [
    (TaskValidationError, 400),
    (AuthorizationError, 403),
    (TaskNotFound, 404),
    (WorkerNotFound, 404),
    (InvalidTransition, 409),
]


def status_for(exc: FieldSyncError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def _fieldsync_exception_handler(request: Request, exc: FieldSyncError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({status}): {exc}")
    return JSONResponse(status_code=status, content={"error": str(exc)})


def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Request validation failed", "details": jsonable_errors(exc)},
    )


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


def register_exception_handlers(app: FastAPI) -> None:
    """Register the handlers on the app. Call once after creating it."""
    app.add_exception_handler(FieldSyncError, _fieldsync_exception_handler)  # pyrefly: ignore
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # pyrefly: ignore
    app.add_exception_handler(Exception, _generic_exception_handler)
