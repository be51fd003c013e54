"""Maps engine errors to JSON error responses.

Every failure is scoped to its request: the body is always
``{"success": false, "error": "<message>"}``.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from nearhelp.core.errors import (
    CapacityExceeded,
    Closed,
    EngineError,
    MalformedRequest,
    NotFound,
    StorageFailure,
    ValidationError,
)

log = structlog.get_logger()

# Most specific first.
_STATUS_CODES: list[tuple[type[EngineError], int]] = [
    (NotFound, 404),
    (CapacityExceeded, 409),
    (Closed, 409),
    (MalformedRequest, 400),
    (ValidationError, 422),
    (StorageFailure, 503),
]


def status_for(exc: EngineError) -> int:
    for exc_type, status in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 500


async def _engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status = status_for(exc)
    if isinstance(exc, StorageFailure):
        from nearhelp.main import get_stats

        get_stats().record_storage_error()
        log.error("storage_failure", path=request.url.path, error=exc.message)
    else:
        log.info("request_failed", path=request.url.path, status=status, error=exc.message)
    return JSONResponse(status_code=status, content={"success": False, "error": exc.message})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("request_crashed", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "internal server error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, _engine_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
