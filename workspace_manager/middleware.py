"""Request logging middleware and error-envelope exception handlers."""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from workspace_manager.api.errors import ERROR_CODES, error_body

logger = structlog.get_logger(__name__)


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)


async def request_logging_middleware(request: Request, call_next):
    """Bind a request id for the duration of the request and log its outcome."""
    started = time.monotonic()
    with structlog.contextvars.bound_contextvars(
        request_id=uuid.uuid4().hex[:12],
        method=request.method,
        path=request.url.path,
    ):
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Request failed", duration_ms=_elapsed_ms(started))
            raise
        logger.debug(
            "Request completed",
            status_code=response.status_code,
            duration_ms=_elapsed_ms(started),
        )
    return response


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Pass ``ErrorResponse`` details through; wrap plain ones."""
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        body = exc.detail
    else:
        body = error_body(ERROR_CODES.get(exc.status_code, "INTERNAL_ERROR"), str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=error_body("VALIDATION_ERROR", "Invalid request", jsonable_encoder(exc.errors())),
    )
