"""Structured HTTP errors for the debug API."""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException

from workspace_manager.models import ErrorDetail, ErrorResponse

# Stable codes by HTTP status, used when a handler only has a status.
ERROR_CODES = {
    404: "NOT_FOUND",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    503: "UNAVAILABLE",
}


def error_body(code: str, message: str, details: dict | list | None = None) -> dict:
    return ErrorResponse(error=ErrorDetail(code=code, message=message, details=details)).model_dump()


def raise_http_error(
    code: str, message: str, status_code: int, details: dict | list | None = None
) -> NoReturn:
    """Raise an HTTPException whose detail is an ``ErrorResponse`` body."""
    raise HTTPException(status_code=status_code, detail=error_body(code, message, details))


def not_found(what: str, **details) -> NoReturn:
    raise_http_error("NOT_FOUND", f"{what} not found", 404, details or None)
