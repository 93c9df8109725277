"""
Error values to HTTP responses.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from kungfu import Result, Ok, Error

from storefront.api._schemas import ErrorOut
from storefront.errors import (
    ConflictError,
    NotFoundError,
    StorefrontError,
    TransientError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def status_for(err: StorefrontError) -> int:
    match err:
        case ValidationError():
            return 422
        case NotFoundError():
            return 404
        case ConflictError():
            return 409
        case TransientError():
            return 503


class StorefrontHTTPError(Exception):
    """Carries an error value out of a route; the app's handler renders it."""

    def __init__(self, error: StorefrontError) -> None:
        super().__init__(error.message)
        self.error = error


def unwrap[T](result: Result[T, StorefrontError]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(err):
            raise StorefrontHTTPError(err)


async def handle_storefront_error(request: Request, exc: StorefrontHTTPError) -> JSONResponse:
    err = exc.error
    status = status_for(err)
    if status >= 500:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, status, err.message)
    field = err.field if isinstance(err, ValidationError) else None
    return JSONResponse(
        status_code=status,
        content=ErrorOut(detail=err.message, field=field).model_dump(),
    )


__all__ = ("status_for", "StorefrontHTTPError", "unwrap", "handle_storefront_error")
