"""
Domain error taxonomy for the booking and settlement engine.

Services raise these exceptions; the HTTP layer maps each class to a status
code through ``register_error_handlers``. Nothing here is retried
automatically: callers decide whether a failure is worth repeating.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class BookingError(Exception):
    """Base class for every error the engine raises on purpose."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed interval, past start, missing required field."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BookingError):
    """Unknown reservation, availability, transaction or user id."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BookingError):
    """Slot unavailable, duplicate resource, or a transition the state machine refuses."""

    status_code = status.HTTP_409_CONFLICT


class AuthorizationError(BookingError):
    """Actor is not a participant of the reservation or transaction."""

    status_code = status.HTTP_403_FORBIDDEN


class GatewayError(BookingError):
    """An external gateway (payments, video tokens) failed or is not configured."""

    status_code = status.HTTP_502_BAD_GATEWAY


async def _booking_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, BookingError)
    logger.info(
        "request_rejected",
        path=request.url.path,
        error_type=type(exc).__name__,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def register_error_handlers(app: FastAPI) -> None:
    """Map every ``BookingError`` subclass to its HTTP status."""
    app.add_exception_handler(BookingError, _booking_error_handler)
