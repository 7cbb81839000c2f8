"""
FastAPI middleware for request correlation.

Every request gets an ID that is echoed back in ``X-Request-ID`` and bound
into structlog's contextvars, so each log line emitted while handling the
request carries it.
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a request ID to each HTTP request.

    An ID supplied by an upstream proxy in ``X-Request-ID`` is reused;
    otherwise a new UUID4 is generated. The ID is stored on
    ``request.state.request_id`` and returned in the response headers.

    Example:
        >>> app.add_middleware(RequestIDMiddleware)
        >>> # Response headers will include:
        >>> # X-Request-ID: 550e8400-e29b-41d4-a716-446655440000
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
