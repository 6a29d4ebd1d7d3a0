"""
FastAPI middleware for request tracing and log correlation.

Every request gets a unique id, bound into structlog's context so that all log
lines emitted while handling it (including the reconciler's) carry the same
``request_id``.
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
    Middleware to add unique request IDs to each HTTP request.

    This middleware generates a UUID for each incoming request and:
    1. Stores it in request.state.request_id for access in route handlers
    2. Binds it to structlog contextvars for the duration of the request
    3. Adds it to the response as X-Request-ID header for client correlation

    Example:
        >>> from chef_bookings.middleware import RequestIDMiddleware
        >>> app.add_middleware(RequestIDMiddleware)
        >>>
        >>> # Response headers will include:
        >>> # X-Request-ID: 550e8400-e29b-41d4-a716-446655440000
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "path")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
