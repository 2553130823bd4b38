"""Logging Redaction Middleware.

Security invariant: bearer tokens never appear in plain text in logs.

Session JWTs reach the service in two places: the Authorization header
(HTTP) and the access_token query parameter (live dashboard socket URL,
which also shows up in proxy access logs). This middleware stores redacted
copies of both on request.state; loggers use get_safe_headers() /
get_safe_query() instead of the raw request.

The original request is not modified; authentication still sees the
real header.

Usage:
    app.add_middleware(LoggingRedactionMiddleware)
"""

import logging
from typing import Callable, Mapping

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from qresolve_api.utils.sanitize import REDACTED, is_sensitive_key

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "apikey",
    "x-api-key",
}


def _redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def _redact_query(query: Mapping[str, str]) -> dict[str, str]:
    return {key: REDACTED if is_sensitive_key(key) else value for key, value in query.items()}


class LoggingRedactionMiddleware(BaseHTTPMiddleware):
    """Stores redacted headers and query parameters on request.state."""

    def __init__(self, app):
        super().__init__(app)
        logger.info(
            "LoggingRedactionMiddleware initialized",
            extra={
                "event": "middleware.logging_redaction.init",
                "redacted_headers": sorted(SENSITIVE_HEADERS),
            },
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.redacted_headers = _redact_headers(request.headers)
        request.state.redacted_query = _redact_query(request.query_params)
        return await call_next(request)


def get_safe_headers(request: Request) -> dict[str, str]:
    """Headers safe for logging (sensitive values redacted)."""
    redacted = getattr(request.state, "redacted_headers", None)
    if redacted is not None:
        return redacted
    return _redact_headers(request.headers)


def get_safe_query(request: Request) -> dict[str, str]:
    """Query parameters safe for logging (tokens redacted)."""
    redacted = getattr(request.state, "redacted_query", None)
    if redacted is not None:
        return redacted
    return _redact_query(request.query_params)
