"""Request ID + access log middleware.

Learn: Every request gets an ID, either the caller's X-Request-ID (so a
gateway or client can correlate logs) or a fresh UUID. The ID is bound to
structlog's contextvars, so every log line emitted while handling the
request carries it, and it is echoed back in the response header.

Incoming IDs are only trusted when they are short and printable; anything
else is replaced, so a client cannot inject junk into the logs.

One "request.completed" line per request records status and latency.
An exception that escapes the handlers is logged here and answered with
the 500 envelope, so the response still carries its request id.
"""

import re
import time
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from taskhub.errors import error_response

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming: Optional[str]) -> str:
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID and log its outcome."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception("request.unhandled_error")
            response = error_response(500, "Internal server error")
        duration_ms = round((time.perf_counter() - started) * 1000, 1)

        logger.info(
            "request.completed",
            status=response.status_code,
            duration_ms=duration_ms,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
