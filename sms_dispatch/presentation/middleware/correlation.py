"""
Request correlation for the dispatch API.

The first of ``CORRELATION_HEADERS`` the caller sends is reused, otherwise
a fresh id is minted. The id is bound to every log line of the request,
echoed back on the response, and travels with any campaign event the
request publishes.
"""

import re
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ...infrastructure.logging import Timer, set_correlation_id

logger = structlog.get_logger()

CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")

# Caller-supplied ids end up in logs and Kinesis events.
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_correlation_id(request: Request) -> str:
    for header in CORRELATION_HEADERS:
        value = request.headers.get(header)
        if value and _SAFE_ID.match(value):
            return value
    return uuid4().hex


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = resolve_correlation_id(request)
        set_correlation_id(correlation_id)

        with structlog.contextvars.bound_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        ):
            with Timer() as timer:
                response = await call_next(request)
            logger.info("Request handled", status_code=response.status_code, duration_ms=timer.duration_ms)

        for header in CORRELATION_HEADERS:
            response.headers[header] = correlation_id
        return response
