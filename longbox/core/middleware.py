"""Request tracing middleware."""

from __future__ import annotations

import time

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from longbox.core.tracing import trace_context

logger = structlog.get_logger("longbox.middleware")

TRACE_HEADER = "X-Trace-ID"


class TracingMiddleware(BaseHTTPMiddleware):
    """Run each request under a trace id and echo it in the response.

    A client may supply its own id in ``X-Trace-ID`` to correlate calls.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        with trace_context(request.headers.get(TRACE_HEADER)) as trace_id:
            response = await call_next(request)
            response.headers[TRACE_HEADER] = trace_id
            logger.debug(
                "Request handled",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response
