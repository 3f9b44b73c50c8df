"""
API Middleware.

Gives every request a trace ID (taken from ``X-Request-ID`` when the
caller sends one), echoes it with the response, and writes one access
log line per request.
"""

from __future__ import annotations

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from lead_reasoner.logging_config import generate_trace_id, get_logger, trace_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Polled by load balancers; logged at debug only
_QUIET_PATHS = frozenset({"/health"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Trace ID propagation and access logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get(REQUEST_ID_HEADER) or generate_trace_id()
        token = trace_id_var.set(trace_id)
        start = time.monotonic()
        try:
            response = await call_next(request)
            elapsed_ms = round((time.monotonic() - start) * 1000, 1)

            response.headers[REQUEST_ID_HEADER] = trace_id
            response.headers["X-Response-Time-Ms"] = str(elapsed_ms)

            if request.url.path in _QUIET_PATHS:
                log = logger.debug
            elif response.status_code >= 500:
                log = logger.warning
            else:
                log = logger.info
            log(
                "api_request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                elapsed_ms=elapsed_ms,
            )
            return response
        finally:
            trace_id_var.reset(token)
