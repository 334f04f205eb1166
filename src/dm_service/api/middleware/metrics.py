"""Request timing middleware."""
from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# probes are polled constantly; keep them out of INFO logs
QUIET_PATHS = frozenset({"/healthz", "/readyz"})


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and latency; expose latency as Server-Timing."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["Server-Timing"] = f"app;dur={elapsed_ms:.1f}"
        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(
            level,
            "%s %s %s %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
