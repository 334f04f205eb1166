"""Per-request correlation id, echoed back and attached to log records."""
from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="-")

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, for the span of the request."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = correlation_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            correlation_id_ctx.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response


class CorrelationIdFilter(logging.Filter):
    """Expose the current request id to formatters as ``%(rid)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.rid = correlation_id_ctx.get()
        return True
