from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from crm_authz.context import bind_request_context, reset_request_context
from crm_authz.otel import annotate_request_span


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the request context that authentication, decisions and logs share.

    The correlation id is echoed as both ``x-correlation-id`` and
    ``x-request-id``, including on 401/403 responses raised by guards.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        token = bind_request_context(correlation_id)
        annotate_request_span(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_context(token)

        response.headers["x-correlation-id"] = correlation_id
        response.headers["x-request-id"] = correlation_id
        return response
