from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from crm_authz.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("crm_authz.request")

_GUARD_REJECTIONS = {401: "unauthenticated", 403: "forbidden"}


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one ``http.request`` record per request.

    Caller identity and correlation id are stamped by the logging record
    factory from the request context; guard rejections carry a ``decision``.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        method = request.method
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = _elapsed_ms(started)
            path = resolve_http_path_label(request)
            observe_http_request(method=method, path=path, status=500, duration=duration_ms / 1000)
            logger.error(
                "http.error",
                exc_info=True,
                extra={"method": method, "path": path, "status_code": 500, "duration_ms": duration_ms},
            )
            raise

        duration_ms = _elapsed_ms(started)
        path = resolve_http_path_label(request)
        observe_http_request(method=method, path=path, status=response.status_code, duration=duration_ms / 1000)

        extra = {"method": method, "path": path, "status_code": response.status_code, "duration_ms": duration_ms}
        rejection = _GUARD_REJECTIONS.get(response.status_code)
        if rejection is not None:
            extra["decision"] = rejection
        logger.info("http.request", extra=extra)
        return response
