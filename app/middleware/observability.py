from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.metrics import service_metrics
from app.core.request_context import clear_request_context, set_request_context
from app.services.claim_cookies import SESSION_ID_COOKIE

logger = logging.getLogger(__name__)
REQUEST_ID_HEADER = "X-Request-ID"

UNMATCHED_ROUTE = "<unmatched>"


def _route_template(request: Request) -> str:
    # "/api/admin/coupons/{coupon_id}" rather than one entry per coupon id.
    # Paths that match no route share one key.
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Binds request/session ids to the logging context, times the request and counts it."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_request_context(request_id=request_id, session_id=request.cookies.get(SESSION_ID_COOKIE))

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            route = _route_template(request)
            service_metrics.observe(
                route=route,
                method=request.method,
                status_code=status_code,
                duration_ms=duration_ms,
            )
            logger.info(
                "request completed",
                extra={
                    "endpoint": route,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )
            clear_request_context()
