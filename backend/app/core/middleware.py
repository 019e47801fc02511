"""
Request middleware: correlation ids and per-request timing.

Every response carries ``X-Request-ID`` (echoed from the caller when
supplied) and ``X-Process-Time``. The id is bound for the duration of the
request, so alert and trigger log lines emitted by a route share it.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.logging_config import bind_request_id, reset_request_id

logger = logging.getLogger(__name__)

_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health/live")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id and log one line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        path = request.url.path
        token = bind_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - start) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{elapsed_ms:.1f}ms"
            if not path.startswith(_QUIET_PREFIXES):
                logger.log(
                    logging.WARNING if response.status_code >= 400 else logging.INFO,
                    "%s %s → %d (%.1fms)",
                    request.method, path, response.status_code, elapsed_ms,
                    extra={
                        "endpoint": path,
                        "status_code": response.status_code,
                        "duration_ms": round(elapsed_ms, 1),
                    },
                )
            return response
        except Exception:
            logger.exception(
                "%s %s failed", request.method, path,
                extra={"endpoint": path, "status_code": 500},
            )
            raise
        finally:
            reset_request_id(token)
