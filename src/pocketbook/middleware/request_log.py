"""Request logging middleware — one structured line per request.

Learn: Logs method, path, status, and duration once the response is
ready. The request id bound by RequestIdMiddleware rides along through
structlog's contextvars. Bodies and headers are never logged, so
passwords and tokens can't leak into logs.
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log every request with its outcome and latency."""

    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        response: Response = await call_next(request)
        logger.info(
            "http.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
            client=request.client.host if request.client else None,
        )
        return response
