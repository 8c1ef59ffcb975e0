"""
Per-request access log with a trace id echoed back in ``X-Trace-ID``.
"""
import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        trace_id = request.headers.get("X-Trace-ID") or uuid.uuid4().hex
        request.state.trace_id = trace_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            latency_ms = int((time.perf_counter() - start) * 1000)
            logger.exception("[%s] %s %s -> EXCEPTION after %dms", trace_id, request.method, request.url.path, latency_ms)
            raise

        latency_ms = int((time.perf_counter() - start) * 1000)
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(level, "[%s] %s %s -> %d (%dms)", trace_id, request.method, request.url.path, response.status_code, latency_ms)
        response.headers["X-Trace-ID"] = trace_id
        return response
