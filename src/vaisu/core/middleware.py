"""
HTTP middleware: request tracing and slow request detection.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from vaisu.core.logging import get_logger

logger = get_logger()

SLOW_REQUEST_SECONDS = 1.0


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request and response.

    Each request gets a uuid stored on `request.state.request_id` and echoed
    back in the `X-Request-ID` header together with `X-Process-Time`.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.perf_counter()

        log = logger.bind(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        log.info(
            "Request started",
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.perf_counter() - start_time
            log.bind(process_time=f"{process_time:.4f}s").error(f"Request failed: {e}")
            raise

        process_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        log.info(
            "Request completed",
            status_code=response.status_code,
            process_time=f"{process_time:.4f}s",
        )
        return response


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Warn about requests slower than `SLOW_REQUEST_SECONDS`."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        if process_time > SLOW_REQUEST_SECONDS:
            logger.warning(
                "Slow request detected",
                method=request.method,
                path=request.url.path,
                process_time=f"{process_time:.4f}s",
            )

        return response
