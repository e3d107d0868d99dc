"""
Request ID Middleware for tracing.

This middleware:
1. Uses the incoming X-Request-ID header or generates a UUID4
2. Sets the request_id in contextvars for logging
3. Adds X-Request-ID to response headers
4. Logs request completion with timing, and writes the access log line

Usage in main.py:
    from src.middleware.request_id_middleware import RequestIdMiddleware
    app.add_middleware(RequestIdMiddleware)  # Add LAST so it runs FIRST
"""

import logging
import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from src.utils.structured_logger import (
    set_request_id,
    clear_request_id,
    clear_user_id,
    ACCESS_LOGGER_NAME,
)

logger = logging.getLogger(__name__)
access_logger = logging.getLogger(ACCESS_LOGGER_NAME)


def get_client_ip(request: Request) -> str:
    """Extract client IP, honouring proxy headers."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate request IDs.

    Should be added LAST in the middleware chain so it runs FIRST.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        set_request_id(request_id)
        request.state.request_id = request_id

        start_time = time.perf_counter()
        try:
            response = await call_next(request)

            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            response.headers["X-Request-ID"] = request_id

            details = {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "client_ip": get_client_ip(request),
                "user_agent": request.headers.get("User-Agent", "")[:100],
            }
            user = getattr(request.state, "user", None)
            if user is not None:
                details["user_id"] = user.user_id

            logger.info("Request completed", extra=details)
            if access_logger.handlers:
                access_logger.info("access", extra=details)

            return response

        except Exception as e:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error(
                "Request failed with exception",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                    "error_type": type(e).__name__,
                },
                exc_info=True
            )
            raise

        finally:
            clear_request_id()
            clear_user_id()
