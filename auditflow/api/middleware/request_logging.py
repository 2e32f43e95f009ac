"""Request logging middleware for FastAPI.

Writes one log line per API request with:
- Short request ID (also returned as ``X-Request-ID``)
- HTTP method, path and response status
- Duration
- Authenticated user ID when the route resolved one
- Client IP address
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# Paths that should not be logged (health checks, docs)
EXCLUDED_PATHS = {
    "/health",
    "/health/live",
    "/health/ready",
    "/health/detailed",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
}


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def log_level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request outside ``EXCLUDED_PATHS``."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        duration_ms = int((time.time() - start_time) * 1000)
        user = getattr(request.state, "user", None)
        user_id = getattr(user, "id", None)

        logger.log(
            log_level_for(response.status_code),
            f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} "
            f"{duration_ms}ms user={user_id or '-'} ip={get_client_ip(request)}",
        )
        response.headers["X-Request-ID"] = request_id
        return response
