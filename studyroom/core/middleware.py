import time
import logging
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from studyroom.core.logging_utils import error_tracker

logger = logging.getLogger(__name__)


def _client_ip(request: Request) -> str:
    """Client IP, honouring proxy headers"""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every HTTP request with a short request id
    """

    def __init__(self, app: ASGIApp, exclude_paths: list = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/health",
            "/docs",
            "/openapi.json",
            "/redoc",
        ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        request.state.request_id = request_id

        # Bodies are never logged: PIN checks carry secrets
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": _client_ip(request),
                "user_agent": request.headers.get("user-agent"),
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round(duration * 1000, 2),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            raise

        duration = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration * 1000, 2),
            },
        )

        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every response
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        return response


class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Warns about slow requests
    """

    def __init__(self, app: ASGIApp, slow_request_threshold: float = 1.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        if duration > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round(duration * 1000, 2),
                    "threshold_ms": self.slow_request_threshold * 1000,
                    "status_code": response.status_code,
                    "category": "performance",
                },
            )

        return response


class ErrorTrackingMiddleware(BaseHTTPMiddleware):
    """
    Feeds 5xx responses and unhandled exceptions into the error tracker
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except Exception as e:
            error_tracker.track_error(
                error_type=f"UNHANDLED_{type(e).__name__}",
                error_message=str(e),
                context={
                    "method": request.method,
                    "path": request.url.path,
                    "client_ip": _client_ip(request),
                },
            )
            raise

        if response.status_code >= 500:
            error_tracker.track_error(
                error_type=f"HTTP_{response.status_code}",
                error_message=f"HTTP {response.status_code} response",
                context={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                },
            )

        return response


def setup_middleware(app, config: dict = None):
    """
    Register middleware. Starlette applies them in reverse order of addition.
    """
    config = config or {}

    app.add_middleware(ErrorTrackingMiddleware)
    app.add_middleware(
        PerformanceMonitoringMiddleware,
        slow_request_threshold=config.get("slow_request_threshold", 1.0),
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RequestLoggingMiddleware,
        exclude_paths=config.get(
            "exclude_paths", ["/health", "/docs", "/openapi.json", "/redoc"]
        ),
    )

    logger.info("All middleware configured successfully")
