"""
Centralized FastAPI exception handlers
"""

import json
import logging
import re
import traceback
from typing import Union
from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    TimeoutError,
    DisconnectionError,
)
from asyncpg.exceptions import (
    PostgresError,
    ConnectionFailureError,
    ConnectionDoesNotExistError,
    TooManyConnectionsError,
)
from tenacity import RetryError

from studyroom.core.config import DEBUG
from studyroom.core.exceptions import (
    BaseAppException,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseTimeoutError,
    DatabaseIntegrityError,
)

logger = logging.getLogger(__name__)


def _error_body(request: Request, error: str, message: str, details: dict = None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details or {},
        "path": request.url.path,
    }


async def app_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    """Application exceptions"""

    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"App exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.error_code, exc.message, exc.details),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Plain HTTP exceptions"""

    logger.warning(
        f"HTTP exception: {exc.status_code} - {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "HTTP_ERROR", str(exc.detail)),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Request body / query validation failures"""

    formatted_errors = []
    for error in exc.errors():
        location = " -> ".join(str(loc) for loc in error.get("loc", []))

        input_value = error.get("input")
        safe_input = None
        if input_value is not None:
            try:
                json.dumps(input_value)
                safe_input = input_value
            except (TypeError, ValueError):
                safe_input = str(input_value)

        # never echo a submitted PIN back
        if location.endswith("pin"):
            safe_input = None

        formatted_errors.append(
            {
                "field": location,
                "message": error.get("msg", "Validation error"),
                "type": error.get("type", "value_error"),
                "input": safe_input,
            }
        )

    logger.warning(
        f"Validation error: {len(formatted_errors)} field(s)",
        extra={
            "errors": formatted_errors,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            request,
            "VALIDATION_ERROR",
            f"Validation failed for {len(formatted_errors)} field(s)",
            {"fields": formatted_errors},
        ),
    )


async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """SQLAlchemy errors"""

    if isinstance(exc, IntegrityError):
        constraint = "unknown"
        if exc.orig is not None and getattr(exc.orig, "constraint_name", None):
            constraint = exc.orig.constraint_name
        else:
            match = re.search(r'constraint "([^"]+)"', str(exc.orig))
            if match:
                constraint = match.group(1)

        app_exc = DatabaseIntegrityError(constraint)

    elif isinstance(exc, (OperationalError, DisconnectionError)):
        app_exc = DatabaseConnectionError("Database connection lost")

    elif isinstance(exc, TimeoutError):
        app_exc = DatabaseTimeoutError("database_operation", 30)

    else:
        app_exc = DatabaseError("Database operation failed")

    logger.error(
        f"Database exception: {type(exc).__name__} - {str(exc)}",
        extra={
            "exception_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
    )

    return await app_exception_handler(request, app_exc)


async def postgres_exception_handler(
    request: Request, exc: PostgresError
) -> JSONResponse:
    """asyncpg errors that escaped SQLAlchemy wrapping"""

    if isinstance(exc, (ConnectionFailureError, ConnectionDoesNotExistError)):
        app_exc = DatabaseConnectionError("PostgreSQL connection failed")
    elif isinstance(exc, TooManyConnectionsError):
        app_exc = DatabaseConnectionError("Too many database connections")
    else:
        error_code = getattr(exc, "sqlstate", "unknown")
        app_exc = DatabaseError(
            "PostgreSQL error", details={"postgres_code": error_code}
        )

    logger.error(
        f"PostgreSQL exception: {type(exc).__name__} - {str(exc)}",
        extra={
            "exception_type": type(exc).__name__,
            "postgres_code": getattr(exc, "sqlstate", None),
            "path": request.url.path,
            "method": request.method,
        },
    )

    return await app_exception_handler(request, app_exc)


async def retry_exception_handler(request: Request, exc: RetryError) -> JSONResponse:
    """Retry exhaustion"""
    logger.error(
        f"Retry exhausted: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "last_attempt": str(exc.last_attempt) if exc.last_attempt else None,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=_error_body(
            request,
            "SERVICE_UNAVAILABLE",
            "Service is temporarily unavailable, please try again later",
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Everything else"""

    logger.error(
        f"Unhandled exception: {type(exc).__name__} - {str(exc)}",
        extra={
            "exception_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
    )

    details = {}
    if DEBUG:
        details = {
            "exception_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        }

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request, "INTERNAL_SERVER_ERROR", "An unexpected error occurred", details
        ),
    )


def setup_exception_handlers(app):
    """Register all exception handlers"""

    app.add_exception_handler(BaseAppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(PostgresError, postgres_exception_handler)
    app.add_exception_handler(RetryError, retry_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered successfully")
