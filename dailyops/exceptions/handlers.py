"""
Exception handlers for the application.
"""
import sqlite3
import logging

from fastapi.exceptions import RequestValidationError

from dailyops.adapters.http_framework import HTTPFrameworkAdapter
from dailyops.exceptions.errors import ServiceError
from dailyops.monitoring import get_request_id

# Initialize adapter
http_adapter = HTTPFrameworkAdapter()
Request = http_adapter.Request
JSONResponse = http_adapter.JSONResponse

logger = logging.getLogger(__name__)


def _error_body(request, request_id: str, error: str, detail: str, **extra) -> dict:
    body = {
        "error": error,
        "detail": detail,
        "path": request.url.path,
        "method": request.method,
        "request_id": request_id,
    }
    body.update(extra)
    return body


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """
    Handler for checklist service errors (not found, precondition failed,
    permission denied, template source unavailable, transient store errors).
    """
    request_id = get_request_id() or '-'
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__} in {request.method} {request.url.path}: {exc.message}",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "context": exc.context,
        }
    )
    extra = {"context": exc.context}
    if getattr(exc, "retryable", False):
        extra["retryable"] = True
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, request_id, type(exc).__name__, exc.message, **extra),
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Business-rule validation failures raised as ValueError by the services."""
    request_id = get_request_id() or '-'
    logger.warning(
        f"Rejected {request.method} {request.url.path}: {exc}",
        extra={"request_id": request_id, "path": request.url.path}
    )
    return JSONResponse(
        status_code=400,
        content=_error_body(request, request_id, "Invalid request", str(exc)),
    )


async def sqlite_exception_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
    """Handler for SQLite errors that escaped the database layer."""
    request_id = get_request_id() or '-'
    logger.error(
        f"Database error in {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "error_type": type(exc).__name__,
        }
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(
            request, request_id, "Database error",
            "A database operation failed. Please try again or contact support if the issue persists."
        ),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors with clear messages.
    """
    request_id = get_request_id() or '-'
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(f"{field}: {error['msg']}")

    logger.warning(
        f"Validation error in {request.method} {request.url.path}: {', '.join(errors)}",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "errors": errors,
        }
    )
    return JSONResponse(
        status_code=422,
        content=_error_body(
            request, request_id, "Validation error",
            "One or more fields failed validation", errors=errors
        ),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.
    """
    request_id = get_request_id() or '-'
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        }
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(
            request, request_id, "Internal server error",
            "An unexpected error occurred. Please try again or contact support if the issue persists."
        ),
    )


def setup_exception_handlers(app):
    """
    Register exception handlers with the FastAPI app.
    """
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(sqlite3.Error, sqlite_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
