"""
Service exceptions for the checklist engine.

Every error carries a ``context`` dict (day, site_id, instance_id, ...) so the
HTTP layer and the logs can say exactly which day or instance was involved.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException


class ServiceError(Exception):
    """Base class for all checklist service errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.context = dict(context) if context else {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
        }
        if self.request_id:
            result["request_id"] = self.request_id
        if self.context:
            result["context"] = self.context
        if self.original_error is not None:
            result["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error),
            }
        return result


class NotFoundError(ServiceError):
    """A referenced instance, day or record does not exist. Not retryable."""

    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Any,
        message: Optional[str] = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.resource_type = resource_type
        self.resource_id = str(resource_id)
        ctx = dict(context) if context else {}
        ctx.update({"resource_type": resource_type, "resource_id": self.resource_id})
        super().__init__(
            message or f"{resource_type} with ID '{self.resource_id}' not found",
            request_id=request_id,
            context=ctx,
        )


class InstanceNotFoundError(NotFoundError):
    def __init__(self, instance_id: int, **kwargs):
        self.instance_id = instance_id
        super().__init__("TaskInstance", instance_id, **kwargs)


class DayCompletionNotFoundError(NotFoundError):
    def __init__(self, day: str, site_id: str, **kwargs):
        self.day = day
        self.site_id = site_id
        context = dict(kwargs.pop("context", None) or {})
        context.update({"day": day, "site_id": site_id})
        super().__init__(
            "DayCompletion",
            f"{site_id}/{day}",
            message=f"Day {day} is not marked as completed for site {site_id}",
            context=context,
            **kwargs,
        )


class PreconditionFailedError(ServiceError):
    """
    The day gate refused the transition (no tasks, or tasks still pending).
    Kept distinct from NotFoundError so callers can tell "not all tasks
    complete" from "day missing".
    """

    status_code = 409

    def __init__(
        self,
        message: str,
        day: Optional[str] = None,
        site_id: Optional[str] = None,
        total: Optional[int] = None,
        completed: Optional[int] = None,
        **kwargs,
    ):
        context = dict(kwargs.pop("context", None) or {})
        for key, value in (("day", day), ("site_id", site_id), ("total", total), ("completed", completed)):
            if value is not None:
                context[key] = value
        self.day = day
        self.site_id = site_id
        self.total = total
        self.completed = completed
        super().__init__(message, context=context, **kwargs)


class PermissionDeniedError(ServiceError):
    status_code = 403

    def __init__(self, message: str, role: Optional[str] = None, **kwargs):
        context = dict(kwargs.pop("context", None) or {})
        if role is not None:
            context["role"] = role
        self.role = role
        super().__init__(message, context=context, **kwargs)


class TemplateSourceUnavailableError(ServiceError):
    """Templates could not be fetched; generation fails closed."""

    status_code = 503

    def __init__(self, message: str, site_id: Optional[str] = None, day: Optional[str] = None, **kwargs):
        context = dict(kwargs.pop("context", None) or {})
        if site_id is not None:
            context["site_id"] = site_id
        if day is not None:
            context["day"] = day
        super().__init__(message, context=context, **kwargs)


class TransientStoreError(ServiceError):
    """
    Read or write against the store failed in a way that is safe to retry
    (locked database, I/O error). Retries of toggle/comment should carry an
    idempotency key so the audit trail is not appended twice.
    """

    status_code = 503
    retryable = True

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        context = dict(kwargs.pop("context", None) or {})
        if operation is not None:
            context["operation"] = operation
        self.operation = operation
        super().__init__(message, context=context, **kwargs)


def to_http_exception(
    exc: ServiceError,
    include_context: bool = True,
    default_status_code: Optional[int] = None,
) -> HTTPException:
    """Convert a ServiceError into a FastAPI HTTPException."""
    status_code = exc.status_code
    if type(exc).status_code == ServiceError.status_code and default_status_code is not None:
        status_code = default_status_code
    detail: Dict[str, Any] = {
        "error": type(exc).__name__,
        "message": exc.message,
    }
    if exc.request_id:
        detail["request_id"] = exc.request_id
    if include_context and exc.context:
        detail["context"] = exc.context
    if getattr(exc, "retryable", False):
        detail["retryable"] = True
    return HTTPException(status_code=status_code, detail=detail)
