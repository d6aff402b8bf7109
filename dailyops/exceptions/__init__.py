"""
Exceptions and their HTTP mapping.
"""
from dailyops.exceptions.errors import (
    ServiceError,
    NotFoundError,
    InstanceNotFoundError,
    DayCompletionNotFoundError,
    PreconditionFailedError,
    PermissionDeniedError,
    TemplateSourceUnavailableError,
    TransientStoreError,
    to_http_exception,
)

__all__ = [
    "ServiceError",
    "NotFoundError",
    "InstanceNotFoundError",
    "DayCompletionNotFoundError",
    "PreconditionFailedError",
    "PermissionDeniedError",
    "TemplateSourceUnavailableError",
    "TransientStoreError",
    "to_http_exception",
]
