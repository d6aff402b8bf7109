"""
Pydantic models for request/response validation.
"""
from .instance_models import FieldChange, AuditEntryResponse, CommentResponse, TaskInstanceResponse
from .request_models import (
    ToggleCompletionRequest,
    CommentCreate,
    CompleteDayRequest,
    CancelCompletionRequest,
)
from .day_models import (
    GenerationResponse,
    ProgressResponse,
    ServiceGroupResponse,
    DayCompletionRecord,
    DayCompletionResponse,
    DayOverviewResponse,
)

__all__ = [
    "FieldChange",
    "AuditEntryResponse",
    "CommentResponse",
    "TaskInstanceResponse",
    "ToggleCompletionRequest",
    "CommentCreate",
    "CompleteDayRequest",
    "CancelCompletionRequest",
    "GenerationResponse",
    "ProgressResponse",
    "ServiceGroupResponse",
    "DayCompletionRecord",
    "DayCompletionResponse",
    "DayOverviewResponse",
]
