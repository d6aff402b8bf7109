"""
Pydantic models for task instances, their comments and audit trail.
"""
from typing import Any, List, Optional
from pydantic import BaseModel, Field


class FieldChange(BaseModel):
    """One field transition recorded by an audit entry."""
    field: str
    old_value: Any = None
    new_value: Any = None


class AuditEntryResponse(BaseModel):
    """Audit entry response model."""
    id: int
    instance_id: int
    action: str
    actor_id: str
    actor_name: str
    description: str
    changes: List[FieldChange] = Field(default_factory=list)
    timestamp: str


class CommentResponse(BaseModel):
    """Comment response model."""
    id: int
    instance_id: int
    content: str
    author_id: str
    author_name: str
    created_at: str


class TaskInstanceResponse(BaseModel):
    """Task instance response model."""
    id: int
    template_id: str
    site_id: str
    day: str
    title: str
    description: str = ""
    service: str
    order: int = 0
    image_url: Optional[str] = None
    document_url: Optional[str] = None
    document_name: Optional[str] = None
    completed: bool
    completed_by: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str
    updated_at: str
    comments: List[CommentResponse] = Field(default_factory=list)
    history: List[AuditEntryResponse] = Field(default_factory=list)
