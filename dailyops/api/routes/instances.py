"""
Task instance API routes: detail, completion toggling, comments and history.
"""
from typing import List
from fastapi import APIRouter, Path, Query

from dailyops.dependencies.services import get_query, get_tracker
from dailyops.models import (
    AuditEntryResponse,
    CommentCreate,
    CommentResponse,
    TaskInstanceResponse,
    ToggleCompletionRequest,
)

router = APIRouter(prefix="/instances", tags=["instances"])


@router.get("/{instance_id}", response_model=TaskInstanceResponse)
async def get_instance(instance_id: int = Path(..., gt=0, description="Task instance ID")):
    """Get a task instance with its comments and history."""
    return TaskInstanceResponse(**get_query().get_instance(instance_id))


@router.patch("/{instance_id}/completion", response_model=TaskInstanceResponse)
async def toggle_completion(
    request_body: ToggleCompletionRequest,
    instance_id: int = Path(..., gt=0, description="Task instance ID"),
):
    """Mark a task instance completed or not completed. Every call is recorded in the history."""
    instance = get_tracker().toggle_completion(
        instance_id,
        request_body.completed,
        request_body.actor_id,
        idempotency_key=request_body.idempotency_key,
    )
    return TaskInstanceResponse(**instance)


@router.post("/{instance_id}/comments", response_model=TaskInstanceResponse, status_code=201)
async def add_comment(
    comment: CommentCreate,
    instance_id: int = Path(..., gt=0, description="Task instance ID"),
):
    """Add a comment to a task instance."""
    instance = get_tracker().add_comment(
        instance_id,
        comment.content,
        comment.actor_id,
        idempotency_key=comment.idempotency_key,
    )
    return TaskInstanceResponse(**instance)


@router.get("/{instance_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    instance_id: int = Path(..., gt=0, description="Task instance ID"),
    newest_first: bool = Query(False, description="Newest comments first"),
):
    """List the comments of a task instance."""
    comments = get_query().instance_comments(instance_id, newest_first=newest_first)
    return [CommentResponse(**comment) for comment in comments]


@router.get("/{instance_id}/history", response_model=List[AuditEntryResponse])
async def get_history(
    instance_id: int = Path(..., gt=0, description="Task instance ID"),
    newest_first: bool = Query(True, description="Newest entries first"),
):
    """Audit trail of a task instance."""
    history = get_query().instance_history(instance_id, newest_first=newest_first)
    return [AuditEntryResponse(**entry) for entry in history]
