"""
Pydantic models for mutating requests (toggling, commenting, completing days).
"""
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ToggleCompletionRequest(BaseModel):
    """Request model for setting an instance's completion flag."""
    completed: bool = Field(..., description="Requested completion state")
    actor_id: str = Field(..., description="User making the change", min_length=1)
    idempotency_key: Optional[str] = Field(
        None, description="Client token; a retried request with the same token is applied once", max_length=200
    )

    @field_validator('actor_id')
    @classmethod
    def validate_actor_id(cls, v: str) -> str:
        """Validate actor_id is not empty."""
        if not v or not v.strip():
            raise ValueError("actor_id cannot be empty or contain only whitespace")
        return v.strip()


class CommentCreate(BaseModel):
    """Comment creation model."""
    content: str = Field(..., description="Comment content", min_length=1)
    actor_id: str = Field(..., description="User writing the comment", min_length=1)
    idempotency_key: Optional[str] = Field(None, description="Client retry token", max_length=200)

    @field_validator('content', 'actor_id')
    @classmethod
    def validate_not_empty_or_whitespace(cls, v: str) -> str:
        """Validate that string fields are not empty or only whitespace."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or contain only whitespace")
        return v.strip()


class CompleteDayRequest(BaseModel):
    """Request model for marking a day completed."""
    actor_id: str = Field(..., description="User completing the day", min_length=1)

    @field_validator('actor_id')
    @classmethod
    def validate_actor_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("actor_id cannot be empty or contain only whitespace")
        return v.strip()


class CancelCompletionRequest(BaseModel):
    """Request model for reverting a day completion. Requires an elevated role."""
    actor_id: str = Field(..., description="User reverting the day", min_length=1)
    role: str = Field(..., description="Role of the user, as resolved by the user directory", min_length=1)

    @field_validator('actor_id', 'role')
    @classmethod
    def validate_not_empty_or_whitespace(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or contain only whitespace")
        return v.strip()
