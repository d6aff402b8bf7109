"""
Pydantic models for day-level responses: generation, progress, groups and completion.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from .instance_models import TaskInstanceResponse


class GenerationResponse(BaseModel):
    """Result of generating or initializing a day."""
    day: str
    site_id: str
    created: int
    instance_ids: List[int] = Field(default_factory=list)
    skipped: bool = False


class ProgressResponse(BaseModel):
    """Aggregate progress of a day."""
    day: str
    site_id: str
    total: int
    completed: int
    percentage: int
    can_proceed_to_next_day: bool
    day_completed: bool


class ServiceGroupResponse(BaseModel):
    """Instances of one service category with that category's own progress."""
    service: str
    total: int
    completed: int
    percentage: int
    tasks: List[TaskInstanceResponse] = Field(default_factory=list)


class DayCompletionRecord(BaseModel):
    """Day completion record."""
    id: int
    site_id: str
    day: str
    completed: bool
    completed_by: str
    completed_at: str
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[str] = None
    created_at: str
    updated_at: str


class DayCompletionResponse(BaseModel):
    """Result of completing a day, including the next day's generation."""
    record: DayCompletionRecord
    already_completed: bool
    next_day: str
    generation: GenerationResponse


class DayOverviewResponse(BaseModel):
    """Progress, gate flags and grouped instances of a day."""
    day: str
    site_id: str
    total: int
    completed: int
    percentage: int
    can_proceed_to_next_day: bool
    day_completed: bool
    completion: Optional[DayCompletionRecord] = None
    groups: List[ServiceGroupResponse] = Field(default_factory=list)
