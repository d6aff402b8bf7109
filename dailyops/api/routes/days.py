"""
Day-level API routes: generation, listing, progress and the day gate.
"""
from typing import List, Optional
from fastapi import APIRouter, Path, Query

from dailyops.dependencies.services import get_gate, get_generator, get_query
from dailyops.models import (
    CancelCompletionRequest,
    CompleteDayRequest,
    DayCompletionRecord,
    DayCompletionResponse,
    DayOverviewResponse,
    GenerationResponse,
    ProgressResponse,
    ServiceGroupResponse,
    TaskInstanceResponse,
)
from dailyops.services.day_gate import can_proceed

router = APIRouter(prefix="/sites/{site_id}/days/{day}", tags=["days"])


@router.post("/generate", response_model=GenerationResponse)
async def generate_day(
    site_id: str = Path(..., description="Site ID"),
    day: str = Path(..., description="Calendar day (YYYY-MM-DD)"),
):
    """Generate the day's task instances from the site's active templates. No-op if already generated."""
    return GenerationResponse(**get_generator().generate(day, site_id))


@router.post("/initialize", response_model=GenerationResponse)
async def initialize_day(
    site_id: str = Path(..., description="Site ID"),
    day: str = Path(..., description="Calendar day (YYYY-MM-DD)"),
):
    """Generate the day if empty, otherwise add instances for newly active templates."""
    return GenerationResponse(**get_generator().initialize_day(day, site_id))


@router.get("/instances", response_model=List[TaskInstanceResponse])
async def list_instances(
    site_id: str = Path(..., description="Site ID"),
    day: str = Path(..., description="Calendar day (YYYY-MM-DD)"),
    service: Optional[str] = Query(None, description="Filter by service category"),
    status: Optional[str] = Query(None, description="Filter by status: completed or pending"),
    search: Optional[str] = Query(None, description="Case-insensitive search on title and description"),
):
    """List the day's task instances in display order."""
    instances = get_query().list_instances(day, site_id, service=service, status=status, search=search)
    return [TaskInstanceResponse(**instance) for instance in instances]


@router.get("/services", response_model=List[ServiceGroupResponse])
async def list_service_groups(
    site_id: str = Path(..., description="Site ID"),
    day: str = Path(..., description="Calendar day (YYYY-MM-DD)"),
    service: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    """Instances grouped by service category, each group with its own progress."""
    groups = get_query().service_groups(day, site_id, service=service, status=status, search=search)
    return [ServiceGroupResponse(**group) for group in groups]


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(
    site_id: str = Path(..., description="Site ID"),
    day: str = Path(..., description="Calendar day (YYYY-MM-DD)"),
):
    """Progress of the day and whether it may be completed."""
    gate = get_gate()
    progress = gate.progress(day, site_id)
    day_completed = gate.is_day_completed(day, site_id)
    return ProgressResponse(
        **progress,
        can_proceed_to_next_day=can_proceed(progress, day_completed),
        day_completed=day_completed,
    )


@router.get("/overview", response_model=DayOverviewResponse)
async def get_overview(
    site_id: str = Path(..., description="Site ID"),
    day: str = Path(..., description="Calendar day (YYYY-MM-DD)"),
    service: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    """Everything the day screen shows in one call."""
    return DayOverviewResponse(
        **get_query().day_overview(day, site_id, service=service, status=status, search=search)
    )


@router.post("/complete", response_model=DayCompletionResponse)
async def complete_day(
    request_body: CompleteDayRequest,
    site_id: str = Path(..., description="Site ID"),
    day: str = Path(..., description="Calendar day (YYYY-MM-DD)"),
):
    """
    Mark the day completed and generate the next day.
    Returns 409 when the day has no tasks or any task is still pending.
    Safe to retry: an already completed day answers with already_completed=true.
    """
    result = get_gate().complete_day(day, site_id, request_body.actor_id)
    return DayCompletionResponse(**result)


@router.post("/cancel-completion", response_model=DayCompletionRecord)
async def cancel_day_completion(
    request_body: CancelCompletionRequest,
    site_id: str = Path(..., description="Site ID"),
    day: str = Path(..., description="Calendar day (YYYY-MM-DD)"),
):
    """Revert a day completion (elevated roles only). The next day is left untouched."""
    record = get_gate().cancel_day_completion(day, site_id, request_body.actor_id, request_body.role)
    return DayCompletionRecord(**record)
