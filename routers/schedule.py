from typing import List, Literal, Optional

from fastapi import APIRouter, Depends

from models.schemas import (
    ErrorResponse, OwnerSchedulingOptions, ScheduleRecord, SchedulingRequest, SchedulingResponse
)
from service.repository import ScheduleRepository, get_repository
from service.schedule_service import build_response, resolve_predicates, schedule_for_owner
from service.scheduler import schedule

# Create a router instance
router = APIRouter()

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}

# Handlers are plain `def`: a run is CPU-bound and the repository is
# synchronous, so FastAPI executes them in its threadpool.


@router.post("/schedule", response_model=SchedulingResponse, responses=ERROR_RESPONSES)
def solve_schedule(request: SchedulingRequest):
    """
    Schedule exams supplied in the request body.

    Stateless: nothing is read from or written to storage. Slots listed in
    `already_consumed` are treated as booked before the run starts.
    """
    report = schedule(
        request.exams,
        request.rooms,
        request.timeslots,
        request.already_consumed,
        ordering=request.ordering,
        strategy=request.strategy,
        predicates=resolve_predicates(request.enforce_duration),
    )
    return build_response(report)


@router.post(
    "/owners/{owner_id}/schedule",
    response_model=SchedulingResponse,
    responses=ERROR_RESPONSES,
)
def solve_owner_schedule(
    owner_id: str,
    mode: Literal["full", "incremental"] = "full",
    options: Optional[OwnerSchedulingOptions] = None,
    repository: ScheduleRepository = Depends(get_repository),
):
    """
    Schedule an owner's stored exams and persist the assignments.

    `full` replaces every prior assignment; `incremental` keeps prior
    assignments that are still valid and only places the remaining exams.
    """
    options = options or OwnerSchedulingOptions()
    return schedule_for_owner(
        repository,
        owner_id,
        mode=mode,
        ordering=options.ordering,
        strategy=options.strategy,
        enforce_duration=options.enforce_duration,
    )


@router.get("/owners/{owner_id}/assignments", response_model=List[ScheduleRecord])
def list_owner_assignments(
    owner_id: str,
    repository: ScheduleRepository = Depends(get_repository),
):
    """Persisted assignments of an owner."""
    return repository.load_assignments(owner_id)
