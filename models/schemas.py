from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Literal
from enum import Enum


# ===========================
# Input Entities
# ===========================

class Exam(BaseModel):
    """An exam that needs one room at one timeslot."""
    model_config = ConfigDict(frozen=True)

    id: str
    students_count: int          # Required seating
    name: Optional[str] = None
    course_code: Optional[str] = None
    duration: Optional[int] = None   # Minutes, only checked when duration enforcement is on
    priority: int = 0                # Higher is placed first by the "priority" ordering
    eligible_timeslots: Optional[List[str]] = None  # None means any timeslot


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    capacity: int
    name: Optional[str] = None
    building: Optional[str] = None   # Location label, informational


class Timeslot(BaseModel):
    """A discrete, atomic exam period."""
    model_config = ConfigDict(frozen=True)

    id: str
    date: str        # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str    # HH:MM


class Slot(BaseModel):
    """A (room, timeslot) pair, the unit of exclusivity."""
    model_config = ConfigDict(frozen=True)

    room_id: str
    timeslot_id: str


# ===========================
# Scheduling Results
# ===========================

class FailureReason(str, Enum):
    NO_ROOM_LARGE_ENOUGH = "NoRoomLargeEnough"
    NO_ELIGIBLE_TIMESLOT = "NoEligibleTimeslot"
    ALL_SUITABLE_SLOTS_TAKEN = "AllSuitableSlotsTaken"
    NO_FEASIBLE_SLOT = "NoFeasibleSlot"


class Assignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    exam_id: str
    room_id: str
    timeslot_id: str
    status: Literal["scheduled"] = "scheduled"


class UnscheduledExam(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    exam_id: str = Field(alias="examId")
    reason: FailureReason
    detail: str = ""


class SchedulingReport(BaseModel):
    """Outcome of a single scheduling run."""
    model_config = ConfigDict(frozen=True)

    assignments: List[Assignment] = []
    failures: List[UnscheduledExam] = []
    strategy: str = "greedy"
    ordering: str = "size"

    @property
    def scheduled(self) -> int:
        return len(self.assignments)

    @property
    def total(self) -> int:
        return len(self.assignments) + len(self.failures)


class ScheduleRecord(BaseModel):
    """A persisted assignment, scoped to its owner."""
    model_config = ConfigDict(frozen=True)

    owner_id: str
    exam_id: str
    room_id: str
    timeslot_id: str
    status: str = "scheduled"


# ===========================
# Request Schema
# ===========================

class SchedulingRequest(BaseModel):
    """Stateless scheduling request: all input sets travel in the body."""
    exams: List[Exam]
    rooms: List[Room]
    timeslots: List[Timeslot]
    already_consumed: List[Slot] = []
    ordering: Optional[str] = None   # Falls back to the configured default
    strategy: Optional[str] = None
    enforce_duration: Optional[bool] = None


class OwnerSchedulingOptions(BaseModel):
    """Optional body for owner-scoped runs backed by the repository."""
    ordering: Optional[str] = None
    strategy: Optional[str] = None
    enforce_duration: Optional[bool] = None


# ===========================
# Response Schema
# ===========================

class SchedulingResponse(BaseModel):
    """Response payload: the seed's {success, scheduled, total} plus failures."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    scheduled: int
    total: int
    failures: List[UnscheduledExam] = []
    assignments: List[Assignment] = []

    # Additional metadata
    strategy: Optional[str] = None
    ordering: Optional[str] = None
    preserved: int = 0  # Prior assignments kept by an incremental run


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorDetail
