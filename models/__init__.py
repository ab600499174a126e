"""
Data models and Pydantic schemas for the exam scheduling API.
"""
from .schemas import (
    Exam,
    Room,
    Timeslot,
    Slot,
    FailureReason,
    Assignment,
    UnscheduledExam,
    SchedulingReport,
    ScheduleRecord,
    SchedulingRequest,
    OwnerSchedulingOptions,
    SchedulingResponse,
    ErrorDetail,
    ErrorResponse
)

__all__ = [
    "Exam",
    "Room",
    "Timeslot",
    "Slot",
    "FailureReason",
    "Assignment",
    "UnscheduledExam",
    "SchedulingReport",
    "ScheduleRecord",
    "SchedulingRequest",
    "OwnerSchedulingOptions",
    "SchedulingResponse",
    "ErrorDetail",
    "ErrorResponse"
]
