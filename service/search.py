"""
Assignment search strategies.

A strategy consumes exams in the order fixed by the ordering policy and
yields one outcome per exam: an Assignment or an UnscheduledExam. Every
strategy records its chosen slots in the conflict tracker, so the tracker
always reflects the slots used by the report.
"""
import logging
import time
from typing import Callable, Iterator, Optional, Sequence, Union

from models.schemas import Assignment, Exam, FailureReason, Room, Timeslot, UnscheduledExam
from service.candidate_index import CandidateIndex
from service.conflict_tracker import ConflictTracker
from service.errors import SchedulingCancelled
from service.predicates import FeasibilityPredicate

logger = logging.getLogger(__name__)

Outcome = Union[Assignment, UnscheduledExam]
SearchStrategy = Callable[..., Iterator[Outcome]]


def first_fit(
    exams: Sequence[Exam],
    index: CandidateIndex,
    tracker: ConflictTracker,
    predicates: Sequence[FeasibilityPredicate] = (),
    deadline: Optional[float] = None,
) -> Iterator[Outcome]:
    """
    Greedy first-fit placement.

    Timeslots are scanned chronologically and, within a timeslot, rooms from
    the smallest sufficient capacity upwards. The first feasible slot wins
    and is consumed before the next exam is considered.
    """
    for exam in exams:
        check_deadline(deadline, exam)
        assignment = _first_feasible(exam, index, tracker, predicates)
        if assignment is None:
            yield classify_failure(exam, index, tracker)
            continue
        tracker.consume(assignment.room_id, assignment.timeslot_id)
        logger.debug(f"Placed exam {exam.id} in room {assignment.room_id} at {assignment.timeslot_id}")
        yield assignment


def _first_feasible(
    exam: Exam,
    index: CandidateIndex,
    tracker: ConflictTracker,
    predicates: Sequence[FeasibilityPredicate],
) -> Optional[Assignment]:
    if index.max_capacity < exam.students_count:
        return None
    for timeslot in index.eligible_timeslots(exam):
        for room in index.rooms_at(timeslot.id, exam.students_count):
            if tracker.is_consumed(room.id, timeslot.id):
                continue
            if not passes(predicates, exam, room, timeslot):
                continue
            return Assignment(exam_id=exam.id, room_id=room.id, timeslot_id=timeslot.id)
    return None


def passes(
    predicates: Sequence[FeasibilityPredicate], exam: Exam, room: Room, timeslot: Timeslot
) -> bool:
    return all(predicate(exam, room, timeslot) for predicate in predicates)


def classify_failure(
    exam: Exam,
    index: CandidateIndex,
    tracker: ConflictTracker,
) -> UnscheduledExam:
    """Explain why an exam could not be placed given the current tracker state."""
    if index.max_capacity < exam.students_count:
        return UnscheduledExam(
            exam_id=exam.id,
            reason=FailureReason.NO_ROOM_LARGE_ENOUGH,
            detail=f"Needs {exam.students_count} seats; the largest room holds {index.max_capacity}",
        )

    timeslots = index.eligible_timeslots(exam)
    if not timeslots:
        detail = (
            "None of the exam's eligible timeslots exist"
            if exam.eligible_timeslots is not None
            else "No timeslots available"
        )
        return UnscheduledExam(exam_id=exam.id, reason=FailureReason.NO_ELIGIBLE_TIMESLOT, detail=detail)

    rooms = index.rooms_fitting(exam.students_count)
    free = [
        (room, timeslot)
        for timeslot in timeslots
        for room in rooms
        if not tracker.is_consumed(room.id, timeslot.id)
    ]
    if not free:
        return UnscheduledExam(
            exam_id=exam.id,
            reason=FailureReason.ALL_SUITABLE_SLOTS_TAKEN,
            detail=(
                f"All {len(rooms) * len(timeslots)} slots with at least "
                f"{exam.students_count} seats are already taken"
            ),
        )

    return UnscheduledExam(
        exam_id=exam.id,
        reason=FailureReason.NO_FEASIBLE_SLOT,
        detail=f"{len(free)} free slots were rejected by additional constraints",
    )


def check_deadline(deadline: Optional[float], exam: Exam) -> None:
    """Cooperative cancellation point, checked once per exam."""
    if deadline is not None and time.monotonic() >= deadline:
        raise SchedulingCancelled(f"Scheduling deadline passed before exam {exam.id} was processed")
