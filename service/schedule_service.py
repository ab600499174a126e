"""
Owner-scoped scheduling runs: load, schedule, persist.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from models.schemas import (
    Assignment, Exam, Room, ScheduleRecord, SchedulingReport, SchedulingResponse, Slot, Timeslot
)
from service.errors import InvalidInput, MissingInputData
from service.predicates import FeasibilityPredicate, build_predicates
from service.repository import ScheduleRepository
from service.scheduler import schedule, validate_entities
from service.search import passes
from config import settings

logger = logging.getLogger(__name__)

SCHEDULE_MODES = ("full", "incremental")


def build_response(
    report: SchedulingReport,
    preserved: Sequence[Assignment] = (),
    total: Optional[int] = None,
) -> SchedulingResponse:
    """Serialize a report into the {success, scheduled, total, failures} payload."""
    assignments = list(preserved) + list(report.assignments)
    return SchedulingResponse(
        success=True,
        scheduled=len(assignments),
        total=report.total + len(preserved) if total is None else total,
        failures=list(report.failures),
        assignments=assignments,
        strategy=report.strategy,
        ordering=report.ordering,
        preserved=len(preserved),
    )


def resolve_predicates(enforce_duration: Optional[bool]):
    if enforce_duration is None:
        enforce_duration = settings.enforce_exam_duration
    return build_predicates(enforce_duration=enforce_duration)


def schedule_for_owner(
    repository: ScheduleRepository,
    owner_id: str,
    mode: str = "full",
    ordering: Optional[str] = None,
    strategy: Optional[str] = None,
    enforce_duration: Optional[bool] = None,
) -> SchedulingResponse:
    """
    Run the scheduler over an owner's stored data and persist the result.

    In "full" mode every prior assignment is discarded. In "incremental" mode
    prior assignments that still fit the current entities are kept, their
    slots are treated as consumed, and only the remaining exams are placed.
    Nothing is written unless the run finishes.
    """
    if mode not in SCHEDULE_MODES:
        raise InvalidInput(f"Unknown schedule mode '{mode}'. Use one of: {', '.join(SCHEDULE_MODES)}")

    exams = repository.load_exams(owner_id)
    rooms = repository.load_rooms(owner_id)
    timeslots = repository.load_timeslots(owner_id)

    missing = [name for name, data in (("exams", exams), ("rooms", rooms), ("timeslots", timeslots)) if not data]
    if missing:
        raise MissingInputData(f"Missing required data for owner {owner_id}: {', '.join(missing)}")

    # The whole exam set, including exams already placed by an earlier run
    validate_entities(exams, rooms, timeslots)
    predicates = resolve_predicates(enforce_duration)

    preserved: List[Assignment] = []
    if mode == "incremental":
        preserved = _still_valid(repository.load_assignments(owner_id), exams, rooms, timeslots, predicates)

    placed = {a.exam_id for a in preserved}
    report = schedule(
        [exam for exam in exams if exam.id not in placed],
        rooms,
        timeslots,
        [Slot(room_id=a.room_id, timeslot_id=a.timeslot_id) for a in preserved],
        ordering=ordering,
        strategy=strategy,
        predicates=predicates,
    )

    records = [
        ScheduleRecord(
            owner_id=owner_id,
            exam_id=a.exam_id,
            room_id=a.room_id,
            timeslot_id=a.timeslot_id,
            status=a.status,
        )
        for a in preserved + list(report.assignments)
    ]
    repository.replace_assignments(owner_id, records)
    logger.info(
        f"Stored {len(records)} assignments for owner {owner_id} "
        f"(mode={mode}, preserved={len(preserved)})"
    )
    return build_response(report, preserved, total=len(exams))


def _still_valid(
    records: Sequence[ScheduleRecord],
    exams: Sequence[Exam],
    rooms: Sequence[Room],
    timeslots: Sequence[Timeslot],
    predicates: Sequence[FeasibilityPredicate] = (),
) -> List[Assignment]:
    """
    Prior assignments a fresh run would still be allowed to make.

    A record is dropped when its exam, room or timeslot is gone, the room is
    now too small, the timeslot is no longer eligible for the exam, an active
    predicate rejects the slot, or the exam or slot was already kept.
    """
    exams_by_id = {exam.id: exam for exam in exams}
    rooms_by_id = {room.id: room for room in rooms}
    timeslots_by_id = {t.id: t for t in timeslots}

    kept: List[Assignment] = []
    seen_exams = set()
    seen_slots: set = set()
    for record in records:
        slot: Tuple[str, str] = (record.room_id, record.timeslot_id)
        exam = exams_by_id.get(record.exam_id)
        room = rooms_by_id.get(record.room_id)
        timeslot = timeslots_by_id.get(record.timeslot_id)
        if (
            exam is None
            or room is None
            or timeslot is None
            or room.capacity < exam.students_count
            or (exam.eligible_timeslots is not None and timeslot.id not in exam.eligible_timeslots)
            or not passes(predicates, exam, room, timeslot)
            or record.exam_id in seen_exams
            or slot in seen_slots
        ):
            logger.info(f"Dropping stale assignment of exam {record.exam_id} to {slot}")
            continue
        seen_exams.add(record.exam_id)
        seen_slots.add(slot)
        kept.append(Assignment(exam_id=record.exam_id, room_id=record.room_id, timeslot_id=record.timeslot_id))
    return kept
