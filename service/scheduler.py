"""
Exam scheduler: assigns each exam to one (room, timeslot) slot.

A run moves through INITIALIZED -> INDEXING -> ORDERING -> ASSIGNING ->
FINALIZED. Everything it touches (candidate index, conflict tracker, report
builder) is built fresh inside the run, so independent runs can execute
concurrently without sharing state.
"""
import logging
import time
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Union

from config import settings
from models.schemas import Exam, Room, SchedulingReport, Slot, Timeslot
from service.candidate_index import CandidateIndex
from service.conflict_tracker import ConflictTracker
from service.errors import DuplicateIdentifier, InvalidInput
from service.matching import maximum_matching
from service.ordering import OrderingPolicy, get_ordering_policy
from service.predicates import FeasibilityPredicate, build_predicates
from service.result_builder import ReportBuilder
from service.search import SearchStrategy, first_fit

logger = logging.getLogger(__name__)


SEARCH_STRATEGIES: Dict[str, SearchStrategy] = {
    "greedy": first_fit,
    "optimal": maximum_matching,
}


def get_search_strategy(name: str) -> SearchStrategy:
    try:
        return SEARCH_STRATEGIES[name]
    except KeyError:
        raise InvalidInput(
            f"Unknown search strategy '{name}'. Use one of: {', '.join(sorted(SEARCH_STRATEGIES))}"
        ) from None


class RunState(str, Enum):
    INITIALIZED = "initialized"
    INDEXING = "indexing"
    ORDERING = "ordering"
    ASSIGNING = "assigning"
    FINALIZED = "finalized"


_TRANSITIONS = {
    RunState.INITIALIZED: RunState.INDEXING,
    RunState.INDEXING: RunState.ORDERING,
    RunState.ORDERING: RunState.ASSIGNING,
    RunState.ASSIGNING: RunState.FINALIZED,
}


class ExamScheduler:
    """
    One scheduling run. Not reusable: create a new instance per run.
    """

    def __init__(
        self,
        ordering: Union[str, OrderingPolicy, None] = None,
        strategy: Optional[str] = None,
        predicates: Sequence[FeasibilityPredicate] = (),
        deadline: Optional[float] = None,
    ):
        """
        Args:
            ordering: Policy name ("size", "priority", "deadline") or a custom
                callable ``(exams, index) -> list``. Defaults to the configured one.
            strategy: Search strategy name ("greedy" or "optimal")
            predicates: Extra feasibility checks applied to every candidate slot
            deadline: ``time.monotonic()`` value after which the run is cancelled
        """
        ordering = ordering or settings.default_ordering
        if callable(ordering):
            self.ordering_name = getattr(ordering, "__name__", "custom")
            self.ordering = ordering
        else:
            self.ordering_name = ordering
            self.ordering = get_ordering_policy(ordering)

        self.strategy_name = strategy or settings.default_strategy
        self.search = get_search_strategy(self.strategy_name)
        self.predicates = list(predicates)

        if deadline is None and settings.schedule_deadline_seconds is not None:
            deadline = time.monotonic() + settings.schedule_deadline_seconds
        self.deadline = deadline

        self.state = RunState.INITIALIZED
        self.index: Optional[CandidateIndex] = None
        self.tracker: Optional[ConflictTracker] = None

    def run(
        self,
        exams: Sequence[Exam],
        rooms: Sequence[Room],
        timeslots: Sequence[Timeslot],
        already_consumed: Iterable[Slot] = (),
    ) -> SchedulingReport:
        """
        Main entry point to schedule the exams.

        Raises:
            InvalidInput: malformed entity or unknown pre-consumed slot
            DuplicateIdentifier: repeated exam, room, timeslot or pre-consumed slot
            AlreadyConsumed: internal invariant violation
        """
        if self.state is not RunState.INITIALIZED:
            raise RuntimeError("ExamScheduler instances run once; create a new one")

        # Step 1: Validate entities and build the candidate index
        self._advance(RunState.INDEXING)
        validate_entities(exams, rooms, timeslots)
        self.index = CandidateIndex(rooms, timeslots)
        self.tracker = ConflictTracker(self._validate_consumed(already_consumed))

        # Step 2: Fix the exam order
        self._advance(RunState.ORDERING)
        ordered = self.ordering(exams, self.index)
        if sorted(e.id for e in ordered) != sorted(e.id for e in exams):
            raise InvalidInput(f"Ordering policy '{self.ordering_name}' must return every exam exactly once")

        # Step 3: Place exams strictly in that order
        self._advance(RunState.ASSIGNING)
        builder = ReportBuilder(ordered, self.strategy_name, self.ordering_name)
        for outcome in self.search(ordered, self.index, self.tracker, self.predicates, self.deadline):
            builder.add(outcome)

        # Step 4: Finalize
        report = builder.build()
        self._advance(RunState.FINALIZED)
        logger.info(
            f"Scheduled {report.scheduled} of {report.total} exams "
            f"(strategy={self.strategy_name}, ordering={self.ordering_name}, "
            f"rooms={len(self.index.rooms)}, timeslots={len(self.index.timeslots)})"
        )
        return report

    def _advance(self, state: RunState) -> None:
        if _TRANSITIONS.get(self.state) is not state:
            raise RuntimeError(f"Invalid run transition {self.state.value} -> {state.value}")
        logger.debug(f"Scheduler run: {self.state.value} -> {state.value}")
        self.state = state

    def _validate_consumed(self, already_consumed: Iterable[Slot]) -> List[tuple]:
        slots = []
        seen = set()
        for slot in already_consumed:
            if not self.index.has_room(slot.room_id):
                raise InvalidInput(f"Pre-consumed slot names unknown room {slot.room_id}")
            if not self.index.has_timeslot(slot.timeslot_id):
                raise InvalidInput(f"Pre-consumed slot names unknown timeslot {slot.timeslot_id}")
            key = (slot.room_id, slot.timeslot_id)
            if key in seen:
                raise DuplicateIdentifier("slot", f"{slot.room_id}/{slot.timeslot_id}")
            seen.add(key)
            slots.append(key)
        return slots


def validate_entities(
    exams: Sequence[Exam],
    rooms: Sequence[Room],
    timeslots: Sequence[Timeslot],
) -> None:
    """
    Validate entity values and exam identifiers.

    Raises InvalidInput listing every problem found, then DuplicateIdentifier
    for the first repeated exam id. Room and timeslot duplicates are caught
    when the candidate index is built.
    """
    errors: List[str] = []

    for exam in exams:
        if not exam.id or not exam.id.strip():
            errors.append("Exam identifier must not be empty")
        if exam.students_count <= 0:
            errors.append(f"Exam {exam.id} must have a positive students count (got {exam.students_count})")
        if exam.duration is not None and exam.duration <= 0:
            errors.append(f"Exam {exam.id} duration must be greater than 0 minutes")

    for room in rooms:
        if not room.id or not room.id.strip():
            errors.append("Room identifier must not be empty")
        if room.capacity <= 0:
            errors.append(f"Room {room.id} must have a positive capacity (got {room.capacity})")

    for timeslot in timeslots:
        if not timeslot.id or not timeslot.id.strip():
            errors.append("Timeslot identifier must not be empty")

    if errors:
        raise InvalidInput("; ".join(errors), errors)

    seen = set()
    for exam in exams:
        if exam.id in seen:
            raise DuplicateIdentifier("exam", exam.id)
        seen.add(exam.id)


def schedule(
    exams: Sequence[Exam],
    rooms: Sequence[Room],
    timeslots: Sequence[Timeslot],
    already_consumed: Iterable[Slot] = (),
    *,
    ordering: Union[str, OrderingPolicy, None] = None,
    strategy: Optional[str] = None,
    predicates: Optional[Sequence[FeasibilityPredicate]] = None,
    deadline: Optional[float] = None,
) -> SchedulingReport:
    """
    Assign every exam to at most one (room, timeslot) slot.

    Pure function of its inputs: no state survives the call. Placement
    failures are reported per exam in ``report.failures``; malformed or
    ambiguous input raises before anything is placed.
    """
    if predicates is None:
        predicates = build_predicates(enforce_duration=settings.enforce_exam_duration)
    scheduler = ExamScheduler(
        ordering=ordering,
        strategy=strategy,
        predicates=predicates,
        deadline=deadline,
    )
    return scheduler.run(exams, rooms, timeslots, already_consumed)
