"""
OR-Tools CP-SAT maximum-cardinality assignment.

This is the "optimal" search strategy: it places as many exams as possible,
unlike first-fit which only guarantees a deterministic, constraint-safe
result. It is solved in two phases:

1. maximise the number of scheduled exams;
2. with that count fixed, minimise wasted seats and prefer earlier
   timeslots, so ties between maximum assignments resolve the same way
   first-fit would lean.

The solver runs single-threaded with a fixed random seed, so identical
inputs give identical assignments as long as the time limit is not hit.
"""
import logging
import time
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ortools.sat.python import cp_model

from config import settings
from models.schemas import Assignment, Exam
from service.candidate_index import CandidateIndex
from service.conflict_tracker import ConflictTracker
from service.errors import InternalInvariantError, SolverTimeout
from service.predicates import FeasibilityPredicate
from service.search import Outcome, check_deadline, classify_failure, passes

logger = logging.getLogger(__name__)

# (exam_id, room_id, timeslot_id)
Candidate = Tuple[str, str, str]


class MatchingSolver:
    """
    Constraint-based exam placement using the OR-Tools CP-SAT solver.
    """

    def __init__(self, time_limit_seconds: float = 30, random_seed: int = 42, num_workers: int = 1):
        """
        Initialize the solver.

        Args:
            time_limit_seconds: Maximum time allowed for each solver phase
            random_seed: Seed for reproducible search
            num_workers: Search workers; keep at 1 for deterministic output
        """
        self.time_limit_seconds = time_limit_seconds
        self.random_seed = random_seed
        self.num_workers = num_workers
        self.last_status: Optional[str] = None
        self.solve_time_seconds: float = 0.0
        self._seats: Dict[str, int] = {}

    def solve(
        self,
        exams: Sequence[Exam],
        index: CandidateIndex,
        tracker: ConflictTracker,
        predicates: Sequence[FeasibilityPredicate] = (),
    ) -> Dict[str, Candidate]:
        """
        Choose at most one free slot per exam, maximising the number placed.

        Returns:
            Mapping exam_id -> chosen (exam_id, room_id, timeslot_id)
        """
        self._seats = {exam.id: exam.students_count for exam in exams}
        candidates = self._build_candidates(exams, index, tracker, predicates)
        if not candidates:
            self.last_status = "OPTIMAL"
            return {}

        start_time = datetime.now()

        # Phase 1: maximise the scheduled count
        model, variables = self._build_model(candidates)
        model.Maximize(sum(variables.values()))
        solver = self._new_solver()
        status = solver.Solve(model)
        self._raise_if_no_solution(status)
        best_count = int(round(solver.ObjectiveValue()))
        phase_one = {key for key, var in variables.items() if solver.Value(var) == 1}

        # Phase 2: keep the count, minimise waste and lateness
        model, variables = self._build_model(candidates)
        model.Add(sum(variables.values()) == best_count)
        model.Minimize(sum(self._cost(key, index) * var for key, var in variables.items()))
        for key, var in variables.items():
            model.AddHint(var, 1 if key in phase_one else 0)
        solver = self._new_solver()
        status = solver.Solve(model)
        if status in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            chosen = [key for key, var in variables.items() if solver.Value(var) == 1]
        else:
            # Phase 2 may time out; phase 1's solution is still maximal.
            chosen = sorted(phase_one)

        self.solve_time_seconds = (datetime.now() - start_time).total_seconds()
        self.last_status = solver.StatusName(status)
        logger.info(
            f"CP-SAT placed {best_count} of {len(exams)} exams "
            f"({self.last_status}, {self.solve_time_seconds:.3f}s)"
        )
        return {key[0]: key for key in chosen}

    # ===========================
    # Helper Methods
    # ===========================

    def _build_candidates(
        self,
        exams: Sequence[Exam],
        index: CandidateIndex,
        tracker: ConflictTracker,
        predicates: Sequence[FeasibilityPredicate],
    ) -> List[Candidate]:
        candidates = []
        for exam in exams:
            for timeslot in index.eligible_timeslots(exam):
                for room in index.rooms_at(timeslot.id, exam.students_count):
                    if tracker.is_consumed(room.id, timeslot.id):
                        continue
                    if passes(predicates, exam, room, timeslot):
                        candidates.append((exam.id, room.id, timeslot.id))
        return candidates

    def _build_model(self, candidates: List[Candidate]):
        model = cp_model.CpModel()
        variables = {
            key: model.NewBoolVar(f"exam_{key[0]}_room_{key[1]}_slot_{key[2]}")
            for key in candidates
        }

        by_exam: Dict[str, List] = {}
        by_slot: Dict[Tuple[str, str], List] = {}
        for (exam_id, room_id, timeslot_id), var in variables.items():
            by_exam.setdefault(exam_id, []).append(var)
            by_slot.setdefault((room_id, timeslot_id), []).append(var)

        # Each exam at most once
        for exam_vars in by_exam.values():
            model.AddAtMostOne(exam_vars)

        # Each (room, timeslot) at most once
        for slot_vars in by_slot.values():
            model.AddAtMostOne(slot_vars)

        return model, variables

    def _cost(self, key: Candidate, index: CandidateIndex) -> int:
        exam_seats = self._seats[key[0]]
        waste = index.capacity_of(key[1]) - exam_seats
        return waste * (len(index.timeslots) + 1) + index.position_of(key[2])

    def _new_solver(self) -> cp_model.CpSolver:
        solver = cp_model.CpSolver()
        solver.parameters.random_seed = self.random_seed
        solver.parameters.num_workers = self.num_workers
        solver.parameters.max_time_in_seconds = self.time_limit_seconds
        return solver

    def _raise_if_no_solution(self, status) -> None:
        if status in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            return
        if status == cp_model.UNKNOWN:
            raise SolverTimeout(
                f"Solver timeout - no solution found within {self.time_limit_seconds}s"
            )
        # Every variable may be zero, so INFEASIBLE means the model itself is broken.
        raise InternalInvariantError(f"Solver returned status {status}")


def maximum_matching(
    exams: Sequence[Exam],
    index: CandidateIndex,
    tracker: ConflictTracker,
    predicates: Sequence[FeasibilityPredicate] = (),
    deadline: Optional[float] = None,
) -> Iterator[Outcome]:
    """Search strategy wrapper: solve once, then report in exam order."""
    if exams:
        check_deadline(deadline, exams[0])

    time_limit = settings.solver_timeout_seconds
    if deadline is not None:
        time_limit = max(0.0, min(time_limit, deadline - time.monotonic()))

    solver = MatchingSolver(
        time_limit_seconds=time_limit,
        random_seed=settings.solver_random_seed,
        num_workers=settings.solver_num_workers,
    )
    chosen = solver.solve(exams, index, tracker, predicates)

    # Consume every chosen slot first so failure reasons see the final state.
    for exam in exams:
        if exam.id in chosen:
            _, room_id, timeslot_id = chosen[exam.id]
            tracker.consume(room_id, timeslot_id)

    outcomes: List[Outcome] = []
    for exam in exams:
        if exam.id in chosen:
            _, room_id, timeslot_id = chosen[exam.id]
            outcomes.append(Assignment(exam_id=exam.id, room_id=room_id, timeslot_id=timeslot_id))
        else:
            outcomes.append(classify_failure(exam, index, tracker))
    return iter(outcomes)
