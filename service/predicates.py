"""
Additional feasibility predicates for the assignment search.

Capacity, eligibility and slot consumption are always enforced by the
search itself. Predicates add constraints on top of those; a slot is
feasible only if every predicate accepts it.
"""
from typing import Callable, List

from models.schemas import Exam, Room, Timeslot
from service.candidate_index import timeslot_minutes

FeasibilityPredicate = Callable[[Exam, Room, Timeslot], bool]


def duration_fits(exam: Exam, room: Room, timeslot: Timeslot) -> bool:
    """Exam duration must not exceed the timeslot length. Exams without a duration always fit."""
    if exam.duration is None:
        return True
    return exam.duration <= timeslot_minutes(timeslot)


def build_predicates(enforce_duration: bool = False) -> List[FeasibilityPredicate]:
    predicates: List[FeasibilityPredicate] = []
    if enforce_duration:
        predicates.append(duration_fits)
    return predicates
