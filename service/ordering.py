"""
Ordering policies: the sequence in which exams are offered to the search.

A policy is any callable taking the exams and the candidate index and
returning a total order. Every built-in policy ends its sort key on the exam
identifier so the order is reproducible across runs.
"""
from typing import Callable, Dict, List, Sequence

from models.schemas import Exam
from service.candidate_index import CandidateIndex
from service.errors import InvalidInput

OrderingPolicy = Callable[[Sequence[Exam], CandidateIndex], List[Exam]]


def _size_key(exam: Exam):
    return (-exam.students_count, exam.id)


def by_size_descending(exams: Sequence[Exam], index: CandidateIndex) -> List[Exam]:
    """Largest exams first (best-fit-descending), ties on ascending id."""
    return sorted(exams, key=_size_key)


def by_priority(exams: Sequence[Exam], index: CandidateIndex) -> List[Exam]:
    """Highest priority first, then size order."""
    return sorted(exams, key=lambda e: (-e.priority,) + _size_key(e))


def by_earliest_deadline(exams: Sequence[Exam], index: CandidateIndex) -> List[Exam]:
    """
    Exams whose eligible window closes earliest go first.

    The deadline of an exam is the chronological position of its latest
    eligible timeslot. Exams without a restriction, or whose restriction
    names no known timeslot, sort last.
    """
    unrestricted = len(index.timeslots)

    def deadline(exam: Exam) -> int:
        if exam.eligible_timeslots is None:
            return unrestricted
        positions = [index.position_of(ts_id) for ts_id in exam.eligible_timeslots]
        known = [p for p in positions if p is not None]
        return max(known) if known else unrestricted

    return sorted(exams, key=lambda e: (deadline(e),) + _size_key(e))


ORDERING_POLICIES: Dict[str, OrderingPolicy] = {
    "size": by_size_descending,
    "priority": by_priority,
    "deadline": by_earliest_deadline,
}


def get_ordering_policy(name: str) -> OrderingPolicy:
    try:
        return ORDERING_POLICIES[name]
    except KeyError:
        raise InvalidInput(
            f"Unknown ordering policy '{name}'. Use one of: {', '.join(sorted(ORDERING_POLICIES))}"
        ) from None
