"""
Data-access collaborator for owner-scoped scheduling runs.

The scheduler itself never touches storage. The router loads an owner's
exams, rooms and timeslots through a ScheduleRepository, runs the scheduler,
and persists the resulting assignments with a single replace call.
"""
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

from models.schemas import Exam, Room, ScheduleRecord, Timeslot


class ScheduleRepository(ABC):
    """Storage interface. Implementations must make replace_assignments atomic."""

    @abstractmethod
    def load_exams(self, owner_id: str) -> List[Exam]:
        ...

    @abstractmethod
    def load_rooms(self, owner_id: str) -> List[Room]:
        ...

    @abstractmethod
    def load_timeslots(self, owner_id: str) -> List[Timeslot]:
        ...

    @abstractmethod
    def load_assignments(self, owner_id: str) -> List[ScheduleRecord]:
        ...

    @abstractmethod
    def replace_assignments(self, owner_id: str, records: Sequence[ScheduleRecord]) -> None:
        """Drop every assignment of the owner and store the given ones, all or nothing."""


class InMemoryScheduleRepository(ScheduleRepository):
    """Process-local repository, used by default and in tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._exams: Dict[str, List[Exam]] = {}
        self._rooms: Dict[str, List[Room]] = {}
        self._timeslots: Dict[str, List[Timeslot]] = {}
        self._assignments: Dict[str, List[ScheduleRecord]] = {}

    def put_exams(self, owner_id: str, exams: Sequence[Exam]) -> None:
        with self._lock:
            self._exams[owner_id] = list(exams)

    def put_rooms(self, owner_id: str, rooms: Sequence[Room]) -> None:
        with self._lock:
            self._rooms[owner_id] = list(rooms)

    def put_timeslots(self, owner_id: str, timeslots: Sequence[Timeslot]) -> None:
        with self._lock:
            self._timeslots[owner_id] = list(timeslots)

    def load_exams(self, owner_id: str) -> List[Exam]:
        with self._lock:
            return list(self._exams.get(owner_id, []))

    def load_rooms(self, owner_id: str) -> List[Room]:
        with self._lock:
            return list(self._rooms.get(owner_id, []))

    def load_timeslots(self, owner_id: str) -> List[Timeslot]:
        with self._lock:
            return list(self._timeslots.get(owner_id, []))

    def load_assignments(self, owner_id: str) -> List[ScheduleRecord]:
        with self._lock:
            return list(self._assignments.get(owner_id, []))

    def replace_assignments(self, owner_id: str, records: Sequence[ScheduleRecord]) -> None:
        for record in records:
            if record.owner_id != owner_id:
                raise ValueError(f"Record for owner {record.owner_id} cannot be stored under {owner_id}")
        with self._lock:
            self._assignments[owner_id] = list(records)


_repository = InMemoryScheduleRepository()


def get_repository() -> ScheduleRepository:
    """FastAPI dependency; override it to plug in a real store."""
    return _repository
