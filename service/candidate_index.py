"""
Candidate index: the universe of bookable (room, timeslot) slots.

Rooms are kept in ascending capacity (best-fit first) and timeslots in
chronological order. Both orders break ties on the identifier so the scan
order never depends on how the caller happened to list its entities.
"""
from bisect import bisect_left
from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple, TypeVar

from models.schemas import Exam, Room, Timeslot
from service.errors import DuplicateIdentifier, InvalidInput

T = TypeVar("T", Room, Timeslot)

_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


class CandidateIndex:
    """Read-only lookup structure built once per scheduling run."""

    def __init__(self, rooms: Iterable[Room], timeslots: Iterable[Timeslot]):
        self._rooms_by_id: Dict[str, Room] = _index_by_id(rooms, "room")
        self._timeslots_by_id: Dict[str, Timeslot] = _index_by_id(timeslots, "timeslot")

        self.rooms: List[Room] = sorted(
            self._rooms_by_id.values(), key=lambda r: (r.capacity, r.id)
        )
        self._capacities: List[int] = [r.capacity for r in self.rooms]

        self._bounds: Dict[str, Tuple[datetime, datetime]] = {
            t.id: _parse_bounds(t) for t in self._timeslots_by_id.values()
        }
        self.timeslots: List[Timeslot] = sorted(
            self._timeslots_by_id.values(), key=lambda t: (self._bounds[t.id], t.id)
        )
        self._positions: Dict[str, int] = {t.id: i for i, t in enumerate(self.timeslots)}

    # ===========================
    # Lookups
    # ===========================

    def has_room(self, room_id: str) -> bool:
        return room_id in self._rooms_by_id

    def has_timeslot(self, timeslot_id: str) -> bool:
        return timeslot_id in self._timeslots_by_id

    def capacity_of(self, room_id: str) -> int:
        return self._rooms_by_id[room_id].capacity

    @property
    def max_capacity(self) -> int:
        return self._capacities[-1] if self._capacities else 0

    def position_of(self, timeslot_id: str) -> Optional[int]:
        """Chronological position of a timeslot, None when unknown."""
        return self._positions.get(timeslot_id)

    # ===========================
    # Scan Order
    # ===========================

    def rooms_at(self, timeslot_id: str, seats: int = 1) -> List[Room]:
        """Rooms bookable at a timeslot that seat at least ``seats``, smallest first."""
        if timeslot_id not in self._timeslots_by_id:
            return []
        return self.rooms_fitting(seats)

    def rooms_fitting(self, seats: int) -> List[Room]:
        """Rooms with capacity >= seats, smallest first."""
        return self.rooms[bisect_left(self._capacities, seats):]

    def eligible_timeslots(self, exam: Exam) -> List[Timeslot]:
        """Timeslots an exam may use, in chronological order."""
        if exam.eligible_timeslots is None:
            return list(self.timeslots)
        allowed = set(exam.eligible_timeslots)
        return [t for t in self.timeslots if t.id in allowed]


def _index_by_id(entities: Iterable[T], kind: str) -> Dict[str, T]:
    indexed: Dict[str, T] = {}
    for entity in entities:
        if entity.id in indexed:
            raise DuplicateIdentifier(kind, entity.id)
        indexed[entity.id] = entity
    return indexed


def _parse_time(time_str: str):
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(time_str, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time {time_str!r}")


def _parse_bounds(timeslot: Timeslot) -> Tuple[datetime, datetime]:
    """Parse a timeslot's date and HH:MM markers into datetimes."""
    try:
        day = datetime.strptime(timeslot.date, "%Y-%m-%d").date()
        start = datetime.combine(day, _parse_time(timeslot.start_time))
        end = datetime.combine(day, _parse_time(timeslot.end_time))
    except ValueError:
        raise InvalidInput(
            f"Timeslot {timeslot.id} has invalid date/time markers. "
            f"Use YYYY-MM-DD and HH:MM (e.g., '2025-06-02', '09:00')."
        )
    if end <= start:
        raise InvalidInput(
            f"Timeslot {timeslot.id}: start time ({timeslot.start_time}) must be before "
            f"end time ({timeslot.end_time})"
        )
    return start, end


@lru_cache(maxsize=None)
def timeslot_minutes(timeslot: Timeslot) -> int:
    """Length of a timeslot in minutes. Timeslots are frozen, so the result is cached."""
    start, end = _parse_bounds(timeslot)
    return int((end - start).total_seconds() // 60)
