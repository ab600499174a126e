"""
Conflict tracker: the set of consumed (room, timeslot) slots for one run.
"""
from typing import Iterable, Set, Tuple

from service.errors import AlreadyConsumed


class ConflictTracker:
    """Owned by a single scheduling run and never shared between runs."""

    def __init__(self, already_consumed: Iterable[Tuple[str, str]] = ()):
        self._consumed: Set[Tuple[str, str]] = set()
        for room_id, timeslot_id in already_consumed:
            self.consume(room_id, timeslot_id)

    def is_consumed(self, room_id: str, timeslot_id: str) -> bool:
        return (room_id, timeslot_id) in self._consumed

    def consume(self, room_id: str, timeslot_id: str) -> None:
        """Mark a slot as taken. A second consume of the same slot is a bug."""
        key = (room_id, timeslot_id)
        if key in self._consumed:
            raise AlreadyConsumed(room_id, timeslot_id)
        self._consumed.add(key)
