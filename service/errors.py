"""
Exception hierarchy for the scheduling core.

User errors (bad input) and internal invariant violations are kept apart so
the API can report the former as 422 and surface the latter as 500.
Per-exam placement failures are not exceptions; they end up in the report.
"""


class SchedulingError(Exception):
    """Base class for every fatal scheduling error."""

    code = "SCHEDULING_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(SchedulingError):
    """Malformed entity: empty identifier, non-positive capacity, bad time marker."""

    code = "INVALID_INPUT"

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class DuplicateIdentifier(SchedulingError):
    """An entity set contains the same identifier more than once."""

    code = "DUPLICATE_IDENTIFIER"

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"Duplicate {kind} identifier: {identifier!r}")
        self.kind = kind
        self.identifier = identifier


class MissingInputData(SchedulingError):
    """The data-access collaborator has nothing to schedule for an owner."""

    code = "MISSING_INPUT_DATA"


class SchedulingCancelled(SchedulingError):
    """The run passed its deadline before every exam was processed."""

    code = "SCHEDULING_CANCELLED"


class SolverTimeout(SchedulingError):
    """The CP-SAT solver produced no solution within its time limit."""

    code = "SOLVER_TIMEOUT"


class InternalInvariantError(SchedulingError):
    """A core invariant was violated. Always a bug, never retried."""

    code = "INTERNAL_INVARIANT_VIOLATION"


class AlreadyConsumed(InternalInvariantError):
    code = "ALREADY_CONSUMED"

    def __init__(self, room_id: str, timeslot_id: str):
        super().__init__(f"Slot ({room_id}, {timeslot_id}) consumed twice")
        self.room_id = room_id
        self.timeslot_id = timeslot_id


class IncompleteReport(InternalInvariantError):
    code = "INCOMPLETE_REPORT"
