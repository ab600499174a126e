"""
Test the scheduling core: scenarios, invariants and error handling.
"""
import random
import time

import pytest

from models.schemas import Assignment, Exam, FailureReason, Room, Slot, Timeslot
from service.errors import DuplicateIdentifier, InvalidInput, SchedulingCancelled
from service.predicates import duration_fits
from service.scheduler import ExamScheduler, RunState, schedule


def exam(exam_id, seats, **kwargs):
    return Exam(id=exam_id, students_count=seats, **kwargs)


def room(room_id, capacity):
    return Room(id=room_id, capacity=capacity)


def timeslot(ts_id, start="09:00", end="11:00", date="2025-06-02"):
    return Timeslot(id=ts_id, date=date, start_time=start, end_time=end)


def two_timeslots():
    return [timeslot("T1", "09:00", "11:00"), timeslot("T2", "13:00", "15:00")]


def random_instance(rng, n_exams=12, n_rooms=4, n_timeslots=3):
    exams = [exam(f"E{i:02d}", rng.randint(5, 120)) for i in range(n_exams)]
    rooms = [room(f"R{i:02d}", rng.randint(10, 100)) for i in range(n_rooms)]
    timeslots = [
        timeslot(f"T{i:02d}", f"{8 + i:02d}:00", f"{8 + i:02d}:45")
        for i in range(n_timeslots)
    ]
    return exams, rooms, timeslots


def assert_report_invariants(report, exams, rooms):
    capacities = {r.id: r.capacity for r in rooms}
    seats = {e.id: e.students_count for e in exams}

    reported = [a.exam_id for a in report.assignments] + [f.exam_id for f in report.failures]
    assert sorted(reported) == sorted(seats), "Every exam must be reported exactly once"

    for assignment in report.assignments:
        assert capacities[assignment.room_id] >= seats[assignment.exam_id]
        assert assignment.status == "scheduled"

    slots = [(a.room_id, a.timeslot_id) for a in report.assignments]
    assert len(slots) == len(set(slots)), "Room double-booked"


# ===========================
# Reference scenarios
# ===========================

def test_single_exam_fits_single_slot():
    report = schedule([exam("E1", 30)], [room("R1", 30)], [timeslot("T1")])

    assert report.assignments == [Assignment(exam_id="E1", room_id="R1", timeslot_id="T1")]
    assert report.failures == []
    assert report.scheduled == 1
    assert report.total == 1


def test_exam_larger_than_every_room():
    report = schedule([exam("E1", 40)], [room("R1", 30)], [timeslot("T1")])

    assert report.assignments == []
    assert len(report.failures) == 1
    assert report.failures[0].exam_id == "E1"
    assert report.failures[0].reason == FailureReason.NO_ROOM_LARGE_ENOUGH


def test_two_exams_compete_for_one_slot():
    report = schedule(
        [exam("E2", 20), exam("E1", 20)],
        [room("R1", 20)],
        [timeslot("T1")],
    )

    # Equal sizes: ascending identifier decides
    assert [a.exam_id for a in report.assignments] == ["E1"]
    assert [(f.exam_id, f.reason) for f in report.failures] == [
        ("E2", FailureReason.ALL_SUITABLE_SLOTS_TAKEN)
    ]


def test_larger_exam_placed_first_and_keeps_earliest_timeslot():
    report = schedule(
        [exam("E1", 20), exam("E2", 50)],
        [room("R1", 50)],
        two_timeslots(),
    )

    assert report.failures == []
    assert report.assignments == [
        Assignment(exam_id="E2", room_id="R1", timeslot_id="T1"),
        Assignment(exam_id="E1", room_id="R1", timeslot_id="T2"),
    ]


def test_duplicate_room_identifier_rejected():
    with pytest.raises(DuplicateIdentifier) as excinfo:
        schedule([exam("E1", 10)], [room("R1", 30), room("R1", 40)], [timeslot("T1")])
    assert excinfo.value.kind == "room"
    assert excinfo.value.identifier == "R1"


# ===========================
# Selection rule
# ===========================

def test_smallest_sufficient_room_is_chosen():
    report = schedule(
        [exam("E1", 25)],
        [room("BIG", 100), room("SMALL", 30), room("TINY", 10)],
        [timeslot("T1")],
    )
    assert report.assignments[0].room_id == "SMALL"


def test_timeslots_scanned_chronologically_regardless_of_input_order():
    timeslots = [
        timeslot("LATE", "13:00", "15:00", date="2025-06-03"),
        timeslot("EARLY", "09:00", "11:00", date="2025-06-02"),
        timeslot("MIDDAY", "13:00", "15:00", date="2025-06-02"),
    ]
    report = schedule([exam("E1", 10)], [room("R1", 10)], timeslots)
    assert report.assignments[0].timeslot_id == "EARLY"


def test_eligible_timeslots_are_respected():
    report = schedule(
        [exam("E1", 10, eligible_timeslots=["T2"])],
        [room("R1", 10)],
        two_timeslots(),
    )
    assert report.assignments == [Assignment(exam_id="E1", room_id="R1", timeslot_id="T2")]


def test_eligible_timeslots_that_do_not_exist():
    report = schedule(
        [exam("E1", 10, eligible_timeslots=["T9"])],
        [room("R1", 10)],
        two_timeslots(),
    )
    assert report.failures[0].reason == FailureReason.NO_ELIGIBLE_TIMESLOT


def test_no_timeslots_at_all():
    report = schedule([exam("E1", 10)], [room("R1", 10)], [])
    assert report.failures[0].reason == FailureReason.NO_ELIGIBLE_TIMESLOT


def test_no_rooms_at_all():
    report = schedule([exam("E1", 10)], [], [timeslot("T1")])
    assert report.failures[0].reason == FailureReason.NO_ROOM_LARGE_ENOUGH


def test_no_exams_gives_empty_report():
    report = schedule([], [room("R1", 10)], [timeslot("T1")])
    assert report.assignments == []
    assert report.failures == []
    assert report.total == 0


def test_room_large_enough_only_in_taken_timeslots():
    report = schedule(
        [exam("E1", 50), exam("E2", 45, eligible_timeslots=["T1"])],
        [room("R1", 50), room("R2", 10)],
        two_timeslots(),
    )
    assert report.assignments == [Assignment(exam_id="E1", room_id="R1", timeslot_id="T1")]
    assert report.failures[0].exam_id == "E2"
    assert report.failures[0].reason == FailureReason.ALL_SUITABLE_SLOTS_TAKEN


# ===========================
# Pre-consumed slots (incremental mode)
# ===========================

def test_already_consumed_slots_are_skipped():
    report = schedule(
        [exam("E1", 10)],
        [room("R1", 10)],
        two_timeslots(),
        already_consumed=[Slot(room_id="R1", timeslot_id="T1")],
    )
    assert report.assignments == [Assignment(exam_id="E1", room_id="R1", timeslot_id="T2")]


def test_already_consumed_everything():
    report = schedule(
        [exam("E1", 10)],
        [room("R1", 10)],
        [timeslot("T1")],
        already_consumed=[Slot(room_id="R1", timeslot_id="T1")],
    )
    assert report.failures[0].reason == FailureReason.ALL_SUITABLE_SLOTS_TAKEN


def test_already_consumed_unknown_room():
    with pytest.raises(InvalidInput):
        schedule(
            [exam("E1", 10)],
            [room("R1", 10)],
            [timeslot("T1")],
            already_consumed=[Slot(room_id="R9", timeslot_id="T1")],
        )


def test_already_consumed_repeated_slot():
    with pytest.raises(DuplicateIdentifier):
        schedule(
            [exam("E1", 10)],
            [room("R1", 10)],
            [timeslot("T1")],
            already_consumed=[Slot(room_id="R1", timeslot_id="T1")] * 2,
        )


# ===========================
# Input validation
# ===========================

@pytest.mark.parametrize("exams, rooms, timeslots", [
    ([exam("E1", 0)], [room("R1", 10)], [timeslot("T1")]),
    ([exam("E1", -5)], [room("R1", 10)], [timeslot("T1")]),
    ([exam("E1", 10)], [room("R1", 0)], [timeslot("T1")]),
    ([exam("", 10)], [room("R1", 10)], [timeslot("T1")]),
    ([exam("E1", 10)], [room("  ", 10)], [timeslot("T1")]),
    ([exam("E1", 10)], [room("R1", 10)], [timeslot("")]),
    ([exam("E1", 10, duration=0)], [room("R1", 10)], [timeslot("T1")]),
    ([exam("E1", 10)], [room("R1", 10)], [timeslot("T1", "11:00", "09:00")]),
    ([exam("E1", 10)], [room("R1", 10)], [timeslot("T1", "9am", "11am")]),
    ([exam("E1", 10)], [room("R1", 10)], [timeslot("T1", date="02/06/2025")]),
])
def test_invalid_input_aborts_run(exams, rooms, timeslots):
    with pytest.raises(InvalidInput):
        schedule(exams, rooms, timeslots)


def test_invalid_input_lists_every_problem():
    with pytest.raises(InvalidInput) as excinfo:
        schedule([exam("E1", 0)], [room("R1", -1)], [timeslot("T1")])
    assert len(excinfo.value.errors) == 2


def test_duplicate_exam_identifier_rejected():
    with pytest.raises(DuplicateIdentifier) as excinfo:
        schedule([exam("E1", 10), exam("E1", 20)], [room("R1", 30)], [timeslot("T1")])
    assert excinfo.value.kind == "exam"


def test_duplicate_timeslot_identifier_rejected():
    with pytest.raises(DuplicateIdentifier) as excinfo:
        schedule([exam("E1", 10)], [room("R1", 30)], [timeslot("T1"), timeslot("T1", "13:00", "15:00")])
    assert excinfo.value.kind == "timeslot"


def test_seconds_in_time_markers_are_accepted():
    report = schedule([exam("E1", 10)], [room("R1", 10)], [timeslot("T1", "09:00:00", "11:00:00")])
    assert report.scheduled == 1


# ===========================
# Feasibility predicates
# ===========================

def test_duration_is_ignored_by_default():
    report = schedule([exam("E1", 10, duration=240)], [room("R1", 10)], [timeslot("T1")])
    assert report.scheduled == 1


def test_duration_predicate_skips_short_timeslots():
    timeslots = [timeslot("SHORT", "09:00", "11:00"), timeslot("LONG", "13:00", "16:00")]
    report = schedule(
        [exam("E1", 10, duration=180)],
        [room("R1", 10)],
        timeslots,
        predicates=[duration_fits],
    )
    assert report.assignments[0].timeslot_id == "LONG"


def test_predicate_rejection_is_reported_as_no_feasible_slot():
    report = schedule(
        [exam("E1", 10, duration=180)],
        [room("R1", 10)],
        [timeslot("T1", "09:00", "11:00")],
        predicates=[duration_fits],
    )
    assert report.failures[0].reason == FailureReason.NO_FEASIBLE_SLOT


# ===========================
# Ordering policies
# ===========================

def test_priority_ordering_changes_who_gets_the_room():
    exams = [exam("BIG", 50, priority=0), exam("SMALL", 20, priority=5)]
    report = schedule(exams, [room("R1", 50)], [timeslot("T1")], ordering="priority")

    assert [a.exam_id for a in report.assignments] == ["SMALL"]
    assert report.failures[0].exam_id == "BIG"
    assert report.ordering == "priority"


def test_custom_ordering_callable():
    def reverse_ids(exams, index):
        return sorted(exams, key=lambda e: e.id, reverse=True)

    report = schedule(
        [exam("A", 10), exam("B", 10)],
        [room("R1", 10)],
        [timeslot("T1")],
        ordering=reverse_ids,
    )
    assert [a.exam_id for a in report.assignments] == ["B"]
    assert report.ordering == "reverse_ids"


def test_ordering_that_drops_exams_is_rejected():
    with pytest.raises(InvalidInput):
        schedule(
            [exam("A", 10), exam("B", 10)],
            [room("R1", 10)],
            [timeslot("T1")],
            ordering=lambda exams, index: list(exams)[:1],
        )


def test_unknown_ordering_and_strategy():
    with pytest.raises(InvalidInput):
        schedule([exam("E1", 10)], [room("R1", 10)], [timeslot("T1")], ordering="alphabetical")
    with pytest.raises(InvalidInput):
        schedule([exam("E1", 10)], [room("R1", 10)], [timeslot("T1")], strategy="random")


# ===========================
# Run lifecycle
# ===========================

def test_run_reaches_finalized_and_is_single_use():
    scheduler = ExamScheduler()
    scheduler.run([exam("E1", 10)], [room("R1", 10)], [timeslot("T1")])
    assert scheduler.state is RunState.FINALIZED

    with pytest.raises(RuntimeError):
        scheduler.run([exam("E1", 10)], [room("R1", 10)], [timeslot("T1")])


def test_passed_deadline_cancels_run():
    with pytest.raises(SchedulingCancelled):
        schedule(
            [exam("E1", 10)],
            [room("R1", 10)],
            [timeslot("T1")],
            deadline=time.monotonic() - 1,
        )


# ===========================
# Properties
# ===========================

@pytest.mark.parametrize("seed", range(10))
def test_report_invariants_hold(seed):
    rng = random.Random(seed)
    exams, rooms, timeslots = random_instance(rng)
    report = schedule(exams, rooms, timeslots)
    assert_report_invariants(report, exams, rooms)


@pytest.mark.parametrize("seed", range(5))
def test_report_invariants_hold_with_restrictions(seed):
    rng = random.Random(seed)
    exams, rooms, timeslots = random_instance(rng)
    timeslot_ids = [t.id for t in timeslots]
    exams = [
        e.model_copy(update={"eligible_timeslots": rng.sample(timeslot_ids, 1)}) if rng.random() < 0.5 else e
        for e in exams
    ]
    consumed = [Slot(room_id=rooms[0].id, timeslot_id=timeslot_ids[0])]
    report = schedule(exams, rooms, timeslots, consumed)

    assert_report_invariants(report, exams, rooms)
    assert (rooms[0].id, timeslot_ids[0]) not in {(a.room_id, a.timeslot_id) for a in report.assignments}


@pytest.mark.parametrize("seed", range(5))
def test_identical_inputs_give_identical_reports(seed):
    rng = random.Random(seed)
    exams, rooms, timeslots = random_instance(rng)

    first = schedule(exams, rooms, timeslots)
    second = schedule(exams, rooms, timeslots)
    assert first.model_dump_json() == second.model_dump_json()

    shuffled = [list(exams), list(rooms), list(timeslots)]
    for items in shuffled:
        rng.shuffle(items)
    third = schedule(*shuffled)
    assert first.model_dump_json() == third.model_dump_json()


@pytest.mark.parametrize("seed", range(10))
def test_adding_resources_never_decreases_scheduled_count(seed):
    rng = random.Random(seed)
    exams, rooms, timeslots = random_instance(rng, n_exams=15)
    baseline = schedule(exams, rooms, timeslots).scheduled

    more_rooms = rooms + [room("EXTRA", rng.randint(10, 120))]
    assert schedule(exams, more_rooms, timeslots).scheduled >= baseline

    more_timeslots = timeslots + [timeslot("EXTRA", "07:00", "07:45")]
    assert schedule(exams, rooms, more_timeslots).scheduled >= baseline
