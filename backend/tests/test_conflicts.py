import pytest

from guardduty.core.exceptions import ScheduleConflictError
from guardduty.services.conflicts import SlotWindow, detect_conflicts, find_conflicts, overlaps


def window(slot_id, start, end, *, teacher="t-1", klass="c-1", room=None, day=0):
    return SlotWindow(
        id=slot_id,
        day_of_week=day,
        start_minute=start,
        end_minute=end,
        teacher_id=teacher,
        class_id=klass,
        room=room,
    )


def test_overlaps_is_half_open():
    assert overlaps(540, 600, 570, 630)
    assert overlaps(540, 660, 570, 600)
    assert not overlaps(540, 600, 600, 660)
    assert not overlaps(600, 660, 540, 600)


def test_back_to_back_slots_do_not_conflict():
    existing = [window("s1", 540, 600)]
    assert detect_conflicts(window(None, 600, 660), existing) == []


def test_other_days_are_ignored():
    existing = [window("s1", 540, 600, day=1)]
    assert detect_conflicts(window(None, 540, 600, day=0), existing) == []


def test_teacher_and_class_dimensions_are_reported_separately():
    existing = [window("s1", 540, 600, teacher="t-1", klass="c-1")]
    conflicts = detect_conflicts(window(None, 570, 630, teacher="t-1", klass="c-1"), existing)
    assert [item.dimension for item in conflicts] == ["teacher", "class"]
    assert all(item.slot.id == "s1" for item in conflicts)


def test_room_only_checked_when_candidate_has_one():
    existing = [window("s1", 540, 600, teacher="t-2", klass="c-2", room="A1")]
    assert detect_conflicts(window(None, 540, 600, room=None), existing) == []
    assert detect_conflicts(window(None, 540, 600, room="   "), existing) == []
    conflicts = detect_conflicts(window(None, 540, 600, room=" A1 "), existing)
    assert [item.dimension for item in conflicts] == ["room"]
    assert [item.dimension for item in detect_conflicts(window(None, 540, 600, room="a1"), existing)] == ["room"]


def test_results_ordered_by_dimension_then_start():
    existing = [
        window("late-room", 600, 660, teacher="t-9", klass="c-9", room="A1"),
        window("late-teacher", 600, 660, teacher="t-1", klass="c-8"),
        window("early-teacher", 540, 600, teacher="t-1", klass="c-7"),
        window("class", 570, 610, teacher="t-5", klass="c-1"),
    ]
    conflicts = detect_conflicts(window(None, 540, 660, room="A1"), existing)
    assert [(item.dimension, item.slot.id) for item in conflicts] == [
        ("teacher", "early-teacher"),
        ("teacher", "late-teacher"),
        ("class", "class"),
        ("room", "late-room"),
    ]


def test_exclude_slot_id_skips_the_slot_being_edited():
    existing = [window("s1", 540, 600)]
    assert detect_conflicts(window("s1", 540, 600), existing, exclude_slot_id="s1") == []


def test_dimensions_can_be_restricted():
    existing = [window("s1", 540, 600, teacher="t-2", klass="c-1")]
    assert detect_conflicts(window(None, 540, 600), existing, dimensions=("teacher",)) == []


def test_unknown_dimension_is_rejected():
    with pytest.raises(ValueError):
        detect_conflicts(window(None, 540, 600), [], dimensions=("building",))


def test_conflict_error_carries_serialised_conflicts():
    conflicts = detect_conflicts(window(None, 540, 600), [window("s1", 570, 630)])
    error = ScheduleConflictError(conflicts)
    assert error.status_code == 409
    assert error.conflicts == conflicts
    payload = error.details["conflicts"][0]
    assert payload["dimension"] == "teacher"
    assert payload["slot"]["start_time"] == "09:30"
    assert "Monday 09:30 - 10:30" in payload["message"]


def test_find_conflicts_is_scoped_to_the_institute(db, seed):
    first = seed.institute("First")
    second = seed.institute("Second")
    teacher = seed.teacher(first, "Anna")
    other_teacher = seed.teacher(second, "Bruno")
    group = seed.class_group(first, "1A")
    other_group = seed.class_group(second, "1B")
    maths = seed.subject(first, "Maths")
    seed.slot(teacher, group, maths, 0, "09:00", "10:00", room="A1")
    seed.slot(other_teacher, other_group, maths, 0, "09:00", "10:00", room="A1")

    candidate = window(None, 540, 600, teacher="nobody", klass="nothing", room="A1")
    conflicts = find_conflicts(db, candidate, institute_id=first.id)
    assert len(conflicts) == 1
    assert conflicts[0].slot.teacher_id == teacher.id
