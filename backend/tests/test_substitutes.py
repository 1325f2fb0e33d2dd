from guardduty.models import GuardDuty, GuardDutyStatus
from guardduty.services.conflicts import SlotWindow
from guardduty.services.substitutes import (
    TeacherCandidate,
    find_substitute,
    is_available,
    is_subject_match,
    select_substitute,
)


def candidate(teacher_id, workload, *, subjects=(), busy=()):
    return TeacherCandidate(
        teacher_id=teacher_id,
        display_name=teacher_id.title(),
        workload_score=workload,
        day_of_week=0,
        subject_ids=frozenset(subjects),
        busy=tuple(
            SlotWindow(id=f"{teacher_id}-{start}", day_of_week=0, start_minute=start, end_minute=end, teacher_id=teacher_id)
            for start, end in busy
        ),
    )


def test_predicates():
    maths_teacher = candidate("carla", 1, subjects={"maths"}, busy=[(540, 600)])
    assert is_subject_match(maths_teacher, "maths")
    assert not is_subject_match(maths_teacher, "history")
    assert not is_subject_match(maths_teacher, None)
    assert not is_available(maths_teacher, 570, 630)
    assert is_available(maths_teacher, 600, 660)


def test_subject_match_wins_over_lower_workload():
    match = select_substitute(
        [candidate("bruno", 3), candidate("carla", 6, subjects={"maths"})],
        "maths",
        540,
        600,
    )
    assert match.teacher_id == "carla"
    assert match.reason == "same_subject"


def test_lowest_workload_within_tier_then_teacher_id():
    match = select_substitute(
        [candidate("zoe", 2, subjects={"maths"}), candidate("adam", 2, subjects={"maths"}), candidate("max", 5, subjects={"maths"})],
        "maths",
        540,
        600,
    )
    assert match.teacher_id == "adam"


def test_falls_back_to_any_available_teacher():
    match = select_substitute(
        [candidate("bruno", 3), candidate("carla", 1, subjects={"maths"}, busy=[(540, 600)])],
        "maths",
        540,
        600,
    )
    assert match.teacher_id == "bruno"
    assert match.reason == "available"


def test_excluded_and_busy_teachers_are_never_returned():
    candidates = [
        candidate("anna", 0, subjects={"maths"}),
        candidate("bruno", 1, busy=[(500, 560)]),
    ]
    assert select_substitute(candidates, "maths", 540, 600, exclude_teacher_ids={"anna"}) is None


def test_extra_periods_must_be_free_too():
    candidates = [
        candidate("carla", 1, subjects={"maths"}, busy=[(660, 720)]),
        candidate("bruno", 3),
    ]
    assert select_substitute(candidates, "maths", 540, 600).teacher_id == "carla"

    match = select_substitute(candidates, "maths", 540, 600, extra_periods=[(660, 720)])
    assert match.teacher_id == "bruno"
    assert match.reason == "available"


def test_find_substitute_reads_subjects_from_timetable(db, seed):
    institute = seed.institute()
    anna = seed.teacher(institute, "Anna")
    bruno = seed.teacher(institute, "Bruno", workload=3)
    carla = seed.teacher(institute, "Carla", workload=6)
    seed.teacher(institute, "Retired", is_active=False)
    group = seed.class_group(institute, "1A")
    other_group = seed.class_group(institute, "2B")
    maths = seed.subject(institute, "Maths")
    seed.slot(anna, group, maths, 0, "09:00", "10:00")
    seed.slot(carla, other_group, maths, 2, "12:00", "13:00")

    match = find_substitute(
        db,
        subject_id=maths.id,
        day_of_week=0,
        start_minute=540,
        end_minute=600,
        institute_id=institute.id,
        exclude_teacher_id=anna.id,
    )
    assert match.teacher_id == carla.id
    assert match.reason == "same_subject"

    fallback = find_substitute(
        db,
        subject_id=maths.id,
        day_of_week=0,
        start_minute=540,
        end_minute=600,
        institute_id=institute.id,
        exclude_teacher_id=anna.id,
        also_exclude=[carla.id],
    )
    assert fallback.teacher_id == bruno.id
    assert fallback.reason == "available"


def test_find_substitute_counts_guard_duties_on_the_same_date(db, seed, monday):
    institute = seed.institute()
    anna = seed.teacher(institute, "Anna")
    bruno = seed.teacher(institute, "Bruno")
    group = seed.class_group(institute, "1A")
    maths = seed.subject(institute, "Maths")
    db.add(
        GuardDuty(
            institute_id=institute.id,
            activity_id="earlier-activity",
            original_teacher_id="someone-else",
            substitute_teacher_id=bruno.id,
            class_id=group.id,
            date=monday,
            start_minute=540,
            end_minute=600,
            status=GuardDutyStatus.assigned,
        )
    )
    db.commit()

    kwargs = dict(
        subject_id=maths.id,
        day_of_week=0,
        start_minute=570,
        end_minute=630,
        institute_id=institute.id,
        exclude_teacher_id=anna.id,
    )
    assert find_substitute(db, **kwargs).teacher_id == bruno.id
    assert find_substitute(db, on_date=monday, **kwargs) is None
