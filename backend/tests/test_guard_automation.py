import datetime as dt

import pytest
from sqlalchemy import select

from guardduty.core.config import Settings
from guardduty.core.exceptions import (
    InvalidInputError,
    NotificationDeliveryError,
    ResourceNotFoundError,
)
from guardduty.models import (
    AuditLog,
    GuardDuty,
    GuardDutyStatus,
    Notification,
    NotificationAudience,
    NotificationEvent,
    Teacher,
)
from guardduty.services import guard_automation
from guardduty.services.guard_automation import GuardAutomationService
from guardduty.services.notifications import NotificationDispatcher


def scores(db):
    db.expire_all()
    return {item.display_name: item.workload_score for item in db.execute(select(Teacher)).scalars()}


def duties(db):
    return list(db.execute(select(GuardDuty).order_by(GuardDuty.date.asc())).scalars())


@pytest.fixture()
def school(seed, monday):
    institute = seed.institute()
    maths = seed.subject(institute, "Maths")
    history = seed.subject(institute, "History")
    class_x = seed.class_group(institute, "Class X", students=["s1", "s2", "s3", "s4"])
    class_y = seed.class_group(institute, "Class Y")
    anna = seed.teacher(institute, "Teacher A")
    bruno = seed.teacher(institute, "Teacher B", workload=3)
    carla = seed.teacher(institute, "Teacher C", workload=6)
    # Teacher A teaches Maths to Class X on Monday and Tuesday.
    seed.slot(anna, class_x, maths, 0, "09:00", "10:00")
    seed.slot(anna, class_x, maths, 1, "09:00", "10:00")
    # Teacher C teaches Maths elsewhere in the week; Teacher B never does.
    seed.slot(carla, class_y, maths, 3, "11:00", "12:00")
    seed.slot(bruno, class_y, history, 3, "09:00", "10:00")
    activity = seed.activity(
        institute,
        monday,
        monday + dt.timedelta(days=1),
        supervisors=[anna],
        students=["s1", "s2"],
    )
    return {
        "institute": institute,
        "maths": maths,
        "class_x": class_x,
        "class_y": class_y,
        "anna": anna,
        "bruno": bruno,
        "carla": carla,
        "activity": activity,
    }


def test_scenario_same_subject_teacher_takes_both_days(db, school, settings):
    summary = GuardAutomationService(db, settings=settings).assign_for_activity(school["activity"].id)

    assert summary["total_guards_needed"] == 2
    assert summary["guards_assigned"] == 2
    assert summary["guards_pending"] == 0
    rows = duties(db)
    assert [row.status for row in rows] == [GuardDutyStatus.assigned, GuardDutyStatus.assigned]
    assert {row.substitute_teacher_id for row in rows} == {school["carla"].id}
    assert scores(db) == {"Teacher A": 0, "Teacher B": 3, "Teacher C": 8}

    detail = summary["details"][0]
    assert detail["original_teacher"] == "Teacher A"
    assert detail["substitute_teacher"] == "Teacher C"
    assert detail["class_info"] == "Class X - Maths"
    assert detail["time_slot"] == "09:00 - 10:00"
    assert detail["status"] == "assigned"
    assert detail["reason"] == "same_subject"
    assert detail["students_remaining"] == 2


def test_scenario_busy_specialist_falls_back_on_that_day(db, seed, school, settings, monday):
    seed.slot(school["carla"], school["class_y"], school["maths"], 0, "09:00", "10:00")

    GuardAutomationService(db, settings=settings).assign_for_activity(school["activity"].id)

    monday_duty, tuesday_duty = duties(db)
    assert monday_duty.date == monday
    assert monday_duty.substitute_teacher_id == school["bruno"].id
    assert monday_duty.assignment_reason.value == "available"
    assert tuesday_duty.substitute_teacher_id == school["carla"].id
    assert tuesday_duty.assignment_reason.value == "same_subject"
    assert scores(db) == {"Teacher A": 0, "Teacher B": 4, "Teacher C": 7}


def test_scenario_nobody_available_escalates_once(db, seed, school, settings):
    seed.slot(school["carla"], school["class_y"], school["maths"], 0, "09:00", "10:00")
    seed.slot(school["bruno"], school["class_y"], school["maths"], 0, "08:30", "09:30")

    summary = GuardAutomationService(db, settings=settings).assign_for_activity(school["activity"].id)

    assert summary["guards_pending"] == 1
    assert summary["guards_assigned"] == 1
    monday_duty = duties(db)[0]
    assert monday_duty.status == GuardDutyStatus.pending_assignment
    assert monday_duty.substitute_teacher_id is None

    escalations = db.execute(
        select(Notification).where(
            Notification.guard_duty_id == monday_duty.id,
            Notification.event == NotificationEvent.guard_assignment_failed,
        )
    ).scalars().all()
    assert len(escalations) == 1
    assert escalations[0].audience == NotificationAudience.management
    assert escalations[0].recipient_teacher_id is None
    assert scores(db)["Teacher B"] == 3


def test_escalation_is_addressed_to_managers(db, seed, school, settings):
    manager = seed.teacher(school["institute"], "Head of Studies", is_manager=True)
    for teacher in (school["bruno"], school["carla"], manager):
        seed.slot(teacher, school["class_y"], school["maths"], 0, "09:00", "10:00")

    GuardAutomationService(db, settings=settings).assign_for_activity(school["activity"].id)

    escalation = db.execute(
        select(Notification).where(Notification.event == NotificationEvent.guard_assignment_failed)
    ).scalar_one()
    assert escalation.recipient_teacher_id == manager.id


def test_assigned_substitute_is_notified(db, school, settings):
    GuardAutomationService(db, settings=settings).assign_for_activity(school["activity"].id)

    notes = db.execute(select(Notification).where(Notification.event == NotificationEvent.guard_assigned)).scalars().all()
    assert len(notes) == 2
    assert {note.recipient_teacher_id for note in notes} == {school["carla"].id}
    assert {note.guard_duty_id for note in notes} == {row.id for row in duties(db)}


def test_weekend_only_activity_needs_no_guards(db, seed, school, settings):
    saturday = dt.date(2024, 3, 9)
    activity = seed.activity(
        school["institute"], saturday, saturday + dt.timedelta(days=1), supervisors=[school["anna"]]
    )

    summary = GuardAutomationService(db, settings=settings).assign_for_activity(activity.id)

    assert summary["total_guards_needed"] == 0
    assert summary["details"] == []
    assert duties(db) == []


def test_supervisor_without_slots_contributes_nothing(db, seed, school, settings, monday):
    activity = seed.activity(school["institute"], monday, monday, supervisors=[school["bruno"]])

    summary = GuardAutomationService(db, settings=settings).assign_for_activity(activity.id)

    assert summary["total_guards_needed"] == 0
    assert duties(db) == []


def test_missing_activity_aborts_before_writes(db, school, settings):
    with pytest.raises(ResourceNotFoundError):
        GuardAutomationService(db, settings=settings).assign_for_activity("missing")
    assert duties(db) == []
    assert db.execute(select(AuditLog)).scalars().all() == []


def test_inverted_activity_dates_are_rejected(db, seed, school, settings, monday):
    activity = seed.activity(school["institute"], monday, monday - dt.timedelta(days=1), supervisors=[school["anna"]])
    with pytest.raises(InvalidInputError):
        GuardAutomationService(db, settings=settings).assign_for_activity(activity.id)
    assert duties(db) == []


def test_rerun_fills_gaps_without_duplicates(db, school, settings):
    service = GuardAutomationService(db, settings=settings)
    first = service.assign_for_activity(school["activity"].id)
    second = service.assign_for_activity(school["activity"].id)

    assert len(duties(db)) == 2
    assert scores(db)["Teacher C"] == 8
    assert second["guards_assigned"] == first["guards_assigned"] == 2
    assert [item["guard_id"] for item in second["details"]] == [item["guard_id"] for item in first["details"]]


def test_co_supervisors_are_not_picked(db, seed, school, settings):
    colleague = seed.teacher(school["institute"], "Teacher D")
    # Teacher D teaches Maths with the lowest workload but is away too.
    seed.slot(colleague, school["class_y"], school["maths"], 4, "09:00", "10:00")
    activity = seed.activity(
        school["institute"],
        school["activity"].start_date,
        school["activity"].end_date,
        supervisors=[school["anna"], colleague],
    )

    GuardAutomationService(db, settings=settings).assign_for_activity(activity.id)

    assert colleague.id not in {row.substitute_teacher_id for row in duties(db)}


def test_slot_failure_is_isolated(db, school, settings, monkeypatch):
    real_find = guard_automation.find_substitute
    calls = {"count": 0}

    def flaky_find(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("directory unavailable")
        return real_find(*args, **kwargs)

    monkeypatch.setattr(guard_automation, "find_substitute", flaky_find)
    service = GuardAutomationService(db, settings=settings)
    summary = service.assign_for_activity(school["activity"].id)

    assert [item["status"] for item in summary["details"]] == ["error", "assigned"]
    assert summary["details"][0]["reason"] == "directory unavailable"
    assert summary["total_guards_needed"] == 2
    assert len(duties(db)) == 1

    monkeypatch.setattr(guard_automation, "find_substitute", real_find)
    service.assign_for_activity(school["activity"].id)
    assert len(duties(db)) == 2


def test_double_period_needs_a_substitute_free_for_both(db, seed, school, settings, monday):
    seed.slot(school["anna"], school["class_x"], school["maths"], 0, "11:00", "12:00")
    # Teacher C is the Maths specialist but teaches Class Y during the second period.
    seed.slot(school["carla"], school["class_y"], school["maths"], 0, "11:00", "12:00")

    summary = GuardAutomationService(db, settings=settings).assign_for_activity(school["activity"].id)

    assert summary["total_guards_needed"] == 2
    assert summary["guards_assigned"] == 2
    monday_detail = summary["details"][0]
    assert monday_detail["time_slot"] == "09:00 - 10:00, 11:00 - 12:00"
    assert monday_detail["substitute_teacher"] == "Teacher B"

    monday_duty, tuesday_duty = duties(db)
    assert monday_duty.date == monday
    assert (monday_duty.start_minute, monday_duty.end_minute) == (540, 720)
    assert monday_duty.substitute_teacher_id == school["bruno"].id
    assert tuesday_duty.substitute_teacher_id == school["carla"].id
    assert scores(db) == {"Teacher A": 0, "Teacher B": 4, "Teacher C": 7}


def test_roster_lookup_failure_is_isolated(db, seed, school, settings, monkeypatch):
    seed.slot(school["anna"], school["class_y"], school["maths"], 0, "11:00", "12:00")
    real_roster = guard_automation.students_by_class

    def broken_roster(session, class_id):
        if class_id == school["class_x"].id:
            raise RuntimeError("roster lookup failed")
        return real_roster(session, class_id)

    monkeypatch.setattr(guard_automation, "students_by_class", broken_roster)
    summary = GuardAutomationService(db, settings=settings).assign_for_activity(school["activity"].id)

    assert [item["status"] for item in summary["details"]] == ["error", "assigned", "error"]
    assert summary["details"][0]["reason"] == "roster lookup failed"
    assert [row.class_id for row in duties(db)] == [school["class_y"].id]
    audit = db.execute(select(AuditLog)).scalar_one()
    assert audit.details["errors"] == 2


def test_notification_failures_do_not_abort_the_run(db, school, settings):
    delivered = []

    def broken_sink(notification):
        delivered.append(notification.id)
        raise NotificationDeliveryError("smtp down")

    dispatcher = NotificationDispatcher(realtime_enabled=False, sinks=[broken_sink])
    summary = GuardAutomationService(db, settings=settings, dispatcher=dispatcher).assign_for_activity(
        school["activity"].id
    )

    assert summary["guards_assigned"] == 2
    assert len(delivered) == 2
    assert len(db.execute(select(Notification)).scalars().all()) == 2


def test_timeout_keeps_committed_rows_and_reports_partial_summary(db, school):
    ticks = iter([0.0, 0.0, 100.0])
    service = GuardAutomationService(
        db,
        settings=Settings(guard_run_timeout_seconds=10),
        clock=lambda: next(ticks),
    )

    partial = service.assign_for_activity(school["activity"].id)

    assert partial["timed_out"] is True
    assert partial["total_guards_needed"] == 1
    assert len(partial["details"]) == 1
    assert len(duties(db)) == 1
    audit = db.execute(select(AuditLog)).scalar_one()
    assert audit.details["timed_out"] is True


def test_run_is_audited(db, school, settings):
    GuardAutomationService(db, settings=settings).assign_for_activity(school["activity"].id)

    audit = db.execute(select(AuditLog).where(AuditLog.action == "guard.assignment.run")).scalar_one()
    assert audit.entity_id == school["activity"].id
    assert audit.details["guards_assigned"] == 2
    assert audit.details["timed_out"] is False


def test_guard_stats_and_listing(db, seed, school, settings):
    service = GuardAutomationService(db, settings=settings)
    empty = service.guard_stats(school["institute"].id)
    assert empty["total_guards"] == 0
    assert empty["assignment_rate"] == 0.0

    seed.slot(school["carla"], school["class_y"], school["maths"], 0, "09:00", "10:00")
    seed.slot(school["bruno"], school["class_y"], school["maths"], 0, "08:30", "09:30")
    service.assign_for_activity(school["activity"].id)

    stats = service.guard_stats(school["institute"].id)
    assert stats == {
        "total_guards": 2,
        "assigned_guards": 1,
        "pending_guards": 1,
        "completed_guards": 0,
        "assignment_rate": 50.0,
    }
    tuesday = school["activity"].end_date
    assert service.guard_stats(school["institute"].id, start_date=tuesday)["total_guards"] == 1

    listed = service.list_guard_duties(school["institute"].id)
    assert [row.date for row in listed] == [tuesday, school["activity"].start_date]
    pending = service.list_guard_duties(school["institute"].id, status=GuardDutyStatus.pending_assignment)
    assert len(pending) == 1
    as_substitute = service.list_guard_duties(school["institute"].id, teacher_id=school["carla"].id)
    assert len(as_substitute) == 1
    as_original = service.list_guard_duties(school["institute"].id, teacher_id=school["anna"].id)
    assert len(as_original) == 2


def test_config_reports_priority_rules(db, settings):
    config = GuardAutomationService(db, settings=settings).config()
    assert config["priority_rules"] == {"same_subject": 1, "available_teacher": 2, "workload_balance": 3}
    assert config["working_days"] == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
