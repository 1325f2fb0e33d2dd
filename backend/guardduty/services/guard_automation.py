"""Automatic guard-duty assignment for teachers away on school activities.

For every supervising teacher and every working day of an activity, each
class the teacher would have taught that day becomes one guard duty covering
all of its periods, and the substitute must be free for each of them. Each
duty is its own unit of work: it is committed on its own, and a failure is
logged and reported without stopping the run. ``GuardDuty`` is unique on
``(original_teacher_id, class_id, date)``, so running the same activity again
only fills in what is missing.
"""

from __future__ import annotations

from datetime import date
import logging
import time
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from guardduty.core.config import Settings, get_settings
from guardduty.core.exceptions import InvalidInputError, ResourceNotFoundError
from guardduty.core.timeutils import DAY_ORDER, WORKING_DAYS, format_range, iter_working_days
from guardduty.models.activity import Activity
from guardduty.models.guard_duty import AssignmentReason, GuardDuty, GuardDutyStatus
from guardduty.models.schedule_slot import ScheduleSlot
from guardduty.services.audit import log_audit
from guardduty.services.directory import (
    activity_enrolled_student_ids,
    activity_supervisor_ids,
    class_names,
    get_activity,
    increment_workload_score,
    students_by_class,
    subject_names,
    teacher_names,
)
from guardduty.services.notifications import NotificationDispatcher
from guardduty.services.substitutes import SubstituteMatch, find_substitute

logger = logging.getLogger(__name__)

PRIORITY_RULES = {
    "same_subject": 1,
    "available_teacher": 2,
    "workload_balance": 3,
}

STATUS_ERROR = "error"


class GuardAutomationService:
    def __init__(
        self,
        db: Session,
        settings: Settings | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher or NotificationDispatcher(
            realtime_enabled=self.settings.notifications_realtime_enabled,
        )
        self._clock = clock

    def config(self) -> dict:
        return {
            "auto_assignment": True,
            "notifications_enabled": self.settings.notifications_realtime_enabled,
            "working_days": [DAY_ORDER[index] for index in sorted(WORKING_DAYS)],
            "priority_rules": dict(PRIORITY_RULES),
            "exclude_co_supervisors": self.settings.guard_exclude_co_supervisors,
            "run_timeout_seconds": self.settings.guard_run_timeout_seconds,
        }

    def assign_for_activity(self, activity_id: str) -> dict:
        activity = get_activity(self.db, activity_id)
        if activity is None:
            raise ResourceNotFoundError("Activity", activity_id)
        if activity.end_date < activity.start_date:
            raise InvalidInputError(
                "Activity end date is before its start date",
                details={"start_date": activity.start_date.isoformat(), "end_date": activity.end_date.isoformat()},
            )

        supervisors = activity_supervisor_ids(self.db, activity.id)
        going = activity_enrolled_student_ids(self.db, activity.id)
        run = _RunContext(
            activity=activity,
            supervisors=supervisors,
            going=going,
            teachers=teacher_names(self.db, activity.institute_id),
            classes=class_names(self.db, activity.institute_id),
            subjects=subject_names(self.db, activity.institute_id),
        )
        summary = {
            "activity_id": activity.id,
            "total_guards_needed": 0,
            "guards_assigned": 0,
            "guards_pending": 0,
            "timed_out": False,
            "details": [],
        }
        deadline = self._clock() + self.settings.guard_run_timeout_seconds
        logger.info(
            "Guard assignment started for activity %s (%d supervisor(s))",
            activity.id,
            len(supervisors),
            extra={"event": "guard.run.started", "activity_id": activity.id},
        )

        for teacher_id, duty_date, periods in self._work_units(activity, supervisors):
            if self._clock() > deadline:
                summary["timed_out"] = True
                logger.warning(
                    "Guard assignment for activity %s stopped after %ss; re-run to fill the gaps",
                    activity.id,
                    self.settings.guard_run_timeout_seconds,
                    extra={"event": "guard.run.timed_out", "activity_id": activity.id},
                )
                break
            detail = self._process_periods(run, teacher_id, periods, duty_date)
            _tally(summary, detail)

        self._finish(activity, summary)
        return summary

    def _work_units(self, activity: Activity, supervisors: list[str]):
        for teacher_id in supervisors:
            for duty_date in iter_working_days(activity.start_date, activity.end_date):
                for periods in _group_by_class(self._teacher_slots(teacher_id, duty_date.weekday())):
                    yield teacher_id, duty_date, periods

    def _teacher_slots(self, teacher_id: str, day_of_week: int) -> list[ScheduleSlot]:
        return list(
            self.db.execute(
                select(ScheduleSlot)
                .where(ScheduleSlot.teacher_id == teacher_id, ScheduleSlot.day_of_week == day_of_week)
                .order_by(ScheduleSlot.start_minute.asc(), ScheduleSlot.id.asc())
            ).scalars()
        )

    def _existing_duty(self, teacher_id: str, class_id: str, duty_date: date) -> GuardDuty | None:
        return self.db.execute(
            select(GuardDuty).where(
                GuardDuty.original_teacher_id == teacher_id,
                GuardDuty.class_id == class_id,
                GuardDuty.date == duty_date,
            )
        ).scalar_one_or_none()

    def _process_periods(
        self, run: "_RunContext", teacher_id: str, periods: list[ScheduleSlot], duty_date: date
    ) -> dict:
        # Plain values only: a rollback below expires ORM instances.
        first = periods[0]
        slot_values = {
            "id": first.id,
            "class_id": first.class_id,
            "subject_id": first.subject_id,
            "day_of_week": first.day_of_week,
            "windows": [(item.start_minute, item.end_minute) for item in periods],
        }
        base = run.base_detail(teacher_id, slot_values, duty_date)

        try:
            base["students_remaining"] = run.remaining_students(self.db, slot_values["class_id"])
            existing = self._existing_duty(teacher_id, slot_values["class_id"], duty_date)
            if existing is not None:
                logger.info(
                    "Guard duty already recorded for %s on %s",
                    teacher_id,
                    duty_date.isoformat(),
                    extra={"event": "guard.slot.skipped", "guard_duty_id": existing.id},
                )
                return run.detail_from_duty(base, existing)
            duty, match, created = self._store_duty(run, teacher_id, slot_values, duty_date)
        except Exception as exc:
            self.db.rollback()
            logger.exception(
                "Guard assignment failed for slot %s on %s",
                slot_values["id"],
                duty_date.isoformat(),
                extra={"event": "guard.slot.error", "activity_id": run.activity_id, "teacher_id": teacher_id},
            )
            return {**base, "status": STATUS_ERROR, "reason": str(exc) or exc.__class__.__name__}

        if not created:
            return run.detail_from_duty(base, duty)
        if match:
            logger.info(
                "Assigned %s as substitute for %s on %s",
                match.teacher_id,
                teacher_id,
                duty_date.isoformat(),
                extra={"event": "guard.slot.assigned", "guard_duty_id": duty.id, "teacher_id": match.teacher_id},
            )
            self.dispatcher.guard_assigned(self.db, duty)
        else:
            logger.warning(
                "No substitute available for %s on %s; escalating",
                teacher_id,
                duty_date.isoformat(),
                extra={"event": "guard.slot.pending", "guard_duty_id": duty.id, "teacher_id": teacher_id},
            )
            self.dispatcher.guard_assignment_failed(self.db, duty)
        return run.detail_from_duty(base, duty)

    def _store_duty(
        self, run: "_RunContext", teacher_id: str, slot_values: dict, duty_date: date
    ) -> tuple[GuardDuty, SubstituteMatch | None, bool]:
        """Find a substitute free for every period and persist the duty.

        Returns ``(duty, match, created)``; ``created`` is false when a
        concurrent run stored the same duty first.
        """
        windows = slot_values["windows"]
        match = find_substitute(
            self.db,
            subject_id=slot_values["subject_id"],
            day_of_week=slot_values["day_of_week"],
            start_minute=windows[0][0],
            end_minute=windows[0][1],
            institute_id=run.institute_id,
            exclude_teacher_id=teacher_id,
            also_exclude=run.supervisors if self.settings.guard_exclude_co_supervisors else (),
            on_date=duty_date,
            extra_periods=windows[1:],
        )
        # The stored window spans every period so date-aware busy checks cover them all.
        duty = GuardDuty(
            institute_id=run.institute_id,
            activity_id=run.activity_id,
            original_teacher_id=teacher_id,
            substitute_teacher_id=match.teacher_id if match else None,
            class_id=slot_values["class_id"],
            schedule_slot_id=slot_values["id"],
            subject_id=slot_values["subject_id"],
            date=duty_date,
            start_minute=min(start for start, _ in windows),
            end_minute=max(end for _, end in windows),
            status=GuardDutyStatus.assigned if match else GuardDutyStatus.pending_assignment,
            assignment_reason=AssignmentReason(match.reason) if match else None,
        )
        try:
            self.db.add(duty)
            self.db.flush()
            if match:
                increment_workload_score(self.db, match.teacher_id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self._existing_duty(teacher_id, slot_values["class_id"], duty_date)
            if existing is None:
                raise
            return existing, None, False
        return duty, match, True

    def _finish(self, activity: Activity, summary: dict) -> None:
        errors = sum(1 for item in summary["details"] if item["status"] == STATUS_ERROR)
        log_audit(
            self.db,
            action="guard.assignment.run",
            entity_type="activity",
            entity_id=activity.id,
            details={
                "total_guards_needed": summary["total_guards_needed"],
                "guards_assigned": summary["guards_assigned"],
                "guards_pending": summary["guards_pending"],
                "errors": errors,
                "timed_out": summary["timed_out"],
            },
        )
        self.db.commit()
        logger.info(
            "Guard assignment finished for activity %s: %d needed, %d assigned, %d pending",
            activity.id,
            summary["total_guards_needed"],
            summary["guards_assigned"],
            summary["guards_pending"],
            extra={"event": "guard.run.finished", "activity_id": activity.id},
        )

    def guard_stats(
        self,
        institute_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> dict:
        query = (
            select(GuardDuty.status, func.count(GuardDuty.id))
            .where(GuardDuty.institute_id == institute_id)
            .group_by(GuardDuty.status)
        )
        if start_date is not None:
            query = query.where(GuardDuty.date >= start_date)
        if end_date is not None:
            query = query.where(GuardDuty.date <= end_date)
        counts = {status: count for status, count in self.db.execute(query)}

        total = sum(counts.values())
        assigned = counts.get(GuardDutyStatus.assigned, 0)
        return {
            "total_guards": total,
            "assigned_guards": assigned,
            "pending_guards": counts.get(GuardDutyStatus.pending_assignment, 0),
            "completed_guards": counts.get(GuardDutyStatus.completed, 0),
            "assignment_rate": round(assigned / total * 100, 2) if total else 0.0,
        }

    def list_guard_duties(
        self,
        institute_id: str,
        status: GuardDutyStatus | None = None,
        teacher_id: str | None = None,
    ) -> list[GuardDuty]:
        query = select(GuardDuty).where(GuardDuty.institute_id == institute_id)
        if status is not None:
            query = query.where(GuardDuty.status == status)
        if teacher_id is not None:
            query = query.where(
                (GuardDuty.original_teacher_id == teacher_id) | (GuardDuty.substitute_teacher_id == teacher_id)
            )
        query = query.order_by(GuardDuty.date.desc(), GuardDuty.start_minute.asc(), GuardDuty.id.asc())
        return list(self.db.execute(query).scalars())


class _RunContext:
    """Per-run lookups shared by every slot of one activity."""

    def __init__(
        self,
        *,
        activity: Activity,
        supervisors: list[str],
        going: set[str],
        teachers: dict[str, str],
        classes: dict[str, str],
        subjects: dict[str, str],
    ) -> None:
        self.activity = activity
        self.activity_id = activity.id
        self.institute_id = activity.institute_id
        self.supervisors = supervisors
        self.going = going
        self.teachers = teachers
        self.classes = classes
        self.subjects = subjects
        self._remaining: dict[str, int] = {}

    def remaining_students(self, db: Session, class_id: str) -> int:
        if class_id not in self._remaining:
            self._remaining[class_id] = len(students_by_class(db, class_id) - self.going)
        return self._remaining[class_id]

    def base_detail(self, teacher_id: str, slot: dict, duty_date: date) -> dict:
        class_name = self.classes.get(slot["class_id"], slot["class_id"])
        subject_name = self.subjects.get(slot["subject_id"], slot["subject_id"])
        return {
            "guard_id": None,
            "date": duty_date,
            "original_teacher": self.teachers.get(teacher_id, teacher_id),
            "substitute_teacher": None,
            "class_info": f"{class_name} - {subject_name}",
            "time_slot": ", ".join(format_range(start, end) for start, end in slot["windows"]),
            "status": GuardDutyStatus.pending_assignment.value,
            "reason": None,
            "students_remaining": 0,
        }

    def detail_from_duty(self, base: dict, duty: GuardDuty) -> dict:
        substitute = duty.substitute_teacher_id
        return {
            **base,
            "guard_id": duty.id,
            "substitute_teacher": self.teachers.get(substitute, substitute) if substitute else None,
            "status": duty.status.value,
            "reason": duty.assignment_reason.value if duty.assignment_reason else None,
        }


def _group_by_class(slots: list[ScheduleSlot]) -> list[list[ScheduleSlot]]:
    """Periods of one teacher on one day, grouped per class in start order."""
    groups: dict[str, list[ScheduleSlot]] = {}
    for slot in slots:
        groups.setdefault(slot.class_id, []).append(slot)
    return list(groups.values())


def _tally(summary: dict, detail: dict) -> None:
    summary["total_guards_needed"] += 1
    if detail["status"] in (GuardDutyStatus.assigned.value, GuardDutyStatus.completed.value):
        summary["guards_assigned"] += 1
    elif detail["status"] == GuardDutyStatus.pending_assignment.value:
        summary["guards_pending"] += 1
    summary["details"].append(detail)
