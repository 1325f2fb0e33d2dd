from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from guardduty.core.timeutils import minutes_to_hhmm
from guardduty.models.guard_duty import AssignmentReason, GuardDutyStatus


class GuardDutyOut(BaseModel):
    id: str
    institute_id: str
    activity_id: str
    original_teacher_id: str
    substitute_teacher_id: str | None = None
    class_id: str
    schedule_slot_id: str | None = None
    subject_id: str | None = None
    date: dt.date
    start_time: str | None = None
    end_time: str | None = None
    status: GuardDutyStatus
    assignment_reason: AssignmentReason | None = None
    feedback_notes: str | None = None
    signed_at: dt.datetime | None = None
    created_at: dt.datetime | None = None

    @classmethod
    def from_duty(cls, duty) -> "GuardDutyOut":
        return cls(
            id=duty.id,
            institute_id=duty.institute_id,
            activity_id=duty.activity_id,
            original_teacher_id=duty.original_teacher_id,
            substitute_teacher_id=duty.substitute_teacher_id,
            class_id=duty.class_id,
            schedule_slot_id=duty.schedule_slot_id,
            subject_id=duty.subject_id,
            date=duty.date,
            start_time=minutes_to_hhmm(duty.start_minute) if duty.start_minute is not None else None,
            end_time=minutes_to_hhmm(duty.end_minute) if duty.end_minute is not None else None,
            status=duty.status,
            assignment_reason=duty.assignment_reason,
            feedback_notes=duty.feedback_notes,
            signed_at=duty.signed_at,
            created_at=duty.created_at,
        )


class GuardAssignmentDetailOut(BaseModel):
    guard_id: str | None = None
    date: dt.date
    original_teacher: str
    substitute_teacher: str | None = None
    class_info: str
    time_slot: str
    status: str
    reason: str | None = None
    students_remaining: int = 0


class GuardAssignmentSummaryOut(BaseModel):
    activity_id: str
    total_guards_needed: int
    guards_assigned: int
    guards_pending: int
    timed_out: bool = False
    details: list[GuardAssignmentDetailOut] = Field(default_factory=list)


class GuardStatsOut(BaseModel):
    total_guards: int
    assigned_guards: int
    pending_guards: int
    completed_guards: int
    assignment_rate: float


class GuardConfigOut(BaseModel):
    auto_assignment: bool
    notifications_enabled: bool
    working_days: list[str]
    priority_rules: dict[str, int]
    exclude_co_supervisors: bool
    run_timeout_seconds: float
