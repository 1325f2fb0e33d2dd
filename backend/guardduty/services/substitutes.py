"""Pick a substitute teacher for one lesson.

Selection is a filter-sort-pick over :class:`TeacherCandidate` views:

1. drop excluded teachers and anyone busy during the lesson (or during any
   of its ``extra_periods``, for a class taught twice that day);
2. order by ``(workload_score, teacher_id)`` so the least-loaded teacher wins
   and ties are broken deterministically;
3. prefer the first candidate who already teaches the subject
   (``same_subject``), otherwise the first available one (``available``).

Nothing here writes to the database.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from guardduty.models.guard_duty import GuardDuty, GuardDutyStatus
from guardduty.models.schedule_slot import ScheduleSlot
from guardduty.services.conflicts import SlotWindow, detect_conflicts
from guardduty.services.directory import active_teachers_by_institute

SAME_SUBJECT = "same_subject"
AVAILABLE = "available"


@dataclass(frozen=True)
class TeacherCandidate:
    teacher_id: str
    display_name: str
    workload_score: int
    day_of_week: int
    subject_ids: frozenset[str] = frozenset()
    busy: tuple[SlotWindow, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SubstituteMatch:
    teacher_id: str
    display_name: str
    workload_score: int
    reason: str


def is_subject_match(candidate: TeacherCandidate, subject_id: str | None) -> bool:
    return subject_id is not None and subject_id in candidate.subject_ids


def is_available(candidate: TeacherCandidate, start_minute: int, end_minute: int) -> bool:
    window = SlotWindow(
        day_of_week=candidate.day_of_week,
        start_minute=start_minute,
        end_minute=end_minute,
        teacher_id=candidate.teacher_id,
    )
    return not detect_conflicts(window, candidate.busy, dimensions=("teacher",))


def select_substitute(
    candidates: Iterable[TeacherCandidate],
    subject_id: str | None,
    start_minute: int,
    end_minute: int,
    exclude_teacher_ids: Iterable[str] = (),
    *,
    extra_periods: Iterable[tuple[int, int]] = (),
) -> SubstituteMatch | None:
    excluded = set(exclude_teacher_ids)
    periods = [(start_minute, end_minute), *extra_periods]
    ranked = sorted(
        (
            item
            for item in candidates
            if item.teacher_id not in excluded and all(is_available(item, start, end) for start, end in periods)
        ),
        key=lambda item: (item.workload_score, item.teacher_id),
    )
    if not ranked:
        return None

    chosen = next((item for item in ranked if is_subject_match(item, subject_id)), None)
    reason = SAME_SUBJECT
    if chosen is None:
        chosen = ranked[0]
        reason = AVAILABLE
    return SubstituteMatch(
        teacher_id=chosen.teacher_id,
        display_name=chosen.display_name,
        workload_score=chosen.workload_score,
        reason=reason,
    )


def build_candidates(
    db: Session,
    *,
    institute_id: str,
    day_of_week: int,
    exclude_teacher_ids: Iterable[str] = (),
    on_date: date | None = None,
) -> list[TeacherCandidate]:
    excluded = set(exclude_teacher_ids)
    teachers = [item for item in active_teachers_by_institute(db, institute_id) if item.id not in excluded]
    if not teachers:
        return []
    teacher_ids = [item.id for item in teachers]

    subjects: dict[str, set[str]] = defaultdict(set)
    busy: dict[str, list[SlotWindow]] = defaultdict(list)
    slots = db.execute(
        select(ScheduleSlot).where(
            ScheduleSlot.institute_id == institute_id,
            ScheduleSlot.teacher_id.in_(teacher_ids),
        )
    ).scalars()
    for slot in slots:
        subjects[slot.teacher_id].add(slot.subject_id)
        if slot.day_of_week == day_of_week:
            busy[slot.teacher_id].append(
                SlotWindow(
                    id=slot.id,
                    day_of_week=slot.day_of_week,
                    start_minute=slot.start_minute,
                    end_minute=slot.end_minute,
                    teacher_id=slot.teacher_id,
                )
            )

    if on_date is not None:
        duties = db.execute(
            select(GuardDuty).where(
                GuardDuty.date == on_date,
                GuardDuty.substitute_teacher_id.in_(teacher_ids),
                GuardDuty.status.in_([GuardDutyStatus.assigned, GuardDutyStatus.completed]),
                GuardDuty.start_minute.is_not(None),
                GuardDuty.end_minute.is_not(None),
            )
        ).scalars()
        for duty in duties:
            busy[duty.substitute_teacher_id].append(
                SlotWindow(
                    id=duty.id,
                    day_of_week=day_of_week,
                    start_minute=duty.start_minute,
                    end_minute=duty.end_minute,
                    teacher_id=duty.substitute_teacher_id,
                )
            )

    return [
        TeacherCandidate(
            teacher_id=teacher.id,
            display_name=teacher.display_name,
            workload_score=teacher.workload_score,
            day_of_week=day_of_week,
            subject_ids=frozenset(subjects.get(teacher.id, ())),
            busy=tuple(busy.get(teacher.id, ())),
        )
        for teacher in teachers
    ]


def find_substitute(
    db: Session,
    *,
    subject_id: str | None,
    day_of_week: int,
    start_minute: int,
    end_minute: int,
    institute_id: str,
    exclude_teacher_id: str,
    also_exclude: Iterable[str] = (),
    on_date: date | None = None,
    extra_periods: Iterable[tuple[int, int]] = (),
) -> SubstituteMatch | None:
    excluded = {exclude_teacher_id, *also_exclude}
    candidates = build_candidates(
        db,
        institute_id=institute_id,
        day_of_week=day_of_week,
        exclude_teacher_ids=excluded,
        on_date=on_date,
    )
    return select_substitute(
        candidates, subject_id, start_minute, end_minute, excluded, extra_periods=extra_periods
    )
