"""Read helpers over the institute directory tables.

Activities, enrollments and teachers are owned elsewhere; guard-duty code
only reads them through these helpers. ``increment_workload_score`` is the
one write.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from guardduty.models.activity import Activity, ActivityEnrollment, ActivitySupervisor
from guardduty.models.class_group import ClassGroup, StudentClassEnrollment
from guardduty.models.subject import Subject
from guardduty.models.teacher import Teacher


def get_activity(db: Session, activity_id: str) -> Activity | None:
    return db.get(Activity, activity_id)


def activity_supervisor_ids(db: Session, activity_id: str) -> list[str]:
    rows = db.execute(
        select(ActivitySupervisor.teacher_id)
        .where(ActivitySupervisor.activity_id == activity_id)
        .order_by(ActivitySupervisor.created_at.asc(), ActivitySupervisor.teacher_id.asc())
    ).scalars()
    return list(dict.fromkeys(rows))


def activity_enrolled_student_ids(db: Session, activity_id: str) -> set[str]:
    rows = db.execute(
        select(ActivityEnrollment.student_id).where(ActivityEnrollment.activity_id == activity_id)
    ).scalars()
    return set(rows)


def students_by_class(db: Session, class_id: str) -> set[str]:
    rows = db.execute(
        select(StudentClassEnrollment.student_id).where(StudentClassEnrollment.class_id == class_id)
    ).scalars()
    return set(rows)


def active_teachers_by_institute(db: Session, institute_id: str) -> list[Teacher]:
    return list(
        db.execute(
            select(Teacher)
            .where(Teacher.institute_id == institute_id, Teacher.is_active.is_(True))
            .order_by(Teacher.id.asc())
        ).scalars()
    )


def institute_manager_ids(db: Session, institute_id: str) -> list[str]:
    return list(
        db.execute(
            select(Teacher.id)
            .where(
                Teacher.institute_id == institute_id,
                Teacher.is_active.is_(True),
                Teacher.is_manager.is_(True),
            )
            .order_by(Teacher.id.asc())
        ).scalars()
    )


def increment_workload_score(db: Session, teacher_id: str) -> None:
    # Must stay a single UPDATE statement; no read-modify-write.
    db.execute(
        update(Teacher)
        .where(Teacher.id == teacher_id)
        .values(workload_score=Teacher.workload_score + 1)
        .execution_options(synchronize_session="fetch")
    )


def teacher_names(db: Session, institute_id: str) -> dict[str, str]:
    rows = db.execute(select(Teacher.id, Teacher.display_name).where(Teacher.institute_id == institute_id))
    return {teacher_id: name for teacher_id, name in rows}


def class_names(db: Session, institute_id: str) -> dict[str, str]:
    rows = db.execute(select(ClassGroup.id, ClassGroup.name).where(ClassGroup.institute_id == institute_id))
    return {class_id: name for class_id, name in rows}


def subject_names(db: Session, institute_id: str) -> dict[str, str]:
    rows = db.execute(select(Subject.id, Subject.name).where(Subject.institute_id == institute_id))
    return {subject_id: name for subject_id, name in rows}
