import datetime as dt
import uuid
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from guardduty.db.base import Base


class GuardDutyStatus(str, Enum):
    assigned = "assigned"
    pending_assignment = "pending_assignment"
    completed = "completed"


class AssignmentReason(str, Enum):
    same_subject = "same_subject"
    available = "available"


class GuardDuty(Base):
    __tablename__ = "guard_duties"
    __table_args__ = (
        UniqueConstraint(
            "original_teacher_id",
            "class_id",
            "date",
            name="uq_guard_duties_teacher_class_date",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    institute_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    activity_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    original_teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    substitute_teacher_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    schedule_slot_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    subject_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    start_minute: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_minute: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[GuardDutyStatus] = mapped_column(
        SAEnum(GuardDutyStatus, name="guard_duty_status"),
        nullable=False,
        default=GuardDutyStatus.pending_assignment,
    )
    assignment_reason: Mapped[AssignmentReason | None] = mapped_column(
        SAEnum(AssignmentReason, name="guard_assignment_reason"),
        nullable=True,
    )
    feedback_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    signed_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
