import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from guardduty.db.base import Base


class ScheduleSlot(Base):
    """One recurring weekly lesson.

    ``day_of_week`` follows ``date.weekday()`` (0 = Monday). Times are minutes
    since midnight and the interval is half-open, so back-to-back lessons
    sharing a boundary do not overlap.
    """

    __tablename__ = "schedule_slots"
    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_schedule_slots_day_of_week"),
        CheckConstraint("start_minute >= 0 AND end_minute <= 1440", name="ck_schedule_slots_minute_bounds"),
        CheckConstraint("start_minute < end_minute", name="ck_schedule_slots_positive_length"),
        Index("ix_schedule_slots_teacher_day", "teacher_id", "day_of_week"),
        Index("ix_schedule_slots_class_day", "class_id", "day_of_week"),
        Index("ix_schedule_slots_institute_day", "institute_id", "day_of_week"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    institute_id: Mapped[str] = mapped_column(String(36), nullable=False)
    teacher_id: Mapped[str] = mapped_column(String(36), nullable=False)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_minute: Mapped[int] = mapped_column(Integer, nullable=False)
    end_minute: Mapped[int] = mapped_column(Integer, nullable=False)
    room: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
