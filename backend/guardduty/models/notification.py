import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from guardduty.db.base import Base


class NotificationEvent(str, Enum):
    guard_assigned = "guard_assigned"
    guard_assignment_failed = "guard_assignment_failed"


class NotificationAudience(str, Enum):
    teacher = "teacher"
    management = "management"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    institute_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    event: Mapped[NotificationEvent] = mapped_column(
        SAEnum(NotificationEvent, name="notification_event"),
        nullable=False,
    )
    audience: Mapped[NotificationAudience] = mapped_column(
        SAEnum(NotificationAudience, name="notification_audience"),
        nullable=False,
    )
    guard_duty_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    recipient_teacher_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
