from datetime import datetime

from pydantic import BaseModel

from guardduty.models.notification import NotificationAudience, NotificationEvent


class NotificationOut(BaseModel):
    id: str
    institute_id: str
    event: NotificationEvent
    audience: NotificationAudience
    guard_duty_id: str
    recipient_teacher_id: str | None = None
    title: str
    message: str
    is_read: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
