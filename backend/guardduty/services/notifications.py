from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Callable, Iterable

from anyio import from_thread
from sqlalchemy import select
from sqlalchemy.orm import Session

from guardduty.core.exceptions import NotificationDeliveryError, ResourceNotFoundError
from guardduty.core.timeutils import format_range
from guardduty.models.guard_duty import GuardDuty
from guardduty.models.notification import Notification, NotificationAudience, NotificationEvent
from guardduty.services.directory import institute_manager_ids
from guardduty.services.notification_hub import management_channel, notification_hub, teacher_channel

logger = logging.getLogger(__name__)

NotificationSink = Callable[[Notification], None]


def _safe_iso(value: datetime | None) -> str:
    if value is None:
        return datetime.now(timezone.utc).isoformat()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.isoformat()


def notification_channel(notification: Notification) -> str:
    if notification.audience == NotificationAudience.teacher and notification.recipient_teacher_id:
        return teacher_channel(notification.recipient_teacher_id)
    return management_channel(notification.institute_id)


def notification_to_event_payload(notification: Notification) -> dict:
    return {
        "event": notification.event.value,
        "guard_duty_id": notification.guard_duty_id,
        "notification": {
            "id": notification.id,
            "institute_id": notification.institute_id,
            "audience": notification.audience.value,
            "recipient_teacher_id": notification.recipient_teacher_id,
            "title": notification.title,
            "message": notification.message,
            "is_read": notification.is_read,
            "created_at": _safe_iso(notification.created_at),
        },
    }


def publish_realtime_notification(notification: Notification) -> None:
    payload = notification_to_event_payload(notification)
    channel = notification_channel(notification)
    try:
        from_thread.run(notification_hub.publish, channel, payload)
    except Exception:  # pragma: no cover - runtime environment dependent
        logger.debug("Unable to push realtime notification on %s", channel, exc_info=True)


def _describe(duty: GuardDuty) -> str:
    if duty.start_minute is None or duty.end_minute is None:
        return duty.date.isoformat()
    return f"{duty.date.isoformat()} {format_range(duty.start_minute, duty.end_minute)}"


class NotificationDispatcher:
    """Persists guard-duty events and pushes them to subscribers.

    Delivery is fire-and-forget: nothing raised while storing or pushing an
    event leaves :meth:`emit`. Extra ``sinks`` (mail, SMS, ...) receive each
    stored notification and may raise :class:`NotificationDeliveryError`.
    """

    def __init__(self, *, realtime_enabled: bool = True, sinks: Iterable[NotificationSink] = ()) -> None:
        self.realtime_enabled = realtime_enabled
        self.sinks = list(sinks)

    def guard_assigned(self, db: Session, duty: GuardDuty) -> list[Notification]:
        return self.emit(
            db,
            NotificationEvent.guard_assigned,
            duty,
            audience=NotificationAudience.teacher,
            recipient_ids=[duty.substitute_teacher_id],
            title="Guard duty assigned",
            message=f"You have been assigned a guard duty on {_describe(duty)}.",
        )

    def guard_assignment_failed(self, db: Session, duty: GuardDuty) -> list[Notification]:
        try:
            managers = institute_manager_ids(db, duty.institute_id)
        except Exception:
            logger.exception("Unable to resolve managers for institute %s", duty.institute_id)
            managers = []
        return self.emit(
            db,
            NotificationEvent.guard_assignment_failed,
            duty,
            audience=NotificationAudience.management,
            recipient_ids=managers or [None],
            title="Guard duty needs a substitute",
            message=f"No substitute teacher is available on {_describe(duty)}; manual assignment required.",
        )

    def emit(
        self,
        db: Session,
        event: NotificationEvent,
        duty: GuardDuty,
        *,
        audience: NotificationAudience,
        recipient_ids: list[str | None],
        title: str,
        message: str,
    ) -> list[Notification]:
        try:
            records = [
                Notification(
                    institute_id=duty.institute_id,
                    event=event,
                    audience=audience,
                    guard_duty_id=duty.id,
                    recipient_teacher_id=recipient_id,
                    title=title,
                    message=message,
                )
                for recipient_id in dict.fromkeys(recipient_ids)
            ]
            db.add_all(records)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception(
                "Failed to store %s notification",
                event.value,
                extra={"event": event.value, "guard_duty_id": duty.id},
            )
            return []

        for record in records:
            if self.realtime_enabled:
                publish_realtime_notification(record)
            self._deliver_to_sinks(record)
        return records

    def _deliver_to_sinks(self, notification: Notification) -> None:
        for sink in self.sinks:
            try:
                sink(notification)
            except NotificationDeliveryError:
                logger.warning(
                    "Notification delivery failed for %s",
                    notification.id,
                    exc_info=True,
                    extra={"event": notification.event.value, "guard_duty_id": notification.guard_duty_id},
                )
            except Exception:
                logger.exception("Notification sink crashed for %s", notification.id)


def list_notifications(
    db: Session,
    *,
    institute_id: str,
    teacher_id: str | None = None,
    audience: NotificationAudience | None = None,
    unread_only: bool = False,
    limit: int = 100,
) -> list[Notification]:
    query = select(Notification).where(Notification.institute_id == institute_id)
    if teacher_id is not None:
        query = query.where(Notification.recipient_teacher_id == teacher_id)
    if audience is not None:
        query = query.where(Notification.audience == audience)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc(), Notification.id.asc()).limit(limit)
    return list(db.execute(query).scalars())


def mark_notification_read(db: Session, notification_id: str) -> Notification:
    record = db.get(Notification, notification_id)
    if record is None:
        raise ResourceNotFoundError("Notification", notification_id)
    if not record.is_read:
        record.is_read = True
        db.commit()
        db.refresh(record)
    return record
