from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from guardduty.api.deps import get_db
from guardduty.models.notification import NotificationAudience
from guardduty.schemas.notification import NotificationOut
from guardduty.services.notification_hub import management_channel, notification_hub, teacher_channel
from guardduty.services.notifications import list_notifications, mark_notification_read

router = APIRouter()


@router.get("/institutes/{institute_id}/notifications", response_model=list[NotificationOut])
def institute_notifications(
    institute_id: str,
    teacher_id: str | None = Query(default=None),
    audience: NotificationAudience | None = Query(default=None),
    unread_only: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[NotificationOut]:
    return list_notifications(
        db,
        institute_id=institute_id,
        teacher_id=teacher_id,
        audience=audience,
        unread_only=unread_only,
        limit=limit,
    )


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def read_notification(notification_id: str, db: Session = Depends(get_db)) -> NotificationOut:
    return mark_notification_read(db, notification_id)


@router.websocket("/institutes/{institute_id}/notifications/ws")
async def notifications_websocket(websocket: WebSocket, institute_id: str) -> None:
    teacher_id = websocket.query_params.get("teacher_id")
    channel = teacher_channel(teacher_id) if teacher_id else management_channel(institute_id)

    await notification_hub.connect(channel, websocket)
    try:
        await websocket.send_json({"event": "connected", "channel": channel})
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await notification_hub.disconnect(channel, websocket)
