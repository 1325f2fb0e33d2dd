from fastapi import APIRouter, Depends, Query, Response, status

from guardduty.api.deps import get_schedule_service
from guardduty.core.exceptions import ResourceNotFoundError
from guardduty.core.timeutils import parse_time_to_minutes
from guardduty.models.teacher import Teacher
from guardduty.schemas.schedule import (
    AvailabilityCheckRequest,
    AvailabilityOut,
    ConflictCheckOut,
    ConflictCheckRequest,
    ConflictOut,
    ScheduleSlotCreate,
    ScheduleSlotOut,
    ScheduleSlotUpdate,
    ScheduleStatsOut,
)
from guardduty.services.schedule import ScheduleService

router = APIRouter()


def _out(slots) -> list[ScheduleSlotOut]:
    return [ScheduleSlotOut.from_slot(slot) for slot in slots]


@router.post("/schedule", response_model=ScheduleSlotOut, status_code=status.HTTP_201_CREATED)
def create_slot(
    payload: ScheduleSlotCreate,
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleSlotOut:
    return ScheduleSlotOut.from_slot(service.create_slot(payload))


@router.post("/schedule/check-conflicts", response_model=ConflictCheckOut)
def check_conflicts(
    payload: ConflictCheckRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> ConflictCheckOut:
    conflicts = service.check_conflicts(payload, exclude_slot_id=payload.exclude_slot_id)
    return ConflictCheckOut(
        has_conflicts=bool(conflicts),
        conflicts=[
            ConflictOut(dimension=item.dimension, message=item.message, slot=ScheduleSlotOut.from_slot(item.slot))
            for item in conflicts
        ],
    )


@router.post("/schedule/check-availability", response_model=AvailabilityOut)
def check_availability(
    payload: AvailabilityCheckRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> AvailabilityOut:
    if service.db.get(Teacher, payload.teacher_id) is None:
        raise ResourceNotFoundError("Teacher", payload.teacher_id)
    available = service.is_teacher_available(
        payload.teacher_id,
        payload.day_of_week,
        parse_time_to_minutes(payload.start_time),
        parse_time_to_minutes(payload.end_time),
    )
    return AvailabilityOut(
        teacher_id=payload.teacher_id,
        day_of_week=payload.day_of_week,
        start_time=payload.start_time,
        end_time=payload.end_time,
        available=available,
    )


@router.get("/schedule/teacher/{teacher_id}", response_model=list[ScheduleSlotOut])
def teacher_schedule(
    teacher_id: str,
    day_of_week: int | None = Query(default=None, ge=0, le=6),
    service: ScheduleService = Depends(get_schedule_service),
) -> list[ScheduleSlotOut]:
    return _out(service.teacher_slots(teacher_id, day_of_week))


@router.get("/schedule/class/{class_id}", response_model=list[ScheduleSlotOut])
def class_schedule(
    class_id: str,
    day_of_week: int | None = Query(default=None, ge=0, le=6),
    service: ScheduleService = Depends(get_schedule_service),
) -> list[ScheduleSlotOut]:
    return _out(service.class_slots(class_id, day_of_week))


@router.get("/schedule/{slot_id}", response_model=ScheduleSlotOut)
def get_slot(slot_id: str, service: ScheduleService = Depends(get_schedule_service)) -> ScheduleSlotOut:
    return ScheduleSlotOut.from_slot(service.get_slot(slot_id))


@router.put("/schedule/{slot_id}", response_model=ScheduleSlotOut)
def update_slot(
    slot_id: str,
    payload: ScheduleSlotUpdate,
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleSlotOut:
    return ScheduleSlotOut.from_slot(service.update_slot(slot_id, payload))


@router.delete("/schedule/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(slot_id: str, service: ScheduleService = Depends(get_schedule_service)) -> Response:
    service.delete_slot(slot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/institutes/{institute_id}/schedule", response_model=list[ScheduleSlotOut])
def institute_schedule(
    institute_id: str,
    day_of_week: int | None = Query(default=None, ge=0, le=6),
    teacher_id: str | None = Query(default=None),
    class_id: str | None = Query(default=None),
    service: ScheduleService = Depends(get_schedule_service),
) -> list[ScheduleSlotOut]:
    return _out(service.institute_slots(institute_id, day_of_week, teacher_id=teacher_id, class_id=class_id))


@router.get("/institutes/{institute_id}/schedule/rooms/{room}", response_model=list[ScheduleSlotOut])
def room_schedule(
    institute_id: str,
    room: str,
    day_of_week: int | None = Query(default=None, ge=0, le=6),
    service: ScheduleService = Depends(get_schedule_service),
) -> list[ScheduleSlotOut]:
    return _out(service.room_slots(room, institute_id, day_of_week))


@router.get("/institutes/{institute_id}/schedule/stats", response_model=ScheduleStatsOut)
def schedule_stats(institute_id: str, service: ScheduleService = Depends(get_schedule_service)) -> ScheduleStatsOut:
    return ScheduleStatsOut(**service.stats(institute_id))
