from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from guardduty.core.timeutils import TIME_PATTERN, day_name, minutes_to_hhmm, parse_time_to_minutes


def _validate_time(value: str) -> str:
    value = value.strip()
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in H:MM or HH:MM 24-hour format")
    return value


class ScheduleSlotCreate(BaseModel):
    institute_id: str = Field(min_length=1, max_length=36)
    teacher_id: str = Field(min_length=1, max_length=36)
    class_id: str = Field(min_length=1, max_length=36)
    subject_id: str = Field(min_length=1, max_length=36)
    day_of_week: int = Field(ge=0, le=6)
    start_time: str = Field(min_length=4, max_length=5)
    end_time: str = Field(min_length=4, max_length=5)
    room: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        return _validate_time(value)

    @field_validator("room")
    @classmethod
    def blank_room_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def validate_time_order(self) -> "ScheduleSlotCreate":
        if self.end_minute <= self.start_minute:
            raise ValueError("End time must be after start time")
        return self

    @property
    def start_minute(self) -> int:
        return parse_time_to_minutes(self.start_time)

    @property
    def end_minute(self) -> int:
        return parse_time_to_minutes(self.end_time)


class ScheduleSlotUpdate(BaseModel):
    teacher_id: str | None = Field(default=None, min_length=1, max_length=36)
    class_id: str | None = Field(default=None, min_length=1, max_length=36)
    subject_id: str | None = Field(default=None, min_length=1, max_length=36)
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: str | None = Field(default=None, min_length=4, max_length=5)
    end_time: str | None = Field(default=None, min_length=4, max_length=5)
    room: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_time(value)

    def changes(self) -> dict:
        """Explicitly provided fields, with times converted to minutes."""
        payload = self.model_dump(exclude_unset=True)
        if "start_time" in payload:
            start = payload.pop("start_time")
            if start is not None:
                payload["start_minute"] = parse_time_to_minutes(start)
        if "end_time" in payload:
            end = payload.pop("end_time")
            if end is not None:
                payload["end_minute"] = parse_time_to_minutes(end)
        if "room" in payload and payload["room"] is not None:
            payload["room"] = payload["room"].strip() or None
        for key in ("teacher_id", "class_id", "subject_id", "day_of_week"):
            if key in payload and payload[key] is None:
                payload.pop(key)
        return payload


class ScheduleSlotOut(BaseModel):
    id: str
    institute_id: str
    teacher_id: str
    class_id: str
    subject_id: str
    day_of_week: int
    day_name: str
    start_time: str
    end_time: str
    room: str | None = None
    notes: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_slot(cls, slot) -> "ScheduleSlotOut":
        return cls(
            id=slot.id,
            institute_id=slot.institute_id,
            teacher_id=slot.teacher_id,
            class_id=slot.class_id,
            subject_id=slot.subject_id,
            day_of_week=slot.day_of_week,
            day_name=day_name(slot.day_of_week),
            start_time=minutes_to_hhmm(slot.start_minute),
            end_time=minutes_to_hhmm(slot.end_minute),
            room=slot.room,
            notes=slot.notes,
            created_at=getattr(slot, "created_at", None),
        )


class ConflictOut(BaseModel):
    dimension: str
    message: str
    slot: ScheduleSlotOut


class ConflictCheckRequest(ScheduleSlotCreate):
    exclude_slot_id: str | None = Field(default=None, max_length=36)


class ConflictCheckOut(BaseModel):
    has_conflicts: bool
    conflicts: list[ConflictOut] = Field(default_factory=list)


class AvailabilityCheckRequest(BaseModel):
    teacher_id: str = Field(min_length=1, max_length=36)
    day_of_week: int = Field(ge=0, le=6)
    start_time: str = Field(min_length=4, max_length=5)
    end_time: str = Field(min_length=4, max_length=5)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        return _validate_time(value)

    @model_validator(mode="after")
    def validate_time_order(self) -> "AvailabilityCheckRequest":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("End time must be after start time")
        return self


class AvailabilityOut(BaseModel):
    teacher_id: str
    day_of_week: int
    start_time: str
    end_time: str
    available: bool


class ScheduleStatsOut(BaseModel):
    total_slots: int
    slots_by_day: dict[str, int]
    slots_by_teacher: dict[str, int]
    slots_by_class: dict[str, int]
