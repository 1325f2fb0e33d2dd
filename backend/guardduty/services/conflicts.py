"""Overlap detection for weekly timetable slots.

A slot is anything exposing ``id``, ``teacher_id``, ``class_id``, ``room``,
``day_of_week``, ``start_minute`` and ``end_minute``. Intervals are half-open,
so a lesson ending at 10:00 never clashes with one starting at 10:00. Room
names are compared case-insensitively after trimming whitespace.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from guardduty.core.timeutils import day_name, format_range, minutes_to_hhmm
from guardduty.models.schedule_slot import ScheduleSlot

DIMENSIONS: tuple[str, ...] = ("teacher", "class", "room")

_DIMENSION_LABELS = {
    "teacher": "Teacher",
    "class": "Class",
    "room": "Room",
}


@dataclass(frozen=True)
class SlotWindow:
    """Lightweight slot used for proposed or synthetic intervals."""

    day_of_week: int
    start_minute: int
    end_minute: int
    teacher_id: str | None = None
    class_id: str | None = None
    room: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class ScheduleConflict:
    dimension: str
    slot: Any

    @property
    def message(self) -> str:
        label = _DIMENSION_LABELS[self.dimension]
        return (
            f"{label} already booked on {day_name(self.slot.day_of_week)} "
            f"{format_range(self.slot.start_minute, self.slot.end_minute)}"
        )

    def as_dict(self) -> dict:
        return {
            "dimension": self.dimension,
            "message": self.message,
            "slot": {
                "id": self.slot.id,
                "teacher_id": self.slot.teacher_id,
                "class_id": self.slot.class_id,
                "room": self.slot.room,
                "day_of_week": self.slot.day_of_week,
                "start_time": minutes_to_hhmm(self.slot.start_minute),
                "end_time": minutes_to_hhmm(self.slot.end_minute),
            },
        }


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and b_start < a_end


def normalize_room(room: str | None) -> str | None:
    if room is None:
        return None
    return room.strip() or None


def room_key(room: str | None) -> str | None:
    room = normalize_room(room)
    return room.lower() if room is not None else None


def room_matches(room: str):
    """SQL criterion matching ``room`` the way :func:`room_key` compares it."""
    return func.lower(ScheduleSlot.room) == room_key(room)


def _validate_dimensions(dimensions: Sequence[str]) -> tuple[str, ...]:
    unknown = [item for item in dimensions if item not in DIMENSIONS]
    if unknown:
        raise ValueError(f"Unknown conflict dimension(s): {', '.join(unknown)}")
    # Report order is fixed regardless of how the caller listed them.
    return tuple(item for item in DIMENSIONS if item in dimensions)


def _shares(dimension: str, candidate: Any, other: Any) -> bool:
    if dimension == "teacher":
        return candidate.teacher_id is not None and candidate.teacher_id == other.teacher_id
    if dimension == "class":
        return candidate.class_id is not None and candidate.class_id == other.class_id
    room = room_key(candidate.room)
    return room is not None and room == room_key(other.room)


def detect_conflicts(
    candidate: Any,
    existing: Iterable[Any],
    *,
    exclude_slot_id: str | None = None,
    dimensions: Sequence[str] = DIMENSIONS,
) -> list[ScheduleConflict]:
    """Return every existing slot that clashes with ``candidate``.

    Results are grouped teacher, class, room and sorted by start time within
    each group. A slot clashing on two dimensions is reported once per
    dimension.
    """
    requested = _validate_dimensions(dimensions)
    overlapping = sorted(
        (
            slot
            for slot in existing
            if slot.day_of_week == candidate.day_of_week
            and (exclude_slot_id is None or slot.id != exclude_slot_id)
            and overlaps(candidate.start_minute, candidate.end_minute, slot.start_minute, slot.end_minute)
        ),
        key=lambda item: (item.start_minute, item.end_minute, item.id or ""),
    )

    conflicts: list[ScheduleConflict] = []
    for dimension in requested:
        for slot in overlapping:
            if _shares(dimension, candidate, slot):
                conflicts.append(ScheduleConflict(dimension=dimension, slot=slot))
    return conflicts


def find_conflicts(
    db: Session,
    candidate: Any,
    *,
    institute_id: str,
    exclude_slot_id: str | None = None,
    dimensions: Sequence[str] = DIMENSIONS,
) -> list[ScheduleConflict]:
    requested = _validate_dimensions(dimensions)
    filters = []
    if "teacher" in requested and candidate.teacher_id:
        filters.append(ScheduleSlot.teacher_id == candidate.teacher_id)
    if "class" in requested and candidate.class_id:
        filters.append(ScheduleSlot.class_id == candidate.class_id)
    room = normalize_room(candidate.room)
    if "room" in requested and room is not None:
        filters.append(room_matches(room))
    if not filters:
        return []

    query = select(ScheduleSlot).where(
        ScheduleSlot.institute_id == institute_id,
        ScheduleSlot.day_of_week == candidate.day_of_week,
        ScheduleSlot.start_minute < candidate.end_minute,
        ScheduleSlot.end_minute > candidate.start_minute,
        or_(*filters),
    )
    if exclude_slot_id is not None:
        query = query.where(ScheduleSlot.id != exclude_slot_id)
    existing = list(db.execute(query).scalars())
    return detect_conflicts(candidate, existing, exclude_slot_id=exclude_slot_id, dimensions=requested)
