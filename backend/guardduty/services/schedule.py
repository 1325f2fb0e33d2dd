from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
import logging
import threading

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from guardduty.core.exceptions import InvalidInputError, ResourceNotFoundError, ScheduleConflictError
from guardduty.core.timeutils import DAY_ORDER, MINUTES_PER_DAY, day_name
from guardduty.models.class_group import ClassGroup
from guardduty.models.institute import Institute
from guardduty.models.schedule_slot import ScheduleSlot
from guardduty.models.subject import Subject
from guardduty.models.teacher import Teacher
from guardduty.schemas.schedule import ScheduleSlotCreate, ScheduleSlotUpdate
from guardduty.services.conflicts import (
    ScheduleConflict,
    SlotWindow,
    detect_conflicts,
    find_conflicts,
    normalize_room,
    room_matches,
)

logger = logging.getLogger(__name__)

CONFLICT_FIELDS = frozenset({"day_of_week", "start_minute", "end_minute", "teacher_id", "class_id", "room"})
REFERENCE_FIELDS = frozenset({"teacher_id", "class_id", "subject_id"})
EDITABLE_FIELDS = CONFLICT_FIELDS | REFERENCE_FIELDS | {"notes"}

_registry_lock = threading.Lock()
_institute_locks: dict[str, threading.Lock] = {}


def _lock_for(institute_id: str) -> threading.Lock:
    with _registry_lock:
        lock = _institute_locks.get(institute_id)
        if lock is None:
            lock = threading.Lock()
            _institute_locks[institute_id] = lock
        return lock


def _ordered(query):
    return query.order_by(
        ScheduleSlot.day_of_week.asc(),
        ScheduleSlot.start_minute.asc(),
        ScheduleSlot.end_minute.asc(),
        ScheduleSlot.id.asc(),
    )


def _labels(pairs) -> dict[str, str]:
    """Map ids to display names, suffixing the id where a name is shared."""
    pairs = list(pairs)
    counts = Counter(name for _, name in pairs)
    return {key: name if counts[name] == 1 else f"{name} ({key})" for key, name in pairs}


class ScheduleService:
    """Timetable CRUD that keeps teacher, class and room bookings disjoint.

    Every write runs check-then-insert inside ``_write_lock``: a process-local
    lock per institute plus ``SELECT ... FOR UPDATE`` on the institute row, so
    two writers for the same institute are serialised. PostgreSQL deployments
    additionally carry exclusion constraints (see the migrations), and an
    ``IntegrityError`` raised by them is reported as a normal conflict.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _write_lock(self, institute_id: str):
        with _lock_for(institute_id):
            institute = self.db.execute(
                select(Institute).where(Institute.id == institute_id).with_for_update()
            ).scalar_one_or_none()
            if institute is None:
                self.db.rollback()
                raise ResourceNotFoundError("Institute", institute_id)
            try:
                yield institute
            except Exception:
                self.db.rollback()
                raise

    def _validate_references(self, institute_id: str, values: dict) -> None:
        lookups = (
            ("teacher_id", Teacher, "Teacher"),
            ("class_id", ClassGroup, "Class"),
            ("subject_id", Subject, "Subject"),
        )
        for field, model, label in lookups:
            if field not in values:
                continue
            record = self.db.get(model, values[field])
            if record is None:
                raise ResourceNotFoundError(label, values[field])
            if record.institute_id != institute_id:
                raise InvalidInputError(
                    f"{label} {values[field]} belongs to another institute",
                    details={"field": field, "institute_id": institute_id},
                )

    @staticmethod
    def _validate_window(day_of_week: int, start_minute: int, end_minute: int) -> None:
        if not 0 <= day_of_week <= 6:
            raise InvalidInputError("day_of_week must be between 0 (Monday) and 6 (Sunday)")
        if start_minute < 0 or end_minute > MINUTES_PER_DAY or start_minute >= end_minute:
            raise InvalidInputError(
                "End time must be after start time",
                details={"start_minute": start_minute, "end_minute": end_minute},
            )

    def _commit_or_conflict(self, candidate: SlotWindow, institute_id: str, exclude_slot_id: str | None) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            conflicts = find_conflicts(
                self.db,
                candidate,
                institute_id=institute_id,
                exclude_slot_id=exclude_slot_id,
            )
            if conflicts:
                raise ScheduleConflictError(conflicts) from exc
            raise InvalidInputError("Schedule slot violates a database constraint") from exc

    def _raise_conflicts(self, conflicts: list[ScheduleConflict]) -> None:
        error = ScheduleConflictError(conflicts)
        self.db.rollback()
        logger.info("Rejected schedule write: %s", error.message)
        raise error

    def create_slot(self, data: ScheduleSlotCreate) -> ScheduleSlot:
        room = normalize_room(data.room)
        self._validate_window(data.day_of_week, data.start_minute, data.end_minute)
        candidate = SlotWindow(
            day_of_week=data.day_of_week,
            start_minute=data.start_minute,
            end_minute=data.end_minute,
            teacher_id=data.teacher_id,
            class_id=data.class_id,
            room=room,
        )
        with self._write_lock(data.institute_id):
            self._validate_references(
                data.institute_id,
                {"teacher_id": data.teacher_id, "class_id": data.class_id, "subject_id": data.subject_id},
            )
            conflicts = find_conflicts(self.db, candidate, institute_id=data.institute_id)
            if conflicts:
                self._raise_conflicts(conflicts)

            slot = ScheduleSlot(
                institute_id=data.institute_id,
                teacher_id=data.teacher_id,
                class_id=data.class_id,
                subject_id=data.subject_id,
                day_of_week=data.day_of_week,
                start_minute=data.start_minute,
                end_minute=data.end_minute,
                room=room,
                notes=data.notes,
            )
            self.db.add(slot)
            self._commit_or_conflict(candidate, data.institute_id, None)
        self.db.refresh(slot)
        logger.info(
            "Created schedule slot %s",
            slot.id,
            extra={"event": "schedule.slot.created", "teacher_id": slot.teacher_id, "institute_id": slot.institute_id},
        )
        return slot

    def update_slot(self, slot_id: str, patch: ScheduleSlotUpdate | dict) -> ScheduleSlot:
        changes = patch.changes() if isinstance(patch, ScheduleSlotUpdate) else dict(patch)
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise InvalidInputError("Unknown schedule slot field(s)", details={"fields": unknown})
        slot = self.get_slot(slot_id)
        institute_id = slot.institute_id
        if "room" in changes:
            changes["room"] = normalize_room(changes["room"])

        merged = {
            field: changes.get(field, getattr(slot, field))
            for field in ("day_of_week", "start_minute", "end_minute", "teacher_id", "class_id", "room")
        }
        self._validate_window(merged["day_of_week"], merged["start_minute"], merged["end_minute"])
        conflict_relevant = any(
            field in changes and changes[field] != getattr(slot, field) for field in CONFLICT_FIELDS
        )
        candidate = SlotWindow(id=slot.id, **merged)

        with self._write_lock(institute_id):
            self._validate_references(
                institute_id,
                {field: changes[field] for field in REFERENCE_FIELDS if field in changes},
            )
            if conflict_relevant:
                conflicts = find_conflicts(self.db, candidate, institute_id=institute_id, exclude_slot_id=slot.id)
                if conflicts:
                    self._raise_conflicts(conflicts)
            for field, value in changes.items():
                setattr(slot, field, value)
            self._commit_or_conflict(candidate, institute_id, slot.id)
        self.db.refresh(slot)
        logger.info("Updated schedule slot %s", slot.id, extra={"event": "schedule.slot.updated"})
        return slot

    def delete_slot(self, slot_id: str) -> None:
        slot = self.get_slot(slot_id)
        self.db.delete(slot)
        self.db.commit()
        logger.info("Deleted schedule slot %s", slot_id, extra={"event": "schedule.slot.deleted"})

    def get_slot(self, slot_id: str) -> ScheduleSlot:
        slot = self.db.get(ScheduleSlot, slot_id)
        if slot is None:
            raise ResourceNotFoundError("ScheduleSlot", slot_id)
        return slot

    def teacher_slots(self, teacher_id: str, day_of_week: int | None = None) -> list[ScheduleSlot]:
        query = select(ScheduleSlot).where(ScheduleSlot.teacher_id == teacher_id)
        if day_of_week is not None:
            query = query.where(ScheduleSlot.day_of_week == day_of_week)
        return list(self.db.execute(_ordered(query)).scalars())

    def class_slots(self, class_id: str, day_of_week: int | None = None) -> list[ScheduleSlot]:
        query = select(ScheduleSlot).where(ScheduleSlot.class_id == class_id)
        if day_of_week is not None:
            query = query.where(ScheduleSlot.day_of_week == day_of_week)
        return list(self.db.execute(_ordered(query)).scalars())

    def institute_slots(
        self,
        institute_id: str,
        day_of_week: int | None = None,
        teacher_id: str | None = None,
        class_id: str | None = None,
    ) -> list[ScheduleSlot]:
        query = select(ScheduleSlot).where(ScheduleSlot.institute_id == institute_id)
        if day_of_week is not None:
            query = query.where(ScheduleSlot.day_of_week == day_of_week)
        if teacher_id is not None:
            query = query.where(ScheduleSlot.teacher_id == teacher_id)
        if class_id is not None:
            query = query.where(ScheduleSlot.class_id == class_id)
        return list(self.db.execute(_ordered(query)).scalars())

    def room_slots(self, room: str, institute_id: str, day_of_week: int | None = None) -> list[ScheduleSlot]:
        normalized = normalize_room(room)
        if normalized is None:
            return []
        query = select(ScheduleSlot).where(
            ScheduleSlot.institute_id == institute_id,
            room_matches(normalized),
        )
        if day_of_week is not None:
            query = query.where(ScheduleSlot.day_of_week == day_of_week)
        return list(self.db.execute(_ordered(query)).scalars())

    def is_teacher_available(self, teacher_id: str, day_of_week: int, start_minute: int, end_minute: int) -> bool:
        candidate = SlotWindow(
            day_of_week=day_of_week,
            start_minute=start_minute,
            end_minute=end_minute,
            teacher_id=teacher_id,
        )
        busy = self.teacher_slots(teacher_id, day_of_week)
        return not detect_conflicts(candidate, busy, dimensions=("teacher",))

    def check_conflicts(self, data: ScheduleSlotCreate, exclude_slot_id: str | None = None) -> list[ScheduleConflict]:
        candidate = SlotWindow(
            day_of_week=data.day_of_week,
            start_minute=data.start_minute,
            end_minute=data.end_minute,
            teacher_id=data.teacher_id,
            class_id=data.class_id,
            room=normalize_room(data.room),
        )
        return find_conflicts(self.db, candidate, institute_id=data.institute_id, exclude_slot_id=exclude_slot_id)

    def stats(self, institute_id: str) -> dict:
        slots = self.institute_slots(institute_id)
        teachers = _labels(
            (item.id, item.display_name)
            for item in self.db.execute(select(Teacher).where(Teacher.institute_id == institute_id)).scalars()
        )
        classes = _labels(
            (item.id, item.name)
            for item in self.db.execute(select(ClassGroup).where(ClassGroup.institute_id == institute_id)).scalars()
        )

        by_day = Counter(day_name(slot.day_of_week) for slot in slots)
        by_teacher = Counter(teachers.get(slot.teacher_id, slot.teacher_id) for slot in slots)
        by_class = Counter(classes.get(slot.class_id, slot.class_id) for slot in slots)
        return {
            "total_slots": len(slots),
            "slots_by_day": {name: by_day[name] for name in DAY_ORDER if by_day[name]},
            "slots_by_teacher": dict(sorted(by_teacher.items())),
            "slots_by_class": dict(sorted(by_class.items())),
        }
