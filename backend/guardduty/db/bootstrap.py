from __future__ import annotations

import logging

from sqlalchemy import Engine, inspect

import guardduty.models  # noqa: F401
from guardduty.db.base import Base
from guardduty.db.session import engine as default_engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "teachers": {"id", "institute_id", "workload_score", "is_active", "is_manager"},
    "schedule_slots": {"id", "institute_id", "teacher_id", "class_id", "day_of_week", "start_minute", "end_minute"},
    "guard_duties": {"id", "activity_id", "original_teacher_id", "class_id", "date", "status"},
    "notifications": {"id", "event", "guard_duty_id", "audience"},
}

GUARD_DUTY_NATURAL_KEY = ("original_teacher_id", "class_id", "date")


def schema_report(engine: Engine) -> dict:
    with engine.connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = sorted(set(REQUIRED_COLUMNS) - table_names)
        missing_columns: dict[str, list[str]] = {}
        for table_name, columns in REQUIRED_COLUMNS.items():
            if table_name not in table_names:
                continue
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            missing = sorted(columns - existing)
            if missing:
                missing_columns[table_name] = missing

        natural_key_ok = False
        if "guard_duties" in table_names:
            unique_sets = [tuple(item["column_names"]) for item in inspector.get_unique_constraints("guard_duties")]
            unique_sets += [
                tuple(item["column_names"])
                for item in inspector.get_indexes("guard_duties")
                if item.get("unique")
            ]
            natural_key_ok = any(set(item) == set(GUARD_DUTY_NATURAL_KEY) for item in unique_sets)

    return {
        "missing_tables": missing_tables,
        "missing_columns": missing_columns,
        "guard_duty_natural_key": natural_key_ok,
    }


def ensure_runtime_schema(engine: Engine | None = None) -> dict:
    target = engine or default_engine
    Base.metadata.create_all(bind=target)
    report = schema_report(target)
    if report["missing_columns"]:
        logger.warning("Schema is missing columns: %s; run alembic upgrade head", report["missing_columns"])
    if not report["guard_duty_natural_key"]:
        logger.warning("guard_duties has no unique (original_teacher_id, class_id, date) key; reruns may duplicate")
    return report
