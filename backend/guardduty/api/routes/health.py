from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from guardduty.api.deps import get_db
from guardduty.db.bootstrap import schema_report

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def health_ready(db: Session = Depends(get_db)) -> JSONResponse:
    db_ok = True
    db_error: str | None = None
    report = {"missing_tables": [], "missing_columns": {}, "guard_duty_natural_key": False}

    try:
        db.execute(text("SELECT 1"))
        report = schema_report(db.get_bind())
    except Exception as exc:  # pragma: no cover - environment dependent
        db_ok = False
        db_error = str(exc)

    schema_ok = not report["missing_tables"] and not report["missing_columns"]
    ready = db_ok and schema_ok and report["guard_duty_natural_key"]

    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {
            "ok": db_ok,
            "schema_ok": schema_ok,
            "missing_tables": report["missing_tables"],
            "missing_columns": report["missing_columns"],
            "guard_duty_natural_key": report["guard_duty_natural_key"],
            "error": db_error,
        },
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
