from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

EXTRA_KEYS = (
    "event",
    "path",
    "method",
    "status",
    "duration_ms",
    "activity_id",
    "guard_duty_id",
    "teacher_id",
    "institute_id",
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", *, json_output: bool = True) -> None:
    root = logging.getLogger("guardduty")
    root.setLevel(level)
    for handler in root.handlers:
        if getattr(handler, "_guardduty_handler", False):
            return
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler._guardduty_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
