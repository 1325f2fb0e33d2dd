from __future__ import annotations

import re
from datetime import date, timedelta

DAY_ORDER = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
WORKING_DAYS = frozenset(range(5))
MINUTES_PER_DAY = 24 * 60

TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_time_to_minutes(value: str) -> int:
    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Time must be in H:MM or HH:MM 24-hour format")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_hhmm(minutes: int) -> str:
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f"{minutes} is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_range(start_minute: int, end_minute: int) -> str:
    return f"{minutes_to_hhmm(start_minute)} - {minutes_to_hhmm(end_minute)}"


def day_name(day_of_week: int) -> str:
    if 0 <= day_of_week < len(DAY_ORDER):
        return DAY_ORDER[day_of_week]
    return "Unknown"


def iter_working_days(start: date, end: date):
    """Yield the Monday-Friday dates in ``[start, end]``.

    No institute calendar is consulted: holidays and exam days are still
    yielded.
    """
    current = start
    while current <= end:
        if current.weekday() in WORKING_DAYS:
            yield current
        current += timedelta(days=1)
