"""Time-of-day helpers for Exam Season."""

from __future__ import annotations

import math
import re

DAY_LENGTH_HOURS = 24
MINUTES_PER_DAY = DAY_LENGTH_HOURS * 60
MIDNIGHT = "00:00"
DEFAULT_MORNING = "08:00"

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time(label: object) -> int | None:
    """Return minutes since the start of the day, or None for malformed labels.

    ``"24:00"`` is accepted because authored content uses it for the
    end-of-day beat; it parses to a full day of minutes.
    """
    if not isinstance(label, str):
        return None
    match = _TIME_PATTERN.match(label.strip())
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2))
    if minutes > 59:
        return None
    if hours > DAY_LENGTH_HOURS or (hours == DAY_LENGTH_HOURS and minutes):
        return None
    return hours * 60 + minutes


def format_time(minutes: int) -> str:
    if minutes >= MINUTES_PER_DAY:
        return MIDNIGHT
    minutes = max(int(minutes), 0)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_time_label(label: object) -> bool:
    return parse_time(label) is not None


def normalize_time(label: object, default: str = DEFAULT_MORNING) -> str:
    minutes = parse_time(label)
    if minutes is None:
        return default
    return format_time(minutes)


def coerce_hours(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        hours = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(hours) or math.isinf(hours):
        return None
    return hours


def advance_time(label: str, hours: object) -> str:
    """Move ``label`` forward by ``hours`` within the same day.

    Reaching or passing the day boundary yields ``MIDNIGHT``; the day
    counter is never touched here.
    """
    start = parse_time(label)
    if start is None:
        start = parse_time(DEFAULT_MORNING) or 0
    delta = coerce_hours(hours)
    if delta is None:
        return format_time(start)
    total = start + int(round(delta * 60))
    if total >= MINUTES_PER_DAY:
        return MIDNIGHT
    return format_time(max(total, 0))


def is_midnight(label: object) -> bool:
    minutes = parse_time(label)
    return minutes is not None and minutes in (0, MINUTES_PER_DAY)
