# barbershop/core/timeutils.py

"""Conversions between "HH:MM" strings and minute offsets."""

import math
import re
from datetime import datetime

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


class InvalidTimeError(ValueError):
    pass


def time_to_minutes(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight."""
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise InvalidTimeError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidTimeError(f"Invalid time {value!r}, out of range")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as zero-padded "HH:MM".

    Values outside the day are rejected; callers clamp first.
    """
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise InvalidTimeError(f"{minutes} minutes is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def round_to_next_slot(value: str, slot_minutes: int = 30) -> str:
    minutes = time_to_minutes(value)
    remainder = minutes % slot_minutes
    if remainder == 0:
        return minutes_to_time(minutes)
    return minutes_to_time(minutes + (slot_minutes - remainder))


def clamp_minutes(minutes: int) -> int:
    return max(0, min(minutes, MINUTES_PER_DAY - 1))


def clock_time(moment: datetime) -> str:
    return f"{moment.hour:02d}:{moment.minute:02d}"


def clock_minutes(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def round_minutes(seconds: float) -> int:
    # halves round up, -2.5 -> -2 and 2.5 -> 3
    return math.floor(seconds / 60 + 0.5)


def overlaps(start_a, end_a, start_b, end_b) -> bool:
    """Half-open interval overlap; touching boundaries do not overlap."""
    return start_a < end_b and end_a > start_b
