# barbershop/core/slots.py

"""
Slot Calculator

Single-chair scheduling over a day's appointment list:
- available catalog slots for a date
- conflict checks for an arbitrary [time, time + duration) interval
- greedy "next free gap" for walk-ins
- "when would you realistically be seen" estimate for self-service booking
- queue position / wait metrics

Every function is pure: callers pass "now" explicitly.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from barbershop.core.catalog import (
    DEFAULT_DURATION,
    LAST_SLOT_TIME,
    OPENING_TIME,
    SLOT_CATALOG,
    SLOT_MINUTES,
    WALK_IN_CLOSING_TIME,
)
from barbershop.core.timeutils import (
    clock_minutes,
    minutes_to_time,
    overlaps,
    round_to_next_slot,
    time_to_minutes,
)
from barbershop.schemas import AppointmentStatus

logger = logging.getLogger(__name__)

QUEUED_STATUSES = (AppointmentStatus.scheduled.value, AppointmentStatus.in_progress.value)


def as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def duration_of(appointment) -> int:
    """Occupied minutes; partially populated rows default to 30."""
    return getattr(appointment, "service_duration", None) or DEFAULT_DURATION


def is_active(appointment) -> bool:
    return appointment.status != AppointmentStatus.cancelled.value


def occupied_interval(appointment) -> tuple:
    start = time_to_minutes(appointment.time)
    return start, start + duration_of(appointment)


def day_appointments(appointments: Iterable, on_date) -> list:
    """Non-cancelled appointments on a date, ascending by start time."""
    target = as_date(on_date)
    same_day = [
        apt for apt in appointments
        if as_date(apt.date) == target and is_active(apt)
    ]
    return sorted(same_day, key=lambda apt: time_to_minutes(apt.time))


def get_available_time_slots(appointments: Iterable, on_date, now: datetime) -> List[str]:
    target = as_date(on_date)
    slots = list(SLOT_CATALOG)

    # 1) Drop slots already gone by when booking for today
    if target == now.date():
        current = clock_minutes(now)
        slots = [slot for slot in slots if time_to_minutes(slot) > current]

    # 2) Drop slots whose start is already taken
    occupied = {apt.time for apt in day_appointments(appointments, target)}
    available = [slot for slot in slots if slot not in occupied]

    logger.debug("Available slots for %s: %d of %d", target, len(available), len(SLOT_CATALOG))
    return available


def is_time_slot_available(
    appointments: Iterable,
    on_date,
    time: str,
    duration: int,
    exclude_id: Optional[int] = None,
) -> bool:
    new_start = time_to_minutes(time)
    new_end = new_start + duration

    for apt in day_appointments(appointments, on_date):
        if exclude_id is not None and apt.id == exclude_id:
            continue
        existing_start, existing_end = occupied_interval(apt)
        if overlaps(new_start, new_end, existing_start, existing_end):
            return False
    return True


def find_next_available_slot(
    appointments: Iterable,
    on_date,
    duration: int,
    start_from: str = OPENING_TIME,
) -> str:
    """
    Earliest start at or after ``start_from`` where ``duration`` fits.

    Walks the day's appointments in start order keeping a cursor; the first
    gap large enough wins. The result is not snapped to the slot grid, so a
    walk-in can start right when the previous client finishes. Returns an
    empty string when nothing fits before the walk-in closing time.
    """
    cursor = time_to_minutes(start_from)
    closing = time_to_minutes(WALK_IN_CLOSING_TIME)

    for apt in day_appointments(appointments, on_date):
        apt_start, apt_end = occupied_interval(apt)
        if cursor + duration <= apt_start:
            break
        cursor = max(cursor, apt_end)

    if cursor + duration > closing:
        return ""
    return minutes_to_time(cursor)


def _estimate_start(appointments: Iterable, target: date, now: datetime) -> Optional[str]:
    cutoff = time_to_minutes(LAST_SLOT_TIME)

    if target == now.date():
        if clock_minutes(now) >= cutoff:
            return None
        base = max(clock_minutes(now), time_to_minutes(OPENING_TIME))
    else:
        base = time_to_minutes(OPENING_TIME)

    same_day = day_appointments(appointments, target)
    if not same_day:
        return round_to_next_slot(minutes_to_time(base), SLOT_MINUTES)

    latest_end = base
    total_duration = 0
    for apt in same_day:
        apt_start, apt_end = occupied_interval(apt)
        latest_end = max(latest_end, apt_end)
        if apt_start >= base:
            total_duration += duration_of(apt)

    candidate = max(base + total_duration, latest_end)
    if candidate >= cutoff:
        return None
    return round_to_next_slot(minutes_to_time(candidate), SLOT_MINUTES)


def calculate_next_available_time(appointments: Iterable, on_date, now: datetime) -> str:
    """
    Suggested start for a self-service booking.

    Approximates when the day's remaining workload ends rather than looking
    for gaps. "09:00" is also returned once the day is over; the date itself
    is not advanced here (``suggest_booking`` does that).
    """
    estimate = _estimate_start(appointments, as_date(on_date), now)
    return estimate if estimate is not None else OPENING_TIME


def next_business_date(on_date) -> date:
    return as_date(on_date) + timedelta(days=1)


def suggest_booking(appointments: Iterable, on_date, now: datetime) -> tuple:
    """(date, time) to offer a client, rolled to the next day when this one is over."""
    target = as_date(on_date)
    estimate = _estimate_start(appointments, target, now)
    if estimate is None:
        return next_business_date(target), OPENING_TIME
    return target, estimate


def _queued_before(appointments: Iterable, on_date, target_time: str) -> list:
    target = as_date(on_date)
    target_minutes = time_to_minutes(target_time)
    return [
        apt for apt in appointments
        if as_date(apt.date) == target
        and apt.status in QUEUED_STATUSES
        and time_to_minutes(apt.time) < target_minutes
    ]


def get_clients_before_time(appointments: Iterable, on_date, target_time: str) -> int:
    return len(_queued_before(appointments, on_date, target_time))


def get_wait_time_before_time(appointments: Iterable, on_date, target_time: str) -> int:
    return sum(duration_of(apt) for apt in _queued_before(appointments, on_date, target_time))


@dataclass
class QueueStatus:
    total_in_queue: int
    currently_serving: Optional[str] = None
    position: Optional[int] = None
    estimated_wait_minutes: Optional[int] = None


def _start_of(apt) -> tuple:
    return as_date(apt.date), time_to_minutes(apt.time)


def get_queue_status(appointments: Iterable, now: datetime, client_id: Optional[int] = None) -> QueueStatus:
    appointments = list(appointments)
    today = now.date()

    todays = [
        apt for apt in appointments
        if as_date(apt.date) == today and apt.status in QUEUED_STATUSES
    ]
    serving = next(
        (apt for apt in todays if apt.status == AppointmentStatus.in_progress.value), None
    )
    status = QueueStatus(
        total_in_queue=len(todays),
        currently_serving=serving.client_name if serving is not None else None,
    )
    if client_id is None:
        return status

    scheduled = sorted(
        (apt for apt in appointments if apt.status == AppointmentStatus.scheduled.value),
        key=_start_of,
    )
    mine = [apt for apt in scheduled if apt.client_id == client_id]
    if not mine:
        return status

    next_appointment = mine[0]
    ahead = [apt for apt in scheduled if _start_of(apt) <= _start_of(next_appointment)]
    status.position = [apt.id for apt in ahead].index(next_appointment.id) + 1
    status.estimated_wait_minutes = status.position * SLOT_MINUTES
    return status


def minutes_until(appointment, now: datetime) -> int:
    """Whole minutes from ``now`` until the appointment starts (floored)."""
    return int((start_datetime(appointment) - now).total_seconds() // 60)


def start_datetime(appointment) -> datetime:
    return datetime.combine(as_date(appointment.date), datetime.min.time()) + timedelta(
        minutes=time_to_minutes(appointment.time)
    )
