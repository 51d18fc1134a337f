# barbershop/core/deviation.py

"""
Deviation Estimator

Compares when an appointment actually finished with when it was expected to
finish, and shifts the estimated start of the rest of the day's queue by the
same signed amount (a first-order model: every later client moves by the
delta of the appointment that just finished).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from barbershop.core.slots import as_date, duration_of, start_datetime
from barbershop.core.timeutils import (
    clamp_minutes,
    minutes_to_time,
    round_minutes,
    time_to_minutes,
)
from barbershop.schemas import AppointmentStatus

EARLY = "early"
LATE = "late"
ON_TIME = "on-time"

# Finishing up to 2 minutes late or 3 minutes early counts as on time.
# The early side is one minute wider than the symmetric -2 band so that a
# 30-minute service ending 3 minutes early (09:57 for 10:00) stays on time.
LATE_TOLERANCE_MINUTES = 2
EARLY_TOLERANCE_MINUTES = 3


@dataclass(frozen=True)
class Deviation:
    type: str
    minutes: int

    @property
    def adjustment(self) -> int:
        """Signed shift for downstream appointments."""
        if self.type == EARLY:
            return -self.minutes
        if self.type == LATE:
            return self.minutes
        return 0


@dataclass
class ScheduleImpact:
    deviation: Deviation
    affected: List[Tuple[object, str]] = field(default_factory=list)


def get_expected_end_time(appointment) -> datetime:
    return start_datetime(appointment) + timedelta(minutes=duration_of(appointment))


def calculate_time_deviation(
    appointment,
    completed_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Deviation:
    expected_end = get_expected_end_time(appointment)
    actual = getattr(appointment, "completed_at", None) or completed_at or now
    if actual is None:
        raise ValueError(f"Appointment {appointment.id} has no completion time and no current time was given")

    diff = round_minutes((actual - expected_end).total_seconds())
    if diff < -EARLY_TOLERANCE_MINUTES:
        return Deviation(EARLY, abs(diff))
    if diff > LATE_TOLERANCE_MINUTES:
        return Deviation(LATE, diff)
    return Deviation(ON_TIME, 0)


def get_subsequent_appointments(appointments: Iterable, reference) -> list:
    """Scheduled appointments later the same day than ``reference``, ascending."""
    reference_date = as_date(reference.date)
    reference_minutes = time_to_minutes(reference.time)

    later = [
        apt for apt in appointments
        if as_date(apt.date) == reference_date
        and apt.id != reference.id
        and apt.status == AppointmentStatus.scheduled.value
        and time_to_minutes(apt.time) > reference_minutes
    ]
    return sorted(later, key=lambda apt: time_to_minutes(apt.time))


def calculate_adjusted_time(original_time: str, adjustment_minutes: int) -> str:
    # clamped to the same day: 00:00 .. 23:59
    return minutes_to_time(clamp_minutes(time_to_minutes(original_time) + adjustment_minutes))


def calculate_schedule_impact(
    appointments: Iterable,
    completed,
    completed_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> ScheduleImpact:
    deviation = calculate_time_deviation(completed, completed_at=completed_at, now=now)
    affected = [
        (apt, calculate_adjusted_time(apt.time, deviation.adjustment))
        for apt in get_subsequent_appointments(appointments, completed)
    ]
    return ScheduleImpact(deviation=deviation, affected=affected)


def get_overrun_minutes(appointment, now: datetime) -> int:
    """Minutes an in-progress appointment has run past its expected end."""
    if appointment.status != AppointmentStatus.in_progress.value:
        return 0
    overrun = round_minutes((now - get_expected_end_time(appointment)).total_seconds())
    return max(overrun, 0)
