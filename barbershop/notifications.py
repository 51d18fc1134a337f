# barbershop/notifications.py

"""
Schedule Monitor

Turns appointment changes and the passage of time into alerts:
- new bookings (admin)
- schedule drift after an appointment finishes early or late (clients + admin)
- proximity reminders 20/10/5 minutes before a client's appointment (client)
- "client coming up" 5 minutes ahead (admin)
- in-progress appointments running over (clients + admin)

Time-driven alerts are de-duplicated through a marker store keyed by
(appointment, threshold, audience, day); markers from other days are purged
on every tick.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Protocol

from sqlmodel import Session, delete, select

from barbershop.core.deviation import (
    LATE,
    calculate_adjusted_time,
    calculate_schedule_impact,
    get_overrun_minutes,
    get_subsequent_appointments,
)
from barbershop.core.slots import as_date, minutes_until
from barbershop.data import ADMIN_ALERT_MINUTES, OVERRUN_ALERT_EVERY
from barbershop.models import NotificationMarker
from barbershop.schemas import AppointmentStatus, Audience, NotificationSettings

logger = logging.getLogger(__name__)

SCOPED_MARKER_KINDS = ("running_late",)


@dataclass
class Alert:
    audience: Audience
    appointment_id: int
    threshold_minutes: int
    message: str
    kind: str = "info"
    title: str = ""
    created_at: datetime = field(default_factory=datetime.now)


def marker_key(appointment_id: int, threshold_minutes: int, audience, day: date, kind: Optional[str] = None) -> str:
    audience = Audience(audience).value
    # overrun alerts are keyed apart from reminders
    scope = f"{kind}_" if kind else ""
    return f"notification_{audience}_{scope}{appointment_id}_{threshold_minutes}min_{day.isoformat()}"


# --- Marker stores ---------------------------------------------------------

class MarkerStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, day: date) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...

    def purge_stale(self, today: date) -> int: ...


class InMemoryMarkerStore:
    def __init__(self):
        self._items: Dict[str, tuple] = {}

    def get(self, key: str) -> Optional[str]:
        item = self._items.get(key)
        return item[0] if item else None

    def set(self, key: str, value: str, day: date) -> None:
        self._items[key] = (value, day)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)

    def purge_stale(self, today: date) -> int:
        stale = [key for key, (_, day) in self._items.items() if day != today]
        for key in stale:
            del self._items[key]
        return len(stale)


class SQLMarkerStore:
    """Markers persisted in the ``notificationmarker`` table; survive restarts."""

    def __init__(self, engine):
        self.engine = engine

    def get(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            marker = session.get(NotificationMarker, key)
            return marker.value if marker else None

    def set(self, key: str, value: str, day: date) -> None:
        with Session(self.engine) as session:
            marker = session.get(NotificationMarker, key)
            if marker is None:
                marker = NotificationMarker(key=key, day=day, value=value)
            else:
                marker.day = day
                marker.value = value
            session.add(marker)
            session.commit()

    def delete(self, key: str) -> None:
        with Session(self.engine) as session:
            marker = session.get(NotificationMarker, key)
            if marker is not None:
                session.delete(marker)
                session.commit()

    def keys(self) -> List[str]:
        with Session(self.engine) as session:
            return list(session.exec(select(NotificationMarker.key)).all())

    def purge_stale(self, today: date) -> int:
        with Session(self.engine) as session:
            result = session.exec(delete(NotificationMarker).where(NotificationMarker.day != today))
            session.commit()
            return result.rowcount or 0


# --- Alert sinks -----------------------------------------------------------

class AlertSink(Protocol):
    def emit(self, alert: Alert) -> None: ...


class LoggingAlertSink:
    def emit(self, alert: Alert) -> None:
        logger.info(
            "Alert [%s] appointment=%s threshold=%s: %s",
            Audience(alert.audience).value, alert.appointment_id, alert.threshold_minutes, alert.message,
        )


class AlertFeed:
    """Most recent alerts, newest last; read by the notifications endpoint."""

    def __init__(self, maxlen: int = 200):
        self._alerts = deque(maxlen=maxlen)

    def emit(self, alert: Alert) -> None:
        self._alerts.append(alert)

    def recent(
        self,
        audience: Optional[Audience] = None,
        appointment_ids: Optional[Iterable[int]] = None,
        limit: int = 50,
    ) -> List[Alert]:
        ids = set(appointment_ids) if appointment_ids is not None else None
        matching = [
            alert for alert in reversed(self._alerts)
            if (audience is None or alert.audience == audience)
            and (ids is None or alert.appointment_id in ids)
        ]
        return matching[:limit]

    def clear(self) -> None:
        self._alerts.clear()


class FanoutAlertSink:
    def __init__(self, *sinks: AlertSink):
        self.sinks = list(sinks)

    def emit(self, alert: Alert) -> None:
        for sink in self.sinks:
            sink.emit(alert)


# --- Monitor ---------------------------------------------------------------

class ScheduleMonitor:
    def __init__(self, markers: MarkerStore, sink: AlertSink):
        self.markers = markers
        self.sink = sink
        self._appointments: list = []
        self._previous: Optional[Dict[int, str]] = None
        self._propagated: set = set()
        self._announced: set = set()
        # request handlers and the poller both drive the monitor
        self._lock = threading.RLock()
        self._settings: Dict[int, NotificationSettings] = {}

    def update_settings(self, settings: Dict[int, NotificationSettings]) -> None:
        with self._lock:
            self._settings = dict(settings)

    def settings_for(self, client_id: Optional[int]) -> NotificationSettings:
        return self._settings.get(client_id) or NotificationSettings()

    def observe(self, appointments: Iterable, now: datetime) -> List[Alert]:
        """Replace the known appointment list; alert on what changed since the last call."""
        with self._lock:
            return self._observe(list(appointments), now)

    def _observe(self, appointments: list, now: datetime) -> List[Alert]:
        previous = self._previous
        self._appointments = appointments
        self._previous = {apt.id: apt.status for apt in appointments}

        if previous is None:
            # first snapshot: nothing to compare with
            self._announced.update(apt.id for apt in appointments)
            self._propagated.update(
                apt.id for apt in appointments if apt.status == AppointmentStatus.completed.value
            )
            return []

        alerts = []
        for apt in appointments:
            before = previous.get(apt.id)
            if before is None:
                if apt.id not in self._announced and apt.status == AppointmentStatus.scheduled.value:
                    alerts.append(self._new_booking_alert(apt))
                self._announced.add(apt.id)
                continue
            if (
                apt.status == AppointmentStatus.completed.value
                and before != AppointmentStatus.completed.value
                and apt.id not in self._propagated
            ):
                self._propagated.add(apt.id)
                alerts.extend(self._drift_alerts(apt, now))

        for alert in alerts:
            self._deliver(alert)
        return alerts

    def tick(self, now: datetime) -> List[Alert]:
        with self._lock:
            return self._tick(now)

    def _tick(self, now: datetime) -> List[Alert]:
        today = now.date()
        purged = self.markers.purge_stale(today)
        if purged:
            logger.debug("Purged %d notification markers from previous days", purged)

        alerts = []
        todays = [apt for apt in self._appointments if as_date(apt.date) == today]

        for apt in todays:
            if apt.status != AppointmentStatus.scheduled.value:
                continue
            remaining = minutes_until(apt, now)
            settings = self.settings_for(apt.client_id)

            for threshold in sorted(settings.alert_times, reverse=True):
                if threshold - 1 < remaining <= threshold and settings.allows(threshold):
                    alerts += self._emit_once(self._reminder_alert(apt, threshold, remaining), today)

            if ADMIN_ALERT_MINUTES - 1 < remaining <= ADMIN_ALERT_MINUTES:
                alerts += self._emit_once(
                    Alert(
                        audience=Audience.admin,
                        appointment_id=apt.id,
                        threshold_minutes=ADMIN_ALERT_MINUTES,
                        kind="upcoming",
                        title="Client coming up",
                        message=f"{apt.client_name or 'Client'} is due in {remaining} minutes - {apt.service_name or 'service'}",
                    ),
                    today,
                )

        for apt in todays:
            overrun = get_overrun_minutes(apt, now)
            bucket = (overrun // OVERRUN_ALERT_EVERY) * OVERRUN_ALERT_EVERY
            if bucket < OVERRUN_ALERT_EVERY:
                continue
            alerts += self._overrun_alerts(apt, bucket, today)

        return alerts

    def _emit_once(self, alert: Alert, day: date) -> List[Alert]:
        kind = alert.kind if alert.kind in SCOPED_MARKER_KINDS else None
        key = marker_key(alert.appointment_id, alert.threshold_minutes, alert.audience, day, kind)
        if self.markers.get(key):
            return []
        if not self._deliver(alert):
            return []
        self.markers.set(key, "true", day)
        return [alert]

    def _deliver(self, alert: Alert) -> bool:
        try:
            self.sink.emit(alert)
        except Exception:
            logger.exception("Failed to deliver alert for appointment %s", alert.appointment_id)
            return False
        return True

    def _new_booking_alert(self, apt) -> Alert:
        return Alert(
            audience=Audience.admin,
            appointment_id=apt.id,
            threshold_minutes=0,
            kind="new_appointment",
            title="New appointment booked",
            message=f"{apt.client_name or 'Client'} - {apt.service_name or 'service'} on {apt.date} at {apt.time}",
        )

    def _reminder_alert(self, apt, threshold: int, remaining: int) -> Alert:
        service = apt.service_name or "Your service"
        if threshold <= 5:
            title, message = "Your turn is very close", f"{service} in {remaining} minutes. You should be here already!"
        elif threshold <= 10:
            title, message = "Get ready", f"Your appointment is in {remaining} minutes. Time to head to the shop."
        else:
            title, message = "Your appointment is coming up", f"{service} in {remaining} minutes"
        return Alert(
            audience=Audience.client,
            appointment_id=apt.id,
            threshold_minutes=threshold,
            kind="reminder",
            title=title,
            message=message,
        )

    def _drift_alerts(self, completed, now: datetime) -> List[Alert]:
        impact = calculate_schedule_impact(self._appointments, completed, now=now)
        deviation = impact.deviation
        if not deviation.adjustment or not impact.affected:
            return []

        logger.info(
            "Appointment %s finished %s by %d minutes; %d later appointments shifted",
            completed.id, deviation.type, deviation.minutes, len(impact.affected),
        )
        alerts = []
        for apt, adjusted in impact.affected:
            service = apt.service_name or "service"
            if deviation.type == LATE:
                title = "Small delay on your appointment"
                message = (
                    f"Your {service} appointment is running about {deviation.minutes} minutes late. "
                    f"New estimated time: {adjusted}"
                )
            else:
                title = "Good news! Your appointment moved earlier"
                message = (
                    f"Your {service} appointment should now start around {adjusted}, "
                    f"{deviation.minutes} minutes earlier."
                )
            alerts.append(Alert(
                audience=Audience.client,
                appointment_id=apt.id,
                threshold_minutes=deviation.adjustment,
                kind=f"schedule_{deviation.type}",
                title=title,
                message=message,
            ))

        count = len(impact.affected)
        direction = "delayed" if deviation.type == LATE else "moved up"
        alerts.append(Alert(
            audience=Audience.admin,
            appointment_id=completed.id,
            threshold_minutes=deviation.adjustment,
            kind="schedule_updated",
            title="Schedule updated",
            message=(
                f"{count} appointment{'s' if count > 1 else ''} {direction} by {deviation.minutes} minutes "
                f"after finishing {completed.client_name or 'a client'}"
            ),
        ))
        return alerts

    def _overrun_alerts(self, apt, bucket: int, today: date) -> List[Alert]:
        later = get_subsequent_appointments(self._appointments, apt)
        if not later:
            return []

        alerts = []
        for waiting in later:
            alerts += self._emit_once(
                Alert(
                    audience=Audience.client,
                    appointment_id=waiting.id,
                    threshold_minutes=bucket,
                    kind="running_late",
                    title="Delay in progress",
                    message=(
                        f"Your appointment may be delayed about {bucket} minutes. "
                        f"Updated estimate: {calculate_adjusted_time(waiting.time, bucket)}"
                    ),
                ),
                today,
            )
        alerts += self._emit_once(
            Alert(
                audience=Audience.admin,
                appointment_id=apt.id,
                threshold_minutes=bucket,
                kind="running_late",
                title="Appointment running over",
                message=f"{apt.client_name or 'Client'} is {bucket} minutes over. {len(later)} later appointments affected.",
            ),
            today,
        )
        return alerts
