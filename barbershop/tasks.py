# barbershop/tasks.py

"""
Scheduled Tasks

Glue between the database and the ScheduleMonitor:
- refresh_monitor: reload every appointment and hand the full list over
- run_alert_cycle: refresh + tick, what the poller runs once per interval
- poll_once: one cycle in its own session
- poll_alerts: asyncio loop started from the application lifespan; each
  cycle runs in a worker thread
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List

from sqlmodel import Session, select

from barbershop.models import Appointment, User
from barbershop.notifications import Alert, ScheduleMonitor
from barbershop.schemas import NotificationSettings

logger = logging.getLogger(__name__)


def load_appointments(session: Session) -> List[Appointment]:
    rows = session.exec(select(Appointment).order_by(Appointment.date, Appointment.time)).all()
    # detached copies: the monitor keeps them after the session is gone
    return [Appointment(**row.model_dump()) for row in rows]


def load_notification_settings(session: Session) -> Dict[int, NotificationSettings]:
    users = session.exec(select(User)).all()
    # users who never saved settings keep the defaults
    return {
        user.id: NotificationSettings(**user.notification_settings)
        for user in users
        if user.notification_settings
    }


def refresh_monitor(session: Session, monitor: ScheduleMonitor, now: datetime) -> List[Alert]:
    monitor.update_settings(load_notification_settings(session))
    return monitor.observe(load_appointments(session), now)


def run_alert_cycle(session: Session, monitor: ScheduleMonitor, now: datetime) -> List[Alert]:
    alerts = refresh_monitor(session, monitor, now)
    alerts += monitor.tick(now)
    if alerts:
        logger.info("Alert cycle at %s emitted %d alerts", now.strftime("%H:%M"), len(alerts))
    return alerts


def poll_once(monitor: ScheduleMonitor, engine, now: datetime) -> List[Alert]:
    with Session(engine) as session:
        return run_alert_cycle(session, monitor, now)


async def poll_alerts(
    monitor: ScheduleMonitor,
    engine,
    interval_seconds: int,
    clock: Callable[[], datetime] = datetime.now,
) -> None:
    logger.info("Alert polling started (every %ss)", interval_seconds)
    while True:
        try:
            await asyncio.to_thread(poll_once, monitor, engine, clock())
        except Exception:
            logger.exception("Alert cycle failed")
        await asyncio.sleep(interval_seconds)
