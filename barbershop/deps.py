# barbershop/deps.py

from datetime import datetime
from typing import Callable

from fastapi import HTTPException, Request

from barbershop.models import User
from barbershop.notifications import AlertFeed, ScheduleMonitor


def require_role(user: User, role: str):
    if user.user_type != role:
        raise HTTPException(status_code=403, detail="Forbidden")


# Overridden in tests to pin "now"
def get_clock() -> Callable[[], datetime]:
    return datetime.now


def get_monitor(request: Request) -> ScheduleMonitor:
    return request.app.state.monitor


def get_alert_feed(request: Request) -> AlertFeed:
    return request.app.state.alert_feed
