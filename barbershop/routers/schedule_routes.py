# barbershop/routers/schedule_routes.py

from datetime import date, datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import Appointment, User
from barbershop.schemas import (
    TIME_PATTERN,
    AlertPublic,
    Audience,
    AvailabilityResponse,
    NextSlotResponse,
    QueueStatusResponse,
    SlotCheckResponse,
    WaitEstimateResponse,
)
from barbershop.auth import get_current_user
from barbershop.deps import get_alert_feed, get_clock, get_monitor, require_role
from barbershop.core import (
    OPENING_TIME,
    SLOT_CATALOG,
    find_next_available_slot,
    get_available_time_slots,
    get_clients_before_time,
    get_queue_status,
    get_wait_time_before_time,
    is_time_slot_available,
    suggest_booking,
)
from barbershop.notifications import AlertFeed, ScheduleMonitor
from barbershop.tasks import load_appointments, run_alert_cycle

router = APIRouter(
    tags=["schedule"],
)


def _appointments_on(session: Session, *dates: date) -> List[Appointment]:
    return session.exec(
        select(Appointment).where(Appointment.date.in_(dates))
    ).all()


@router.get("/schedule/availability", response_model=AvailabilityResponse)
def availability(
    date: date,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    now = clock()
    if date < now.date():
        raise HTTPException(status_code=422, detail="Date is in the past")

    appts = _appointments_on(session, date)
    suggested_date, suggested_time = suggest_booking(appts, date, now)

    return {
        "date": date,
        "available_starts": get_available_time_slots(appts, date, now),
        "suggested_time": suggested_time,
        "suggested_date": suggested_date,
    }


@router.get("/schedule/next-slot", response_model=NextSlotResponse)
def next_slot(
    date: date,
    duration: int = Query(gt=0, le=480),
    start_from: str = Query(default=OPENING_TIME, pattern=TIME_PATTERN),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Earliest gap for a walk-in of ``duration`` minutes (admin booking helper)."""
    require_role(current_user, "admin")

    found = find_next_available_slot(_appointments_on(session, date), date, duration, start_from)
    return {"date": date, "duration": duration, "start_from": start_from, "next_slot": found or None}


@router.get("/schedule/check", response_model=SlotCheckResponse)
def check_slot(
    date: date,
    time: str = Query(pattern=TIME_PATTERN),
    duration: int = Query(gt=0, le=480),
    exclude_id: Optional[int] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    available = is_time_slot_available(
        _appointments_on(session, date), date, time, duration, exclude_id=exclude_id
    )
    return {"date": date, "time": time, "duration": duration, "available": available}


@router.get("/schedule/wait", response_model=WaitEstimateResponse)
def wait_estimate(
    date: date,
    time: str = Query(pattern=TIME_PATTERN),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    appts = _appointments_on(session, date)
    return {
        "date": date,
        "time": time,
        "clients_before": get_clients_before_time(appts, date, time),
        "wait_minutes": get_wait_time_before_time(appts, date, time),
    }


@router.get("/schedule/queue", response_model=QueueStatusResponse)
def queue_status(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    client_id = current_user.id if current_user.user_type == "client" else None
    status = get_queue_status(load_appointments(session), clock(), client_id=client_id)
    return {
        "total_in_queue": status.total_in_queue,
        "currently_serving": status.currently_serving,
        "position": status.position,
        "estimated_wait_minutes": status.estimated_wait_minutes,
    }


@router.post("/schedule/tick", response_model=List[AlertPublic])
def tick(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
    monitor: ScheduleMonitor = Depends(get_monitor),
):
    """Run one alert cycle now instead of waiting for the poller."""
    require_role(current_user, "admin")
    return [vars(alert) for alert in run_alert_cycle(session, monitor, clock())]


@router.get("/notifications", response_model=List[AlertPublic])
def notifications(
    limit: int = Query(default=50, gt=0, le=200),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    feed: AlertFeed = Depends(get_alert_feed),
):
    if current_user.user_type == "admin":
        alerts = feed.recent(audience=Audience.admin, limit=limit)
    else:
        mine = session.exec(
            select(Appointment.id).where(Appointment.client_id == current_user.id)
        ).all()
        alerts = feed.recent(audience=Audience.client, appointment_ids=mine, limit=limit)
    return [vars(alert) for alert in alerts]


@router.get("/schedule/slots", response_model=List[str])
def slot_catalog():
    return list(SLOT_CATALOG)
