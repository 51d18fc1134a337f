# barbershop/routers/appointments_routes.py

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.adapters import appointment_from_record
from barbershop.db import get_session
from barbershop.models import Appointment, Service, User
from barbershop.schemas import (
    AdminAppointmentCreate,
    AppointmentImportRequest,
    AppointmentImportResponse,
    AppointmentPublic,
    AppointmentStatus,
    ClientAppointmentCreate,
    ScheduleImpactResponse,
    StatusUpdate,
)
from barbershop.auth import get_current_user
from barbershop.deps import get_clock, get_monitor, require_role
from barbershop.core import calculate_schedule_impact, is_time_slot_available
from barbershop.core.catalog import is_catalog_slot
from barbershop.core.slots import duration_of
from barbershop.core.timeutils import clock_minutes, time_to_minutes
from barbershop.notifications import ScheduleMonitor
from barbershop.tasks import load_appointments, refresh_monitor

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["appointments"],
)

# Allowed lifecycle moves; anything else is rejected and leaves the record unchanged
TRANSITIONS = {
    AppointmentStatus.scheduled.value: {AppointmentStatus.in_progress.value, AppointmentStatus.cancelled.value},
    AppointmentStatus.in_progress.value: {AppointmentStatus.completed.value},
    AppointmentStatus.completed.value: set(),
    AppointmentStatus.cancelled.value: set(),
}


def _book(
    session: Session,
    client: User,
    appt: ClientAppointmentCreate,
    now: datetime,
    require_catalog_slot: bool,
) -> Appointment:
    # 1) Validate service
    service = session.get(Service, appt.service_id)
    if service is None or not service.active:
        raise HTTPException(status_code=422, detail="Service not available")

    # 2) Self-service bookings must start on a catalog slot
    if require_catalog_slot and not is_catalog_slot(appt.time):
        raise HTTPException(status_code=422, detail="Time must be one of the offered slots")

    # 3) Prevent booking in the past (local wall clock)
    if appt.date < now.date() or (
        appt.date == now.date() and time_to_minutes(appt.time) <= clock_minutes(now)
    ):
        raise HTTPException(status_code=422, detail="Cannot book an appointment in the past")

    # 4) Reject overlaps with the day's appointments (single chair)
    day_appts = session.exec(
        select(Appointment).where(Appointment.date == appt.date)
    ).all()
    if not is_time_slot_available(day_appts, appt.date, appt.time, service.duration):
        raise HTTPException(status_code=409, detail="Appointment overlaps an existing appointment")

    # 5) Create and save appointment
    db_appt = Appointment(
        client_id=client.id,
        client_name=client.full_name,
        date=appt.date,
        time=appt.time,
        service_id=service.id,
        service_name=service.name,
        service_duration=service.duration,
        service_price=service.price,
        notes=appt.notes,
        status=AppointmentStatus.scheduled.value,
    )
    session.add(db_appt)
    session.commit()
    session.refresh(db_appt)  # fills db_appt.id
    logger.info("Booked appointment %s for client %s on %s %s", db_appt.id, client.id, db_appt.date, db_appt.time)
    return db_appt


@router.post("/appointments", response_model=AppointmentPublic, status_code=201)
def client_create_appointment(
    appt: ClientAppointmentCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
    monitor: ScheduleMonitor = Depends(get_monitor),
):
    require_role(current_user, "client")
    now = clock()
    db_appt = _book(session, current_user, appt, now, require_catalog_slot=True)
    refresh_monitor(session, monitor, now)
    return db_appt


@router.post("/admin/appointments", response_model=AppointmentPublic, status_code=201)
def admin_create_appointment(
    appt: AdminAppointmentCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
    monitor: ScheduleMonitor = Depends(get_monitor),
):
    """Manual booking by the admin; may land off the slot grid."""
    require_role(current_user, "admin")

    client = session.get(User, appt.client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")

    now = clock()
    db_appt = _book(session, client, appt, now, require_catalog_slot=False)
    refresh_monitor(session, monitor, now)
    return db_appt


@router.post("/admin/appointments/import", response_model=AppointmentImportResponse)
def import_appointments(
    payload: AppointmentImportRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
    monitor: ScheduleMonitor = Depends(get_monitor),
):
    """
    Load appointments exported from the previous backend.

    Each record is checked against what is already stored, including rows
    imported earlier in the same batch. Malformed or overlapping records are
    skipped and reported by position; the rest are saved with fresh ids.
    """
    require_role(current_user, "admin")

    imported, skipped = [], []
    for index, record in enumerate(payload.records):
        # 1) Translate and validate the record
        try:
            appt = appointment_from_record(record)
            time_to_minutes(appt.time)
            if appt.status not in TRANSITIONS:
                raise ValueError(f"unknown status {appt.status!r}")
        except (KeyError, TypeError, ValueError) as exc:
            skipped.append({"index": index, "reason": f"Malformed record: {exc}"})
            continue

        if appt.client_id is not None and session.get(User, appt.client_id) is None:
            skipped.append({"index": index, "reason": "Client not found"})
            continue

        # 2) Cancelled rows never occupy the chair; everything else must fit
        if appt.status != AppointmentStatus.cancelled.value:
            day_appts = session.exec(
                select(Appointment).where(Appointment.date == appt.date)
            ).all()
            if not is_time_slot_available(day_appts, appt.date, appt.time, duration_of(appt)):
                skipped.append({"index": index, "reason": "Overlaps an existing appointment"})
                continue

        # 3) Save under a new id
        appt.id = None
        session.add(appt)
        session.commit()
        session.refresh(appt)
        imported.append(AppointmentPublic.model_validate(appt, from_attributes=True))

    logger.info("Imported %d appointments, skipped %d", len(imported), len(skipped))
    if imported:
        refresh_monitor(session, monitor, clock())
    return {"imported": imported, "skipped": skipped}


@router.get("/appointments", response_model=List[AppointmentPublic])
def list_appointments(
    status: Optional[str] = "all",
    on_date: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_role(current_user, "admin")

    if status != "all" and status not in TRANSITIONS:
        raise HTTPException(status_code=422, detail="Unknown status filter")

    stmt = select(Appointment)
    if on_date is not None:
        stmt = stmt.where(Appointment.date == on_date)
    if status != "all":
        stmt = stmt.where(Appointment.status == status)
    stmt = stmt.order_by(Appointment.date, Appointment.time)

    return session.exec(stmt).all()


@router.get("/clients/me/appointments", response_model=List[AppointmentPublic])
def list_my_appointments(
    status: Optional[str] = "all",
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if status != "all" and status not in TRANSITIONS:
        raise HTTPException(status_code=422, detail="Unknown status filter")

    stmt = select(Appointment).where(Appointment.client_id == current_user.id)
    if status != "all":
        stmt = stmt.where(Appointment.status == status)
    stmt = stmt.order_by(Appointment.date, Appointment.time)

    return session.exec(stmt).all()


def _change_status(session: Session, target: Appointment, new_status: str, now: datetime) -> Appointment:
    if new_status == target.status:
        raise HTTPException(status_code=409, detail=f"Appointment already {target.status}")
    if new_status not in TRANSITIONS[target.status]:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot change appointment from {target.status} to {new_status}",
        )

    target.status = new_status
    target.updated_at = now
    if new_status == AppointmentStatus.completed.value:
        target.completed_at = now

    session.add(target)
    session.commit()
    session.refresh(target)
    logger.info("Appointment %s is now %s", target.id, target.status)
    return target


@router.patch("/appointments/{appt_id}/status", response_model=AppointmentPublic)
def update_appointment_status(
    appt_id: int,
    update: StatusUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
    monitor: ScheduleMonitor = Depends(get_monitor),
):
    require_role(current_user, "admin")

    target = session.get(Appointment, appt_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    now = clock()
    target = _change_status(session, target, update.status.value, now)
    refresh_monitor(session, monitor, now)
    return target


@router.patch("/appointments/{appt_id}/cancel", response_model=AppointmentPublic)
def cancel_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
    monitor: ScheduleMonitor = Depends(get_monitor),
):
    # 1) Find the appointment in DB
    target = session.get(Appointment, appt_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    # 2) Authorization: client who booked OR admin
    if current_user.user_type != "admin" and target.client_id != current_user.id:
        raise HTTPException(status_code=403, detail="Forbidden")

    # 3) Cancel and persist
    now = clock()
    target = _change_status(session, target, AppointmentStatus.cancelled.value, now)
    refresh_monitor(session, monitor, now)
    return target


@router.get("/appointments/{appt_id}/impact", response_model=ScheduleImpactResponse)
def appointment_schedule_impact(
    appt_id: int,
    completed_at: Optional[datetime] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """How finishing this appointment (now, or at ``completed_at``) shifts the rest of the day."""
    require_role(current_user, "admin")

    target = session.get(Appointment, appt_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    if completed_at is not None:
        completed_at = completed_at.replace(tzinfo=None)
    impact = calculate_schedule_impact(
        load_appointments(session), target, completed_at=completed_at, now=clock()
    )
    return {
        "appointment_id": target.id,
        "deviation": {"type": impact.deviation.type, "minutes": impact.deviation.minutes},
        "affected": [
            {"id": apt.id, "client_name": apt.client_name, "time": apt.time, "adjusted_time": adjusted}
            for apt, adjusted in impact.affected
        ],
    }
