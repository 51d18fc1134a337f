# barbershop/routers/services_routes.py

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import Service, User
from barbershop.schemas import ServiceCreate, ServicePublic, ServiceUpdate
from barbershop.auth import get_current_user
from barbershop.deps import require_role

router = APIRouter(
    prefix="/services",
    tags=["services"],
)


@router.get("", response_model=List[ServicePublic])
def list_services(
    include_inactive: bool = False,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = select(Service)
    if not include_inactive or current_user.user_type != "admin":
        stmt = stmt.where(Service.active == True)  # noqa: E712
    stmt = stmt.order_by(Service.created_at, Service.id)
    return session.exec(stmt).all()


@router.post("", response_model=ServicePublic, status_code=201)
def create_service(
    service: ServiceCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_role(current_user, "admin")

    db_service = Service(**service.model_dump())
    session.add(db_service)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Service id already exists")

    session.refresh(db_service)
    return db_service


def _get_service_or_404(session: Session, service_id: str) -> Service:
    db_service = session.get(Service, service_id)
    if db_service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return db_service


@router.patch("/{service_id}", response_model=ServicePublic)
def update_service(
    service_id: str,
    updates: ServiceUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_service = _get_service_or_404(session, service_id)

    for key, value in updates.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(db_service, key, value)
    db_service.updated_at = datetime.now()

    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.patch("/{service_id}/toggle", response_model=ServicePublic)
def toggle_service(
    service_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_service = _get_service_or_404(session, service_id)

    db_service.active = not db_service.active
    db_service.updated_at = datetime.now()
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.delete("/{service_id}", status_code=204)
def delete_service(
    service_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_service = _get_service_or_404(session, service_id)

    session.delete(db_service)
    session.commit()
