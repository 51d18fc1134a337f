# barbershop/routers/users_routes.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select, or_

from barbershop.db import get_session
from barbershop.models import User
from barbershop.schemas import NotificationSettings, UserPublic
from barbershop.auth import get_current_user, normalize_phone, user_to_public
from barbershop.deps import require_role

router = APIRouter(
    tags=["users"],
)


@router.get("/me", response_model=UserPublic)
def me(current_user: User = Depends(get_current_user)):
    return user_to_public(current_user)


@router.get("/me/notification-settings", response_model=NotificationSettings)
def get_notification_settings(current_user: User = Depends(get_current_user)):
    return NotificationSettings(**(current_user.notification_settings or {}))


@router.put("/me/notification-settings", response_model=NotificationSettings)
def update_notification_settings(
    settings: NotificationSettings,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if any(minutes <= 0 for minutes in settings.alert_times):
        raise HTTPException(status_code=422, detail="alert_times must be positive minutes")

    current_user.notification_settings = settings.model_dump()
    session.add(current_user)
    session.commit()
    session.refresh(current_user)
    return settings


@router.get("/users", response_model=List[UserPublic])
def list_clients(
    q: Optional[str] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Client roster for the admin, newest first."""
    require_role(current_user, "admin")

    stmt = select(User)
    if q:
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(or_(
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
            User.phone.ilike(pattern),
        ))
    stmt = stmt.order_by(User.created_at.desc(), User.id.desc())

    return [user_to_public(user) for user in session.exec(stmt).all()]


@router.get("/users/by-phone/{phone}", response_model=UserPublic)
def find_user_by_phone(
    phone: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    require_role(current_user, "admin")

    user = session.exec(
        select(User).where(User.phone == normalize_phone(phone))
    ).first()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user_to_public(user)
