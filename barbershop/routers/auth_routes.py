# barbershop/routers/auth_routes.py

import logging

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import User
from barbershop.schemas import LoginRequest, LoginResponse, UserType
from barbershop.auth import create_access_token, is_admin_phone, normalize_phone, user_to_public

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.post("/login", response_model=LoginResponse)
def login(
    data: LoginRequest,
    session: Session = Depends(get_session),
):
    """Log in with a phone number, registering the client on first use."""
    phone = normalize_phone(data.phone)

    user = session.exec(
        select(User).where(User.phone == phone)
    ).first()

    if user is None:
        user_type = UserType.admin if is_admin_phone(phone) else UserType.client
        user = User(
            phone=phone,
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            user_type=user_type.value,
        )
        session.add(user)
        session.commit()
        session.refresh(user)  # fills user.id
        logger.info("Registered new %s user %s", user.user_type, user.id)

    token = create_access_token({"sub": user.phone})
    return {"access_token": token, "token_type": "bearer", "user": user_to_public(user)}
