# barbershop/models.py

from typing import Optional
from datetime import datetime, date as Date

from sqlalchemy.types import JSON
from sqlmodel import SQLModel, Field, Column


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    client_id: Optional[int] = Field(default=None, index=True)
    client_name: str = ""
    date: Date = Field(index=True)
    time: str  # HH:MM, 24h
    service_id: Optional[str] = None
    service_name: str = ""
    service_duration: Optional[int] = 30
    service_price: float = 0
    notes: Optional[str] = None
    status: str = "scheduled"

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None


class Service(SQLModel, table=True):
    id: str = Field(primary_key=True)
    name: str
    description: Optional[str] = None
    duration: int
    price: float = 0
    active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    phone: str = Field(index=True, unique=True)
    first_name: str
    last_name: str
    user_type: str = "client"  # client or admin
    notification_settings: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class NotificationMarker(SQLModel, table=True):
    key: str = Field(primary_key=True)
    day: Date = Field(index=True)
    value: str = "true"
