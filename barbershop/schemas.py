# barbershop/schemas.py

from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime, date
from typing import Any, Dict, List, Optional

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
PHONE_PATTERN = r"^\+?[0-9][0-9 \-]{5,19}$"


class AppointmentStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"


class UserType(str, Enum):
    client = "client"
    admin = "admin"


class Audience(str, Enum):
    client = "client"
    admin = "admin"


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    phone: str = Field(pattern=PHONE_PATTERN)
    first_name: str = Field(min_length=1, max_length=60)
    last_name: str = Field(min_length=1, max_length=60)


class UserPublic(BaseModel):
    id: int
    phone: str
    first_name: str
    last_name: str
    full_name: str
    type: UserType


class LoginResponse(Token):
    user: UserPublic


class NotificationSettings(BaseModel):
    enabled: bool = True
    alert_times: List[int] = Field(default_factory=lambda: [20, 10, 5])
    show_in_app: bool = True

    def allows(self, minutes_before: int) -> bool:
        return self.enabled and self.show_in_app and minutes_before in self.alert_times


class ServiceCreate(BaseModel):
    id: str = Field(pattern=r"^[a-z0-9_\-]{2,40}$")
    name: str = Field(min_length=1)
    description: Optional[str] = None
    duration: int = Field(gt=0, le=480)
    price: float = Field(ge=0)
    active: bool = True


class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0, le=480)
    price: Optional[float] = Field(default=None, ge=0)
    active: Optional[bool] = None


class ServicePublic(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    duration: int
    price: float
    active: bool


class ClientAppointmentCreate(BaseModel):
    date: date
    time: str = Field(pattern=TIME_PATTERN)
    service_id: str
    notes: Optional[str] = None


class AdminAppointmentCreate(ClientAppointmentCreate):
    client_id: int


class StatusUpdate(BaseModel):
    status: AppointmentStatus


class AppointmentPublic(BaseModel):
    id: int
    client_id: Optional[int] = None
    client_name: str
    date: date
    time: str
    service_id: Optional[str] = None
    service_name: str
    service_duration: Optional[int] = None
    service_price: float
    notes: Optional[str] = None
    status: AppointmentStatus
    created_at: datetime
    completed_at: Optional[datetime] = None


class AppointmentImportRequest(BaseModel):
    # flat or nested export rows, see adapters.appointment_from_record
    records: List[Dict[str, Any]] = Field(min_length=1, max_length=500)


class ImportSkip(BaseModel):
    index: int
    reason: str


class AppointmentImportResponse(BaseModel):
    imported: List[AppointmentPublic]
    skipped: List[ImportSkip]


class DeviationPublic(BaseModel):
    type: str
    minutes: int


class AdjustedAppointment(BaseModel):
    id: int
    client_name: str
    time: str
    adjusted_time: str


class ScheduleImpactResponse(BaseModel):
    appointment_id: int
    deviation: DeviationPublic
    affected: List[AdjustedAppointment]


class AvailabilityResponse(BaseModel):
    date: date
    available_starts: List[str]
    suggested_time: str
    suggested_date: date


class NextSlotResponse(BaseModel):
    date: date
    duration: int
    start_from: str
    next_slot: Optional[str] = None


class SlotCheckResponse(BaseModel):
    date: date
    time: str
    duration: int
    available: bool


class WaitEstimateResponse(BaseModel):
    date: date
    time: str
    clients_before: int
    wait_minutes: int


class QueueStatusResponse(BaseModel):
    total_in_queue: int
    currently_serving: Optional[str] = None
    position: Optional[int] = None
    estimated_wait_minutes: Optional[int] = None


class AlertPublic(BaseModel):
    audience: Audience
    appointment_id: int
    threshold_minutes: int
    kind: str
    title: str
    message: str
    created_at: datetime
