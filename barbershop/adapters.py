# barbershop/adapters.py

"""Translate external appointment records into the canonical Appointment.

Rows exported from the previous hosted backend come in two shapes: a flat one
(``service_duration``, ``service_name``, ``completed_at``) and a nested one
(``service: {"duration", "name"}``, camelCase keys). Core functions only ever
see ``models.Appointment``.
"""

from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from barbershop.models import Appointment


def _first(record: dict, *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1]
    parsed = datetime.fromisoformat(text)
    # wall-clock only; drop any offset the export carried
    return parsed.replace(tzinfo=None)


def appointment_from_record(record: dict) -> Appointment:
    service = record.get("service") if isinstance(record.get("service"), dict) else {}

    duration = _first(record, "service_duration", "serviceDuration")
    if duration is None:
        duration = service.get("duration")

    return Appointment(
        id=record.get("id"),
        client_id=_first(record, "client_id", "clientId"),
        client_name=_first(record, "client_name", "clientName") or "",
        date=_parse_date(record["date"]),
        time=str(record["time"])[:5],
        service_id=_first(record, "service_id") or service.get("id"),
        service_name=_first(record, "service_name") or service.get("name") or "",
        service_duration=int(duration) if duration is not None else None,
        service_price=_first(record, "service_price") or service.get("price") or 0,
        notes=record.get("notes"),
        status=record.get("status") or "scheduled",
        completed_at=_parse_timestamp(_first(record, "completed_at", "completedAt")),
    )


def appointments_from_records(records: Iterable[dict]) -> List[Appointment]:
    return [appointment_from_record(record) for record in records]
