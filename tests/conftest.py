"""
Shared pytest configuration for the barbershop scheduling tests.

Unit tests build Appointment objects directly; API tests run the FastAPI app
through TestClient against an in-memory SQLite database with the session and
the clock overridden.
"""

import os
from datetime import date, datetime

# Set before the application modules are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ALERT_POLLING_ENABLED"] = "false"
os.environ["ADMIN_PHONE"] = "42243067"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from barbershop.db import get_session, seed_services
from barbershop.deps import get_clock
from barbershop.main import app
from barbershop.models import Appointment
from barbershop.notifications import AlertFeed, InMemoryMarkerStore, ScheduleMonitor

ADMIN_PHONE = "42243067"
DAY = date(2026, 3, 10)


def make_appointment(
    id,
    time,
    duration=30,
    status="scheduled",
    on_date=DAY,
    client_id=None,
    completed_at=None,
    client_name="",
    service_name="Haircut",
):
    return Appointment(
        id=id,
        date=on_date,
        time=time,
        service_duration=duration,
        status=status,
        client_id=client_id if client_id is not None else id,
        client_name=client_name or f"Client {id}",
        service_name=service_name,
        completed_at=completed_at,
    )


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, hour: int, minute: int = 0, day: date = None):
        day = day or self.now.date()
        self.now = datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 8, 0))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        seed_services(session)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def feed():
    return AlertFeed(maxlen=100)


@pytest.fixture
def markers():
    return InMemoryMarkerStore()


@pytest.fixture
def client(engine, clock, feed, markers):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.state.alert_feed = feed
    app.state.monitor = ScheduleMonitor(markers=markers, sink=feed)

    yield TestClient(app)

    app.dependency_overrides.clear()


def login(client, phone, first_name="Test", last_name="User"):
    response = client.post(
        "/auth/login",
        json={"phone": phone, "first_name": first_name, "last_name": last_name},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]


@pytest.fixture
def admin_headers(client):
    headers, _ = login(client, ADMIN_PHONE, "Don", "Barber")
    return headers


@pytest.fixture
def client_user(client):
    return login(client, "55512345", "Ana", "Lopez")
