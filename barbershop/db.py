# barbershop/db.py

from sqlmodel import SQLModel, Session, create_engine, select

from barbershop import config
from barbershop.data import DEFAULT_SERVICES
from barbershop.models import Service

connect_args = {}
if config.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False  # required for SQLite + FastAPI

# Engine = connection to the database
engine = create_engine(
    config.DATABASE_URL,
    echo=config.SQL_ECHO,
    connect_args=connect_args,
)


def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)


def seed_services(session: Session) -> int:
    """Insert the default service catalog when the table is empty."""
    if session.exec(select(Service)).first() is not None:
        return 0
    for service_id, (name, duration, price) in DEFAULT_SERVICES.items():
        session.add(Service(id=service_id, name=name, duration=duration, price=price))
    session.commit()
    return len(DEFAULT_SERVICES)


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
