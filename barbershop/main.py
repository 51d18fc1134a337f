# barbershop/main.py

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from barbershop import config
from barbershop.core import InvalidTimeError
from barbershop.db import create_db_and_tables, engine, seed_services
from barbershop.notifications import (
    AlertFeed,
    FanoutAlertSink,
    LoggingAlertSink,
    ScheduleMonitor,
    SQLMarkerStore,
)
from barbershop.routers import (
    appointments_routes,
    auth_routes,
    schedule_routes,
    services_routes,
    users_routes,
)
from barbershop.tasks import poll_alerts

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    create_db_and_tables()
    with Session(engine) as session:
        seeded = seed_services(session)
        if seeded:
            logger.info("Seeded %d default services", seeded)

    poller = None
    if config.ALERT_POLLING_ENABLED:
        poller = asyncio.create_task(
            poll_alerts(app.state.monitor, engine, config.ALERT_POLL_SECONDS)
        )

    yield

    if poller is not None:
        poller.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await poller
    logger.info("Application shutting down...")


app = FastAPI(title="Barbershop Scheduling API", version="1.0.0", lifespan=lifespan)

app.state.alert_feed = AlertFeed(maxlen=config.ALERT_FEED_SIZE)
app.state.monitor = ScheduleMonitor(
    markers=SQLMarkerStore(engine),
    sink=FanoutAlertSink(LoggingAlertSink(), app.state.alert_feed),
)


@app.exception_handler(InvalidTimeError)
async def invalid_time_handler(request: Request, exc: InvalidTimeError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.get("/health")
def health_check():
    return {"status": "ok"}


app.include_router(auth_routes.router)
app.include_router(users_routes.router)
app.include_router(services_routes.router)
app.include_router(appointments_routes.router)
app.include_router(schedule_routes.router)
