# barbershop/config.py

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barbershop.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# Session tokens
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

# Phone number that registers as the shop administrator
ADMIN_PHONE = os.getenv("ADMIN_PHONE", "42243067")

# Alert polling: the host calls ScheduleMonitor.tick() every ALERT_POLL_SECONDS
ALERT_POLLING_ENABLED = os.getenv("ALERT_POLLING_ENABLED", "true").lower() == "true"
ALERT_POLL_SECONDS = int(os.getenv("ALERT_POLL_SECONDS", "60"))
ALERT_FEED_SIZE = int(os.getenv("ALERT_FEED_SIZE", "200"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
