"""
Runtime configuration for the scheduling service.

All values are read once from the environment (a local .env file is honoured)
and exposed as module-level constants.
"""

import os
from datetime import time
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_time(name: str, default: str) -> time:
    """Parse an HH:MM environment value into a time."""
    raw = os.getenv(name, default).strip()
    hour_str, _, minute_str = raw.partition(":")
    return time(int(hour_str), int(minute_str or 0))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./league_schedule.db")
SQL_ECHO = _env_bool("SQL_ECHO")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# API
CORS_ORIGINS: List[str] = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    CORS_ORIGINS.extend(o.strip() for o in _extra.split(",") if o.strip())

# Scheduling defaults (used when a request does not supply its own values)
DEFAULT_DAY_START = _env_time("SCHEDULER_DAY_START", "08:00")
DEFAULT_DAY_END = _env_time("SCHEDULER_DAY_END", "22:00")
DEFAULT_GAME_DURATION_MINUTES = _env_int("SCHEDULER_GAME_DURATION_MINUTES", 60)
DEFAULT_MIN_REST_MINUTES = _env_int("SCHEDULER_MIN_REST_MINUTES", 60)
GRID_STEP_MINUTES = _env_int("SCHEDULER_GRID_STEP_MINUTES", 30)
