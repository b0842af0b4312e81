"""
Runtime configuration.

Values come from the environment (optionally a local .env file) and are read once at import time.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./arena.db")
SQL_ECHO = _env_bool("SQL_ECHO", "false")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    CORS_ORIGINS.extend(o.strip() for o in _extra.split(",") if o.strip())

# Match confirmation window after a result is reported
CONFIRMATION_WINDOW_HOURS = int(os.getenv("CONFIRMATION_WINDOW_HOURS", "72"))

# Periodic sweep that finalizes matches whose confirmation window expired
AUTO_FINALIZE_ENABLED = _env_bool("AUTO_FINALIZE_ENABLED", "true")
AUTO_FINALIZE_INTERVAL_SECONDS = int(os.getenv("AUTO_FINALIZE_INTERVAL_SECONDS", "3600"))

MAX_DRAFT_TOURNAMENTS = int(os.getenv("MAX_DRAFT_TOURNAMENTS", "5"))
