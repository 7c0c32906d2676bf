import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medbook.db")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

# All civil times (working hours, "now", calendar rendering) use this zone.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "Asia/Manila")

BOOKING_MAX_DAYS_AHEAD = _get_int("BOOKING_MAX_DAYS_AHEAD", 5)
BOOKING_MIN_LEAD_MINUTES = _get_int("BOOKING_MIN_LEAD_MINUTES", 60)

SLOT_DURATION_MINUTES = _get_int("SLOT_DURATION_MINUTES", 30)
SLOT_GAP_MINUTES = _get_int("SLOT_GAP_MINUTES", 5)
CONFLICT_BUFFER_MINUTES = _get_int("CONFLICT_BUFFER_MINUTES", 5)
NO_SHOW_GRACE_MINUTES = _get_int("NO_SHOW_GRACE_MINUTES", 5)

DEFAULT_SLOT_DAYS_AHEAD = _get_int("DEFAULT_SLOT_DAYS_AHEAD", 2)
CALENDAR_DAYS_AHEAD = _get_int("CALENDAR_DAYS_AHEAD", 5)
MAX_CALENDAR_DAYS_AHEAD = _get_int("MAX_CALENDAR_DAYS_AHEAD", 14)

SWEEP_INTERVAL_SECONDS = _get_int("SWEEP_INTERVAL_SECONDS", 300)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int("JWT_EXPIRES_MINUTES", 60)


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_DURATION_MINUTES <= 0 or SLOT_GAP_MINUTES < 0:
        raise RuntimeError("SLOT_DURATION_MINUTES must be positive and SLOT_GAP_MINUTES non-negative.")
