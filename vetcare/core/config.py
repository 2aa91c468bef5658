import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./vetcare.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:5173"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "3"))
LOGIN_RATE_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_WINDOW_SECONDS", "300"))

# How long a realtime stream waits on its channel before checking again.
REALTIME_POLL_SECONDS = float(os.getenv("REALTIME_POLL_SECONDS", "1.0"))

# Any string; a Fernet key is derived from it.
PAYMENT_ENCRYPTION_KEY = os.getenv("PAYMENT_ENCRYPTION_KEY", "change-me")

SERVICE_CHARGE = Decimal(os.getenv("SERVICE_CHARGE", "50.00"))
AVAILABLE_SLOT_RANGE_DAYS = int(os.getenv("AVAILABLE_SLOT_RANGE_DAYS", "30"))
DOCTORS_PAGE_SIZE = 12
APPOINTMENTS_PAGE_SIZE = 10


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    if JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if PAYMENT_ENCRYPTION_KEY == "change-me":
        raise RuntimeError("PAYMENT_ENCRYPTION_KEY must be set in production.")
