import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booking_engine.db")
DB_ECHO = _get_bool(os.getenv("DB_ECHO"), default=False)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int(os.getenv("JWT_EXPIRES_MINUTES"), 60)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",")
    if origin.strip()
]

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Africa/Cairo")
DEFAULT_LOOKAHEAD_DAYS = _get_int(os.getenv("DEFAULT_LOOKAHEAD_DAYS"), 21)
MAX_LOOKAHEAD_DAYS = _get_int(os.getenv("MAX_LOOKAHEAD_DAYS"), 35)
DEFAULT_BUFFER_MINUTES = _get_int(os.getenv("DEFAULT_BUFFER_MINUTES"), 5)

READ_RETRY_ATTEMPTS = _get_int(os.getenv("READ_RETRY_ATTEMPTS"), 3)
READ_RETRY_DELAY_SECONDS = float(os.getenv("READ_RETRY_DELAY_SECONDS", "0.05"))


@dataclass(frozen=True)
class EngineSettings:
    """Tunables consumed by the scheduling engine."""

    default_timezone: str = "Africa/Cairo"
    default_lookahead_days: int = 21
    max_lookahead_days: int = 35
    default_buffer_minutes: int = 5
    read_retry_attempts: int = 3
    read_retry_delay_seconds: float = 0.05

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            default_timezone=DEFAULT_TIMEZONE,
            default_lookahead_days=DEFAULT_LOOKAHEAD_DAYS,
            max_lookahead_days=MAX_LOOKAHEAD_DAYS,
            default_buffer_minutes=DEFAULT_BUFFER_MINUTES,
            read_retry_attempts=READ_RETRY_ATTEMPTS,
            read_retry_delay_seconds=READ_RETRY_DELAY_SECONDS,
        )


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if MAX_LOOKAHEAD_DAYS < DEFAULT_LOOKAHEAD_DAYS:
        raise RuntimeError("MAX_LOOKAHEAD_DAYS must be at least DEFAULT_LOOKAHEAD_DAYS.")
