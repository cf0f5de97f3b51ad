import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./scheduling.db")
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql", "postgresql+asyncpg", 1)
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

# Scheduling
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")
BOOKING_LOCK_TIMEOUT_SECONDS = _float_env("BOOKING_LOCK_TIMEOUT_SECONDS", 3.0)

# Side effects (notifications / calendar sync)
NOTIFY_MAX_ATTEMPTS = _int_env("NOTIFY_MAX_ATTEMPTS", 3)
NOTIFY_BACKOFF_SECONDS = _float_env("NOTIFY_BACKOFF_SECONDS", 2.0)

# Email (Resend)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Scheduling <noreply@example.com>")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = _int_env("API_PORT", 8000)
APP_ENV = os.getenv("APP_ENV", "unknown")

# SMS (Twilio)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")

# Fernet key for calendar refresh tokens at rest; must be stable across restarts
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")
