import os
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

load_dotenv()


def _rate(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        value = Decimal(raw)
    except InvalidOperation as e:
        raise ValueError(f"{name} must be a decimal fraction, got {raw!r}") from e
    if not Decimal("0") <= value < Decimal("1"):
        raise ValueError(f"{name} must be in [0, 1), got {value}")
    return value


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
SQL_ECHO = _flag("SQL_ECHO")

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Escrow split and settlement
COMMISSION_RATE = _rate("COMMISSION_RATE", "0.10")
VAT_RATE = _rate("VAT_RATE", "0.21")
CURRENCY = os.getenv("CURRENCY", "EUR").upper()

RETENTION_DAYS = int(os.getenv("RETENTION_DAYS", "7"))
if RETENTION_DAYS < 0:
    raise ValueError("RETENTION_DAYS must be >= 0")

# Reservation policy
CANCELLATION_WINDOW_HOURS = int(os.getenv("CANCELLATION_WINDOW_HOURS", "24"))
MAX_AVAILABILITY_RANGE_DAYS = int(os.getenv("MAX_AVAILABILITY_RANGE_DAYS", "92"))
PENDING_HOLDS_SLOT = _flag("PENDING_HOLDS_SLOT")

# Video calls
CALL_EARLY_JOIN_MINUTES = int(os.getenv("CALL_EARLY_JOIN_MINUTES", "10"))
CALL_TOKEN_TTL_SECONDS = int(os.getenv("CALL_TOKEN_TTL_SECONDS", "7200"))
VIDEO_TOKEN_URL = os.getenv("VIDEO_TOKEN_URL")

# External gateways
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
GATEWAY_TIMEOUT_SECONDS = int(os.getenv("GATEWAY_TIMEOUT_SECONDS", "20"))
NOTIFICATIONS_URL = os.getenv("NOTIFICATIONS_URL")

# Shared secret for the identity service pushing user records
INTERNAL_API_TOKEN = os.getenv("INTERNAL_API_TOKEN", "")
