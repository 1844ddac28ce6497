import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")
DB_TIMEOUT_SECONDS = int(os.getenv("DB_TIMEOUT_SECONDS", "10"))
DB_ECHO = _get_bool(os.getenv("DB_ECHO"), default=False)

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), default=["*"])

REFERENCE_TIMEZONE = os.getenv("REFERENCE_TIMEZONE", "Asia/Karachi")
ACTIVITY_WINDOW_MINUTES = int(os.getenv("ACTIVITY_WINDOW_MINUTES", "60"))
ACTIVITY_WINDOW_POLICY = os.getenv("ACTIVITY_WINDOW_POLICY", "forward").strip().lower()
ACTIVITY_WINDOW_POLICIES = {"forward", "backward"}

EMAIL_USER = os.getenv("EMAIL_USER", "")
EMAIL_PASS = os.getenv("EMAIL_PASS", "")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "VRX System")
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
EMAIL_TIMEOUT_SECONDS = int(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))


def email_enabled() -> bool:
    return bool(EMAIL_USER and EMAIL_PASS)


def validate_runtime_config() -> None:
    try:
        ZoneInfo(REFERENCE_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"Unknown REFERENCE_TIMEZONE: {REFERENCE_TIMEZONE!r}.") from exc

    if ACTIVITY_WINDOW_POLICY not in ACTIVITY_WINDOW_POLICIES:
        raise RuntimeError("ACTIVITY_WINDOW_POLICY must be 'forward' or 'backward'.")

    if ACTIVITY_WINDOW_MINUTES <= 0:
        raise RuntimeError("ACTIVITY_WINDOW_MINUTES must be positive.")

    if APP_ENV.lower() == "production" and not email_enabled():
        raise RuntimeError("EMAIL_USER and EMAIL_PASS must be set in production.")
