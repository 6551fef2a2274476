import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "on", "yes"}


def _env_list(name: str) -> list[str]:
    # Comma-separated, e.g. "+15551234567,+15559876543"
    return [v.strip() for v in os.getenv(name, "").split(",") if v.strip()]


class Config:
    raw_db_url = os.getenv("DATABASE_URL")

    if raw_db_url:
        if raw_db_url.startswith("postgres://"):
            raw_db_url = raw_db_url.replace("postgres://", "postgresql://", 1)
        SQLALCHEMY_DATABASE_URI = raw_db_url
    else:
        SQLALCHEMY_DATABASE_URI = "sqlite:///pokerbot.db"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me-dev-secret")

    # --- Invitation engine ---
    BLACKOUT_HOURS = float(os.getenv("BLACKOUT_HOURS", "4"))
    INVITE_BATCH_SIZE = int(os.getenv("INVITE_BATCH_SIZE", "5"))
    CONVERSATION_WINDOW = int(os.getenv("CONVERSATION_WINDOW", "5"))
    GAME_TIMEZONE = os.getenv("GAME_TIMEZONE", "America/Los_Angeles")
    EVENT_DURATION_HOURS = float(os.getenv("EVENT_DURATION_HOURS", "4"))

    # --- Twilio ---
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
    TWILIO_TIMEOUT = float(os.getenv("TWILIO_TIMEOUT", "10"))
    VERIFY_TWILIO_SIGNATURE = _env_bool("VERIFY_TWILIO_SIGNATURE", True)
    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL")

    # --- Anthropic ---
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
    ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
    ANTHROPIC_TIMEOUT = float(os.getenv("ANTHROPIC_TIMEOUT", "20"))

    # --- Google Calendar ---
    GOOGLE_SERVICE_ACCOUNT_JSON = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON")
    GOOGLE_SERVICE_ACCOUNT_FILE = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE")
    GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID")

    # --- Operators ---
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "letmein123")
    ADMIN_EMAILS = _env_list("ADMIN_EMAILS")
    ADMIN_PHONE_NUMBERS = _env_list("ADMIN_PHONE_NUMBERS")
    CRON_SECRET = os.getenv("CRON_SECRET")

RESEND_API_KEY = os.getenv("RESEND_API_KEY", None)
RESEND_FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL", "Pokerbot <onboarding@resend.dev>")
