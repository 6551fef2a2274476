from datetime import datetime, timezone
from zoneinfo import ZoneInfo
from typing import Optional

from flask import current_app, has_app_context

DEFAULT_GAME_TZ = "America/Los_Angeles"


def utcnow() -> datetime:
    """Naive UTC, the form every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def game_tz_name() -> str:
    if has_app_context():
        return current_app.config.get("GAME_TIMEZONE") or DEFAULT_GAME_TZ
    return DEFAULT_GAME_TZ


def game_tz() -> ZoneInfo:
    return ZoneInfo(game_tz_name())


def to_game_local(dt: Optional[datetime]) -> Optional[datetime]:
    if not dt:
        return None

    # Treat naive DB values as UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(game_tz())


def game_starts_at(game) -> datetime:
    """Game start as naive UTC (date/time columns are wall-clock in GAME_TIMEZONE)."""
    local = datetime.combine(game.date, game.time).replace(tzinfo=game_tz())
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def hours_until(moment: datetime, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    return (moment - now).total_seconds() / 3600.0


def format_game_date(game) -> str:
    # "Tuesday, March 11"
    d = game.date
    return f"{d:%A}, {d:%B} {d.day}"


def format_game_time(game) -> str:
    # "7:00 PM"
    return game.time.strftime("%I:%M %p").lstrip("0")
