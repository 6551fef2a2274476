"""
Google Calendar side channel.

Confirmed players with an email get a calendar event for the game. Nothing
here is allowed to affect invitation state: callers get a CalendarResult and
decide what to log.
"""
import base64
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from pokerbot.errors import UpstreamFailure
from pokerbot.helpers.invitations import (
    get_invitations_awaiting_calendar_reply,
    get_invitations_for_game,
    set_calendar_status,
)
from pokerbot.models import CalendarStatus

SCOPES = ["https://www.googleapis.com/auth/calendar"]

_service = None


@dataclass
class CalendarResult:
    success: bool
    event_id: Optional[str] = None
    link: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


def _load_credentials():
    cfg = current_app.config
    encoded = cfg.get("GOOGLE_SERVICE_ACCOUNT_JSON")
    if encoded:
        info = json.loads(base64.b64decode(encoded).decode("utf-8"))
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)

    path = cfg.get("GOOGLE_SERVICE_ACCOUNT_FILE")
    if path:
        return service_account.Credentials.from_service_account_file(path, scopes=SCOPES)

    raise UpstreamFailure(
        "Google Calendar credentials not configured. "
        "Set GOOGLE_SERVICE_ACCOUNT_JSON (base64) or GOOGLE_SERVICE_ACCOUNT_FILE (path)."
    )


def get_service():
    global _service
    if _service is None:
        _service = build("calendar", "v3", credentials=_load_credentials(), cache_discovery=False)
    return _service


def _calendar_id() -> str:
    calendar_id = current_app.config.get("GOOGLE_CALENDAR_ID")
    if not calendar_id:
        raise UpstreamFailure("GOOGLE_CALENDAR_ID not configured")
    return calendar_id


def _error_text(e: Exception) -> str:
    if isinstance(e, HttpError):
        return f"{e.status_code}: {e.reason}"
    return str(e)


def build_event_body(game, player) -> dict:
    tz = current_app.config.get("GAME_TIMEZONE")
    start = datetime.combine(game.date, game.time)
    end = start + timedelta(hours=current_app.config.get("EVENT_DURATION_HOURS", 4))

    description = game.time_block or ""
    if game.entry_instructions:
        description += f"\n\nEntry instructions: {game.entry_instructions}"
    description += f"\n\nPlayer: {player.full_name} ({player.email})"

    return {
        "summary": f"Poker Night - {player.full_name}",
        "description": description.strip(),
        "location": game.location,
        # Wall-clock time plus zone; Google resolves DST
        "start": {"dateTime": start.isoformat(), "timeZone": tz},
        "end": {"dateTime": end.isoformat(), "timeZone": tz},
    }


def create_event(game, player) -> CalendarResult:
    """
    Create the game event with the player as attendee.

    Service accounts without domain-wide delegation may not invite
    attendees; in that case the event is created without them.
    """
    if not player.email:
        return CalendarResult(success=False, error="Player has no email")

    body = build_event_body(game, player)
    try:
        service = get_service()
        calendar_id = _calendar_id()
    except (UpstreamFailure, GoogleAuthError, ValueError, OSError) as e:
        return CalendarResult(success=False, error=str(e))

    with_attendees = dict(body, attendees=[{"email": player.email, "displayName": player.full_name}])
    try:
        event = service.events().insert(
            calendarId=calendar_id, body=with_attendees, sendUpdates="all"
        ).execute()
    except HttpError as e:
        if "Domain-Wide Delegation" not in str(e):
            current_app.logger.error("[CALENDAR] Failed to create event: %s", _error_text(e))
            return CalendarResult(success=False, error=_error_text(e))

        current_app.logger.info("[CALENDAR] No domain-wide delegation, creating event without attendees")
        try:
            event = service.events().insert(calendarId=calendar_id, body=body).execute()
        except HttpError as retry_error:
            current_app.logger.error("[CALENDAR] Failed to create event (retry): %s", _error_text(retry_error))
            return CalendarResult(success=False, error=_error_text(retry_error))

    return CalendarResult(success=True, event_id=event.get("id"), link=event.get("htmlLink"))


def cancel_event(event_id: str) -> CalendarResult:
    try:
        get_service().events().delete(
            calendarId=_calendar_id(), eventId=event_id, sendUpdates="all"
        ).execute()
    except (HttpError, UpstreamFailure, GoogleAuthError, ValueError, OSError) as e:
        current_app.logger.error("[CALENDAR] Failed to cancel event %s: %s", event_id, _error_text(e))
        return CalendarResult(success=False, event_id=event_id, error=_error_text(e))
    return CalendarResult(success=True, event_id=event_id)


def get_attendee_status(event_id: str, email: str) -> CalendarResult:
    """
    Attendee responseStatus ("accepted", "declined", "tentative", "needsAction"),
    or status=None when the attendee is not on the event.
    """
    try:
        event = get_service().events().get(calendarId=_calendar_id(), eventId=event_id).execute()
    except (HttpError, UpstreamFailure, GoogleAuthError, ValueError, OSError) as e:
        current_app.logger.error("[CALENDAR] Failed to read event %s: %s", event_id, _error_text(e))
        return CalendarResult(success=False, event_id=event_id, error=_error_text(e))

    wanted = (email or "").strip().lower()
    for attendee in event.get("attendees") or []:
        if (attendee.get("email") or "").lower() == wanted:
            return CalendarResult(success=True, event_id=event_id, status=attendee.get("responseStatus"))
    return CalendarResult(success=True, event_id=event_id, status=None)


def sync_calendar_statuses() -> dict:
    """
    Poll attendee responses for confirmed players whose invite is still
    unanswered and record accepted/declined. Invitation status is untouched.
    """
    checked = updated = 0
    for invitation in get_invitations_awaiting_calendar_reply():
        if not invitation.player.email:
            continue
        checked += 1
        result = get_attendee_status(invitation.google_calendar_event_id, invitation.player.email)
        if not result.success or result.status not in ("accepted", "declined"):
            continue
        set_calendar_status(invitation.id, CalendarStatus(result.status))
        updated += 1
        current_app.logger.info(
            "[CALENDAR] Invitation %s calendar reply: %s", invitation.id, result.status
        )
    return {"checked": checked, "updated": updated}


def cancel_game_events(game_id) -> int:
    """Cancel every calendar event sent for a game. Returns how many were cancelled."""
    cancelled = 0
    for invitation in get_invitations_for_game(game_id):
        if not invitation.google_calendar_event_id:
            continue
        if cancel_event(invitation.google_calendar_event_id).success:
            cancelled += 1
    current_app.logger.info("[CALENDAR] Cancelled %s event(s) for game %s", cancelled, game_id)
    return cancelled
