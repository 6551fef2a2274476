from datetime import date as date_cls, datetime, time as time_cls, timezone
from typing import Optional

from sqlalchemy import func, select

from pokerbot.errors import GameNotFound, InvalidTransition
from pokerbot.extensions import db
from pokerbot.helpers.calendar import cancel_game_events
from pokerbot.helpers.players import normalize_phone
from pokerbot.models import (
    GAME_STATUS_TRANSITIONS,
    Game,
    GameStatus,
    Invitation,
    InvitationStatus,
    Player,
)


def _parse_date(value) -> date_cls:
    if isinstance(value, date_cls):
        return value
    try:
        return date_cls.fromisoformat(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def _parse_time(value) -> time_cls:
    if isinstance(value, time_cls):
        return value
    try:
        return time_cls.fromisoformat(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")


def _parse_deadline(value) -> datetime:
    """ISO timestamp -> naive UTC. Offsets are honoured; naive input is taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid rsvp_deadline {value!r}, expected an ISO timestamp")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def get_game(game_id) -> Optional[Game]:
    return db.session.get(Game, game_id)


def get_game_or_raise(game_id) -> Game:
    game = get_game(game_id)
    if not game:
        raise GameNotFound(game_id)
    return game


def create_game(date, time, location: str, rsvp_deadline, capacity: int = 8,
                time_block: str = "", entry_instructions: Optional[str] = None) -> Game:
    """New games start as drafts; nothing is sent until an admin activates one."""
    location = (location or "").strip()
    if not location:
        raise ValueError("location required")
    try:
        capacity = int(capacity)
    except (TypeError, ValueError):
        raise ValueError("capacity must be a number")
    if capacity < 1:
        raise ValueError("capacity must be at least 1")

    game = Game(
        date=_parse_date(date),
        time=_parse_time(time),
        location=location,
        rsvp_deadline=_parse_deadline(rsvp_deadline),
        capacity=capacity,
        time_block=(time_block or "").strip(),
        entry_instructions=(entry_instructions or "").strip() or None,
        status=GameStatus.DRAFT,
    )
    db.session.add(game)
    db.session.commit()
    return game


def update_game_status(game_id, new_status) -> Game:
    game = get_game_or_raise(game_id)
    try:
        new_status = GameStatus(new_status)
    except ValueError:
        raise ValueError(f"Unknown game status {new_status!r}")

    if new_status not in GAME_STATUS_TRANSITIONS[game.status]:
        raise InvalidTransition(game.status, new_status)

    game.status = new_status
    db.session.commit()

    if new_status == GameStatus.CANCELLED:
        cancel_game_events(game.id)
    return game


def invitation_counts(game_id) -> dict:
    """{"pending": n, "invited": n, ...} with every status present."""
    rows = db.session.execute(
        select(Invitation.status, func.count(Invitation.id))
        .where(Invitation.game_id == game_id)
        .group_by(Invitation.status)
    ).all()
    counts = {s.value: 0 for s in InvitationStatus}
    for status, n in rows:
        counts[InvitationStatus(status).value] = n
    return counts


def list_games_with_counts() -> list[dict]:
    games = Game.query.order_by(Game.date.desc(), Game.time.desc()).all()
    out = []
    for g in games:
        d = g.to_dict()
        d["counts"] = invitation_counts(g.id)
        out.append(d)
    return out


def find_active_game_for_phone(phone: str) -> Optional[Game]:
    """
    The game an inbound SMS most likely refers to: the earliest active game
    where this phone holds an invited or confirmed invitation.
    """
    phone = normalize_phone(phone)
    if not phone:
        return None

    stmt = (
        select(Game)
        .join(Invitation, Invitation.game_id == Game.id)
        .join(Player, Player.id == Invitation.player_id)
        .where(
            Player.phone == phone,
            Game.status == GameStatus.ACTIVE,
            Invitation.status.in_([InvitationStatus.INVITED, InvitationStatus.CONFIRMED]),
        )
        .order_by(Game.date.asc(), Game.time.asc(), Game.id.asc())
        .limit(1)
    )
    return db.session.execute(stmt).scalars().first()
