import re
from typing import Optional

from sqlalchemy import update

from pokerbot.errors import PlayerNotFound
from pokerbot.extensions import db
from pokerbot.helpers.email import normalize_email
from pokerbot.models import Player


def normalize_phone(phone: str) -> str:
    """
    Normalise to "+<digits>" so inbound Twilio numbers match stored ones.

    "(555) 123-4567" -> "+15551234567" (bare 10-digit numbers are treated as US)
    "+44 7700 900123" -> "+447700900123"
    """
    cleaned = re.sub(r"[^\d+]", "", (phone or "").strip())
    if not cleaned:
        return ""
    if cleaned.startswith("+"):
        return "+" + cleaned[1:].replace("+", "")
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    return f"+{cleaned}"


def get_player(player_id) -> Optional[Player]:
    return db.session.get(Player, player_id)


def get_player_or_raise(player_id) -> Player:
    player = get_player(player_id)
    if not player:
        raise PlayerNotFound(player_id)
    return player


def get_player_by_phone(phone: str) -> Optional[Player]:
    phone = normalize_phone(phone)
    if not phone:
        return None
    return Player.query.filter_by(phone=phone).first()


def list_active_players() -> list[Player]:
    return Player.query.filter_by(opted_out=False).order_by(Player.first_name.asc()).all()


def list_opted_out_players() -> list[Player]:
    return Player.query.filter_by(opted_out=True).order_by(Player.first_name.asc()).all()


def create_player(first_name: str, phone: str, last_name: str = "", email: Optional[str] = None) -> Player:
    first_name = (first_name or "").strip()
    phone = normalize_phone(phone)
    if not first_name:
        raise ValueError("first_name required")
    if not phone:
        raise ValueError("phone required")
    if get_player_by_phone(phone):
        raise ValueError(f"A player with phone {phone} already exists")

    player = Player(
        first_name=first_name,
        last_name=(last_name or "").strip(),
        phone=phone,
        email=normalize_email(email) or None,
    )
    db.session.add(player)
    db.session.commit()
    return player


def update_player(player_id, **fields) -> Player:
    player = get_player_or_raise(player_id)

    if "first_name" in fields:
        first_name = (fields["first_name"] or "").strip()
        if not first_name:
            raise ValueError("first_name cannot be blank")
        player.first_name = first_name
    if "last_name" in fields:
        player.last_name = (fields["last_name"] or "").strip()
    if "email" in fields:
        player.email = normalize_email(fields["email"]) or None
    if "phone" in fields:
        phone = normalize_phone(fields["phone"])
        if not phone:
            raise ValueError("phone cannot be blank")
        other = get_player_by_phone(phone)
        if other and other.id != player.id:
            raise ValueError(f"A player with phone {phone} already exists")
        player.phone = phone

    db.session.commit()
    return player


def opt_out_player(player_id) -> None:
    # Plain field set; safe to repeat
    db.session.execute(
        update(Player)
        .where(Player.id == player_id)
        .values(opted_out=True)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def reactivate_player(player_id) -> Player:
    player = get_player_or_raise(player_id)
    player.opted_out = False
    db.session.commit()
    return player


def mark_player_invited(player_id, when) -> None:
    db.session.execute(
        update(Player)
        .where(Player.id == player_id)
        .values(last_invited_at=when)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def increment_player_counter(player_id, counter: str) -> None:
    """Store-side increment of response_count / timeout_count."""
    if counter not in ("response_count", "timeout_count"):
        raise ValueError(f"Unknown counter {counter}")
    column = getattr(Player, counter)
    db.session.execute(
        update(Player)
        .where(Player.id == player_id)
        .values({counter: column + 1})
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
