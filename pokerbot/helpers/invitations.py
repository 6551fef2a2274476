"""
Invitation queue storage.

Every status change goes through a conditional UPDATE
(``WHERE id = ? AND status = <expected>``) and reports whether it won, so
the webhook, the timeout sweep and admin actions can race on the same row
and only one of them takes effect.
"""
import enum
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import aliased

from pokerbot.errors import GameNotFound, InvalidState, PlayerNotFound
from pokerbot.extensions import db
from pokerbot.helpers.players import normalize_phone
from pokerbot.helpers.time import utcnow
from pokerbot.models import (
    CalendarStatus,
    Game,
    GameStatus,
    Invitation,
    InvitationStatus,
    Player,
)


class TransitionOutcome(str, enum.Enum):
    APPLIED = "applied"
    # Row was already in the target status
    DUPLICATE = "duplicate"
    # Row is in a status that cannot move to the target
    REJECTED = "rejected"
    # Confirm refused because the game has no seats left
    FULL = "full"


def get_invitation(invitation_id) -> Optional[Invitation]:
    return db.session.get(Invitation, invitation_id)


def get_invitations_for_game(game_id) -> list[Invitation]:
    return (
        Invitation.query.filter_by(game_id=game_id)
        .order_by(Invitation.position.asc())
        .all()
    )


def get_invitation_by_game_and_player(game_id, player_id) -> Optional[Invitation]:
    return Invitation.query.filter_by(game_id=game_id, player_id=player_id).first()


def get_invitation_for_phone(game_id, phone: str) -> Optional[Invitation]:
    phone = normalize_phone(phone)
    return (
        Invitation.query.join(Player, Player.id == Invitation.player_id)
        .filter(Invitation.game_id == game_id, Player.phone == phone)
        .first()
    )


def current_status(invitation_id) -> Optional[InvitationStatus]:
    # Read straight from the DB, not the identity map
    value = db.session.execute(
        select(Invitation.status).where(Invitation.id == invitation_id)
    ).scalar_one_or_none()
    return InvitationStatus(value) if value is not None else None


def add_players_to_game(game_id, player_ids, start_position: Optional[int] = None) -> list[Invitation]:
    """
    Add players to the queue at consecutive positions, in the order given.

    Without ``start_position`` they go to the back of the queue.
    """
    game = db.session.get(Game, game_id)
    if not game:
        raise GameNotFound(game_id)

    player_ids = [int(pid) for pid in player_ids]
    if len(set(player_ids)) != len(player_ids):
        raise ValueError("player_ids contains duplicates")

    existing = {
        inv.player_id
        for inv in Invitation.query.filter(
            Invitation.game_id == game_id,
            Invitation.player_id.in_(player_ids),
        ).all()
    }
    if existing:
        raise InvalidState(f"Players already queued for game {game_id}: {sorted(existing)}")

    for pid in player_ids:
        player = db.session.get(Player, pid)
        if not player:
            raise PlayerNotFound(pid)
        if player.opted_out:
            raise InvalidState(f"Player {pid} has opted out")

    if start_position is None:
        max_position = db.session.execute(
            select(func.max(Invitation.position)).where(Invitation.game_id == game_id)
        ).scalar()
        next_position = (max_position or 0) + 1
    else:
        next_position = int(start_position)
        if next_position < 1:
            raise ValueError("start_position must be at least 1")
        taken = Invitation.query.filter(
            Invitation.game_id == game_id,
            Invitation.position >= next_position,
            Invitation.position < next_position + len(player_ids),
        ).count()
        if taken:
            raise InvalidState(f"Queue positions from {next_position} are already taken")

    created = []
    for offset, pid in enumerate(player_ids):
        inv = Invitation(
            game_id=game_id,
            player_id=pid,
            position=next_position + offset,
            status=InvitationStatus.PENDING,
        )
        db.session.add(inv)
        created.append(inv)

    db.session.commit()
    return created


def get_next_pending_invitation(game_id) -> Optional[Invitation]:
    """Lowest-position pending invitation whose player has not opted out."""
    return (
        Invitation.query.join(Player, Player.id == Invitation.player_id)
        .filter(
            Invitation.game_id == game_id,
            Invitation.status == InvitationStatus.PENDING,
            Player.opted_out.is_(False),
        )
        .order_by(Invitation.position.asc())
        .first()
    )


def count_confirmed(game_id) -> int:
    return db.session.execute(
        select(func.count(Invitation.id)).where(
            Invitation.game_id == game_id,
            Invitation.status == InvitationStatus.CONFIRMED,
        )
    ).scalar() or 0


@contextmanager
def locked_game(game_id):
    """
    Hold a row lock on the game for the duration of the block.

    Serialises "pick next pending + send + mark invited" per game on
    databases with SELECT ... FOR UPDATE; SQLite ignores the clause.
    """
    game = db.session.execute(
        select(Game)
        .where(Game.id == game_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    try:
        yield game
    except Exception:
        db.session.rollback()
        raise
    else:
        db.session.commit()


def _stamp_values(target: InvitationStatus, now) -> dict:
    values = {"status": target}
    if target == InvitationStatus.INVITED:
        values["invited_at"] = now
    elif target.is_terminal:
        values["responded_at"] = now
    return values


def _conditional_update(invitation_id, expected: InvitationStatus, values: dict, *extra_where) -> bool:
    result = db.session.execute(
        update(Invitation)
        .where(Invitation.id == invitation_id, Invitation.status == expected, *extra_where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def mark_invitation_sent(invitation_id, now=None) -> bool:
    """
    pending -> invited, stamping invited_at. Only one caller can win this,
    so it is taken before the SMS goes out.
    """
    now = now or utcnow()
    return _conditional_update(
        invitation_id,
        InvitationStatus.PENDING,
        _stamp_values(InvitationStatus.INVITED, now),
    )


def release_invitation(invitation_id, claimed_at) -> bool:
    """
    Undo mark_invitation_sent after the SMS could not be sent.

    Only the claim stamped at ``claimed_at`` is released; an invitation that
    was answered or timed out in the meantime is left alone.
    """
    return _conditional_update(
        invitation_id,
        InvitationStatus.INVITED,
        {"status": InvitationStatus.PENDING, "invited_at": None},
        Invitation.invited_at == claimed_at,
        Invitation.responded_at.is_(None),
    )


def _settle(invitation_id, target: InvitationStatus) -> TransitionOutcome:
    # Lost the race: tell a duplicate from a conflicting change
    if current_status(invitation_id) == target:
        return TransitionOutcome.DUPLICATE
    return TransitionOutcome.REJECTED


def apply_transition(invitation_id, target, now=None) -> TransitionOutcome:
    """
    Move an invitation to ``target`` if the state machine allows it.

    Confirms are additionally guarded by capacity in the same statement, so
    two simultaneous "yes" replies cannot both take the last seat.
    """
    target = InvitationStatus(target)
    now = now or utcnow()

    status = current_status(invitation_id)
    if status is None:
        return TransitionOutcome.REJECTED
    if status == target:
        return TransitionOutcome.DUPLICATE
    if not status.can_transition_to(target):
        return TransitionOutcome.REJECTED

    values = _stamp_values(target, now)

    if target != InvitationStatus.CONFIRMED:
        extra = ()
        if status == InvitationStatus.INVITED:
            extra = (Invitation.responded_at.is_(None),)
        if _conditional_update(invitation_id, status, values, *extra):
            return TransitionOutcome.APPLIED
        return _settle(invitation_id, target)

    game_id = db.session.execute(
        select(Invitation.game_id).where(Invitation.id == invitation_id)
    ).scalar_one()

    seated = aliased(Invitation, name="seated")
    confirmed_count = (
        select(func.count(seated.id))
        .where(seated.game_id == game_id, seated.status == InvitationStatus.CONFIRMED)
        .scalar_subquery()
    )
    capacity = select(Game.capacity).where(Game.id == game_id).scalar_subquery()

    with locked_game(game_id):
        won = _conditional_update(
            invitation_id,
            InvitationStatus.INVITED,
            values,
            confirmed_count < capacity,
        )
    if won:
        return TransitionOutcome.APPLIED

    status = current_status(invitation_id)
    if status == InvitationStatus.CONFIRMED:
        return TransitionOutcome.DUPLICATE
    if status == InvitationStatus.INVITED:
        return TransitionOutcome.FULL
    return TransitionOutcome.REJECTED


def find_overdue_invitations(game, now=None) -> list[Invitation]:
    """Invited before the game's RSVP deadline and still unanswered, once that deadline has passed."""
    now = now or utcnow()
    if game.rsvp_deadline >= now:
        return []
    return (
        Invitation.query.filter(
            Invitation.game_id == game.id,
            Invitation.status == InvitationStatus.INVITED,
            Invitation.invited_at.isnot(None),
            Invitation.invited_at < game.rsvp_deadline,
            Invitation.responded_at.is_(None),
        )
        .order_by(Invitation.position.asc())
        .all()
    )


def set_calendar_event(invitation_id, event_id: str) -> None:
    db.session.execute(
        update(Invitation)
        .where(Invitation.id == invitation_id)
        .values(google_calendar_event_id=event_id, calendar_status=CalendarStatus.PENDING)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def set_calendar_status(invitation_id, calendar_status) -> None:
    db.session.execute(
        update(Invitation)
        .where(Invitation.id == invitation_id)
        .values(calendar_status=CalendarStatus(calendar_status))
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def get_invitations_awaiting_calendar_reply() -> list[Invitation]:
    """Confirmed invitations on active games whose calendar invite is still unanswered."""
    return (
        Invitation.query.join(Game, Game.id == Invitation.game_id)
        .filter(
            Game.status == GameStatus.ACTIVE,
            Invitation.status == InvitationStatus.CONFIRMED,
            Invitation.google_calendar_event_id.isnot(None),
            Invitation.calendar_status == CalendarStatus.PENDING,
        )
        .all()
    )
