from sqlalchemy import func, select

from pokerbot.extensions import db
from pokerbot.helpers.messages import count_pending_escalations
from pokerbot.helpers.time import to_game_local, utcnow
from pokerbot.models import Game, GameStatus, Invitation, InvitationStatus, Player


def _count(stmt) -> int:
    return db.session.execute(stmt).scalar() or 0


def get_dashboard_counts(now=None) -> dict:
    today = to_game_local(now or utcnow()).date()
    return {
        "upcoming_games": _count(
            select(func.count(Game.id)).where(Game.status == GameStatus.ACTIVE, Game.date >= today)
        ),
        "active_players": _count(select(func.count(Player.id)).where(Player.opted_out.is_(False))),
        "awaiting_response": _count(
            select(func.count(Invitation.id)).where(Invitation.status == InvitationStatus.INVITED)
        ),
        "pending_escalations": count_pending_escalations(),
    }
