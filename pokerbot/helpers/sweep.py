from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from pokerbot.helpers.flow import invite_next_player
from pokerbot.helpers.invitations import TransitionOutcome, apply_transition, find_overdue_invitations
from pokerbot.helpers.players import increment_player_counter
from pokerbot.helpers.time import utcnow
from pokerbot.models import Game, GameStatus, InvitationStatus


@dataclass
class SweepResult:
    games_processed: int = 0
    timed_out: int = 0
    cascaded: int = 0
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self):
        return {
            "games_processed": self.games_processed,
            "timed_out": self.timed_out,
            "cascaded": self.cascaded,
            "timestamp": self.timestamp.isoformat() + "Z",
        }


def sweep_timeouts(now=None) -> SweepResult:
    """
    Time out unanswered invitations on active games whose RSVP deadline has
    passed, and invite the next player for each one.

    Only invitations sent before the deadline are eligible. Running it again
    with nothing new overdue changes nothing.
    """
    now = now or utcnow()
    result = SweepResult(timestamp=now)

    games = (
        Game.query.filter(Game.status == GameStatus.ACTIVE, Game.rsvp_deadline < now)
        .order_by(Game.id.asc())
        .all()
    )
    result.games_processed = len(games)

    for game in games:
        game_id = game.id
        for invitation in find_overdue_invitations(game, now):
            invitation_id, player_id = invitation.id, invitation.player_id

            outcome = apply_transition(invitation_id, InvitationStatus.TIMEOUT, now)
            if outcome != TransitionOutcome.APPLIED:
                # A reply or another sweep got there first
                continue

            increment_player_counter(player_id, "timeout_count")
            result.timed_out += 1
            current_app.logger.info("[SWEEP] Invitation %s timed out (game %s)", invitation_id, game_id)

            if invite_next_player(game_id):
                result.cascaded += 1

    current_app.logger.info(
        "[SWEEP] %s game(s), %s timed out, %s cascaded",
        result.games_processed, result.timed_out, result.cascaded,
    )
    return result
