"""
Invitation cascade.

Sends invitations in queue order, applies the effects of a classified
reply, and moves to the next player when a seat frees up. No state is kept
between calls: each step re-reads the database, so the webhook, the
timeout sweep and admin actions can interleave freely.
"""
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from pokerbot.errors import GameNotFound, InvalidState, InvalidTransition, InvitationNotFound, PlayerOptedOut
from pokerbot.extensions import db
from pokerbot.helpers.calendar import create_event
from pokerbot.helpers.classifier import EscalateDecision, SideEffect
from pokerbot.helpers.games import get_game
from pokerbot.helpers.invitations import (
    TransitionOutcome,
    apply_transition,
    count_confirmed,
    get_invitation,
    get_next_pending_invitation,
    locked_game,
    mark_invitation_sent,
    release_invitation,
    set_calendar_event,
)
from pokerbot.helpers.messages import create_message
from pokerbot.helpers.players import increment_player_counter, mark_player_invited, opt_out_player
from pokerbot.helpers.sms import send_sms
from pokerbot.helpers.time import format_game_date, format_game_time, game_starts_at, hours_until, utcnow
from pokerbot.models import GameStatus, InvitationStatus, MessageDirection

GAME_FULL_REPLY = "Sorry, the game just filled up! We'll catch you next time."

STATUS_EFFECTS = {
    SideEffect.CONFIRM_PLAYER: InvitationStatus.CONFIRMED,
    SideEffect.DECLINE_PLAYER: InvitationStatus.DECLINED,
    SideEffect.OPT_OUT_PLAYER: InvitationStatus.DECLINED,
}


@dataclass
class SendInvitationResult:
    success: bool
    message_sid: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ProcessResponseResult:
    success: bool
    sms_response: Optional[str] = None
    error: Optional[str] = None
    applied: list = field(default_factory=list)


def format_invitation_message(game) -> str:
    return (
        f"Poker game {format_game_date(game)}, {format_game_time(game)}, at {game.location}. "
        "Want a spot?\n\nReply STOP to opt out."
    )


def is_within_blackout_window(game, now=None) -> bool:
    """True once the game is BLACKOUT_HOURS (or less) away, or already started."""
    blackout = current_app.config.get("BLACKOUT_HOURS", 4)
    return hours_until(game_starts_at(game), now) <= blackout


def send_invitation(invitation_id) -> SendInvitationResult:
    """
    Text the invitation to the player and mark it invited.

    The invitation is claimed (pending -> invited) before the SMS goes out,
    so two callers racing on it cannot both text the player. A failed send
    releases the claim and is reported in the result, not raised.
    """
    invitation = get_invitation(invitation_id)
    if not invitation:
        raise InvitationNotFound(invitation_id)

    player = invitation.player
    if player.opted_out:
        raise PlayerOptedOut(player.id)

    game = get_game(invitation.game_id)
    if not game:
        raise GameNotFound(invitation.game_id)

    if invitation.status != InvitationStatus.PENDING:
        raise InvalidTransition(invitation.status, InvitationStatus.INVITED)

    claimed_at = utcnow()
    if not mark_invitation_sent(invitation_id, claimed_at):
        current_app.logger.warning("[INVITE] Invitation %s was already sent by another worker", invitation_id)
        return SendInvitationResult(success=False, error="already_sent")

    body = format_invitation_message(game)
    sms = send_sms(player.phone, body)
    if not sms.success:
        if not release_invitation(invitation_id, claimed_at):
            current_app.logger.error("[INVITE] Could not release invitation %s after failed send", invitation_id)
        current_app.logger.warning("[INVITE] Send failed for invitation %s: %s", invitation_id, sms.error)
        return SendInvitationResult(success=False, error=sms.error)

    mark_player_invited(player.id, claimed_at)
    create_message(
        player.id,
        MessageDirection.OUTBOUND,
        body,
        game_id=game.id,
        provider_message_id=sms.provider_message_id,
    )
    current_app.logger.info("[INVITE] Invited %s to game %s (invitation %s)", player.phone, game.id, invitation_id)
    return SendInvitationResult(success=True, message_sid=sms.provider_message_id)


def invite_next_player(game_id) -> bool:
    """One cascade step. Returns True only if an invitation actually went out."""
    with locked_game(game_id) as game:
        if not game:
            current_app.logger.error("[CASCADE] Game %s not found", game_id)
            return False

        if game.status != GameStatus.ACTIVE:
            current_app.logger.info("[CASCADE] Game %s is %s, not inviting", game_id, game.status.value)
            return False

        if is_within_blackout_window(game):
            current_app.logger.info("[CASCADE] Game %s is inside the blackout window, not inviting", game_id)
            return False

        if count_confirmed(game_id) >= game.capacity:
            current_app.logger.info("[CASCADE] Game %s is full", game_id)
            return False

        nxt = get_next_pending_invitation(game_id)
        if not nxt:
            current_app.logger.info("[CASCADE] No pending invitations left for game %s", game_id)
            return False

        result = send_invitation(nxt.id)
        return result.success


def send_invitations_for_game(game_id, batch_size=None) -> int:
    """
    Initial fill: up to min(batch_size, open seats) invitations. Returns how many went out.

    Each invitation goes out as its own locked cascade step, so capacity and
    the blackout window are re-checked for every send.
    """
    game = get_game(game_id)
    if not game:
        raise GameNotFound(game_id)
    if game.status != GameStatus.ACTIVE:
        raise InvalidState(f"Game {game_id} is {game.status.value}, not active")

    if batch_size is None:
        batch_size = current_app.config.get("INVITE_BATCH_SIZE", 5)

    if is_within_blackout_window(game):
        current_app.logger.info("[INVITE] Game %s is inside the blackout window, batch skipped", game_id)
        return 0

    to_send = min(int(batch_size), game.capacity - count_confirmed(game_id))

    sent = 0
    for _ in range(max(to_send, 0)):
        if not invite_next_player(game_id):
            break
        sent += 1

    current_app.logger.info("[INVITE] Batch for game %s sent %s invitation(s)", game_id, sent)
    return sent


def send_calendar_invite(invitation_id) -> bool:
    """Best-effort; a calendar problem never undoes the confirmation."""
    try:
        invitation = get_invitation(invitation_id)
        if not invitation:
            current_app.logger.error("[CALENDAR] Invitation %s not found", invitation_id)
            return False

        game = get_game(invitation.game_id)
        if not game:
            current_app.logger.error("[CALENDAR] Game %s not found", invitation.game_id)
            return False

        player = invitation.player
        if not player.email:
            current_app.logger.info("[CALENDAR] Player %s has no email, skipping invite", player.id)
            return False

        result = create_event(game, player)
        if not (result.success and result.event_id):
            current_app.logger.warning("[CALENDAR] Invite failed for invitation %s: %s", invitation_id, result.error)
            return False

        set_calendar_event(invitation_id, result.event_id)
        current_app.logger.info("[CALENDAR] Invite sent for invitation %s (event %s)", invitation_id, result.event_id)
        return True
    except Exception as e:
        db.session.rollback()
        current_app.logger.warning("[CALENDAR] Invite failed for invitation %s: %s", invitation_id, e)
        return False


def _apply_status_effect(invitation_id, player_id, effect: SideEffect) -> TransitionOutcome:
    outcome = apply_transition(invitation_id, STATUS_EFFECTS[effect])

    if effect == SideEffect.OPT_OUT_PLAYER:
        # The player is out of future games whatever this invitation's state
        opt_out_player(player_id)
    elif outcome == TransitionOutcome.APPLIED:
        increment_player_counter(player_id, "response_count")

    return outcome


def process_response(invitation_id, player_id, decision) -> ProcessResponseResult:
    """
    Apply a classified reply's side effects in order and return the reply text.

    Escalations carry no effects and no reply. Status effects are applied
    with conditional updates; the follow-up effects (calendar invite,
    next invite) run only if this call made the status change.
    """
    if isinstance(decision, EscalateDecision):
        return ProcessResponseResult(success=True)

    invitation = get_invitation(invitation_id)
    if not invitation:
        raise InvitationNotFound(invitation_id)
    game_id = invitation.game_id

    applied = []
    reached = set()
    already_handled = False

    for effect in decision.side_effects:
        effect = SideEffect(effect)

        if effect in STATUS_EFFECTS:
            outcome = _apply_status_effect(invitation_id, player_id, effect)

            if outcome == TransitionOutcome.APPLIED:
                applied.append(effect)
                reached.add(STATUS_EFFECTS[effect])
                current_app.logger.info("[CASCADE] %s applied to invitation %s", effect.value, invitation_id)
                continue

            if outcome == TransitionOutcome.DUPLICATE:
                if STATUS_EFFECTS[effect] in reached:
                    # Set earlier in this same reply, e.g. decline then opt out
                    continue
                current_app.logger.info("[CASCADE] %s already applied to invitation %s", effect.value, invitation_id)
                already_handled = True
                continue

            if outcome == TransitionOutcome.FULL:
                apply_transition(invitation_id, InvitationStatus.DECLINED)
                increment_player_counter(player_id, "response_count")
                current_app.logger.info("[CASCADE] Game %s filled before invitation %s confirmed", game_id, invitation_id)
                return ProcessResponseResult(
                    success=True,
                    sms_response=GAME_FULL_REPLY,
                    error="game_full",
                    applied=applied,
                )

            if effect == SideEffect.OPT_OUT_PLAYER:
                # Opted out, but the invitation itself could not change
                applied.append(effect)
                already_handled = True
                continue

            error = f"Cannot apply {effect.value} to invitation {invitation_id} (status {get_invitation(invitation_id).status.value})"
            current_app.logger.warning("[CASCADE] %s", error)
            return ProcessResponseResult(success=False, error=error, applied=applied)

        if already_handled:
            current_app.logger.info("[CASCADE] Skipping %s for invitation %s, already handled", effect.value, invitation_id)
            continue

        if effect == SideEffect.SEND_CALENDAR_INVITE:
            send_calendar_invite(invitation_id)
            applied.append(effect)
        elif effect == SideEffect.INVITE_NEXT:
            invite_next_player(game_id)
            applied.append(effect)

    return ProcessResponseResult(success=True, sms_response=decision.reply_text, applied=applied)
