"""
Escalation queue: inbound messages the bot would not answer on its own.

An escalation is the inbound Message row itself, flagged pending. Admins
either reply with their own text or use a quick action that runs the same
side effects an automatic reply would have.
"""
from typing import Optional

from flask import current_app

from pokerbot.errors import EscalationNotFound, InvalidState, InvitationNotFound, UpstreamFailure
from pokerbot.helpers.classifier import AutoRespondDecision, SideEffect
from pokerbot.helpers.flow import process_response
from pokerbot.helpers.invitations import get_invitation_by_game_and_player
from pokerbot.helpers.messages import (
    create_message,
    get_conversation,
    get_message,
    list_pending_escalations,
    mark_escalated,
    mark_escalation_resolved,
)
from pokerbot.helpers.notifications import notify_admins_of_escalation
from pokerbot.helpers.sms import send_sms
from pokerbot.models import EscalationStatus, MessageDirection

QUICK_CONFIRM_REPLY = "Great, you're in! See you there."
QUICK_DECLINE_REPLY = "Thanks for letting us know. Maybe next time!"


def escalation_to_dict(msg, with_history: bool = False) -> dict:
    d = msg.to_dict()
    d["player"] = msg.player.to_dict() if msg.player else None
    d["game"] = msg.game.to_dict() if msg.game else None
    if with_history:
        d["history"] = [m.to_dict() for m in get_conversation(msg.player_id, msg.game_id)]
    return d


def get_pending_escalations() -> list:
    return list_pending_escalations()


def get_escalation(message_id):
    msg = get_message(message_id)
    if not msg or msg.escalation_status is None:
        raise EscalationNotFound(message_id)
    return msg


def _pending_escalation(message_id):
    msg = get_escalation(message_id)
    if msg.escalation_status != EscalationStatus.PENDING:
        raise InvalidState(f"Escalation {message_id} is already resolved")
    return msg


def record_escalation(message, reason: str, suggested_reply: Optional[str] = None, game=None):
    """Flag an inbound message for a human and alert the admins."""
    msg = mark_escalated(message.id, reason, suggested_reply)
    current_app.logger.info("[ESCALATION] Message %s from player %s: %s", msg.id, msg.player_id, reason)
    notify_admins_of_escalation(msg.player, msg.body, reason, game=game)
    return msg


def resolve_escalation(message_id, response_text: str):
    """Send the admin's reply, log it, and close the escalation."""
    msg = _pending_escalation(message_id)

    response_text = (response_text or "").strip()
    if not response_text:
        raise ValueError("response_text required")

    sms = send_sms(msg.player.phone, response_text)
    if not sms.success:
        raise UpstreamFailure(f"Could not send reply: {sms.error}")

    create_message(
        msg.player_id,
        MessageDirection.OUTBOUND,
        response_text,
        game_id=msg.game_id,
        provider_message_id=sms.provider_message_id,
    )
    resolved = mark_escalation_resolved(message_id, response_text)
    current_app.logger.info("[ESCALATION] Message %s resolved", message_id)
    return resolved


def _quick_action(message_id, side_effects, reply_text):
    msg = _pending_escalation(message_id)
    if msg.game_id is None:
        raise InvalidState(f"Escalation {message_id} is not tied to a game")

    invitation = get_invitation_by_game_and_player(msg.game_id, msg.player_id)
    if not invitation:
        raise InvitationNotFound(f"game={msg.game_id} player={msg.player_id}")

    decision = AutoRespondDecision(reply_text=reply_text, side_effects=side_effects)
    result = process_response(invitation.id, msg.player_id, decision)
    if not result.success:
        raise InvalidState(result.error)

    return resolve_escalation(message_id, result.sms_response or reply_text)


def confirm_player_quick_action(message_id):
    return _quick_action(
        message_id,
        [SideEffect.CONFIRM_PLAYER, SideEffect.SEND_CALENDAR_INVITE],
        QUICK_CONFIRM_REPLY,
    )


def decline_player_quick_action(message_id):
    return _quick_action(
        message_id,
        [SideEffect.DECLINE_PLAYER, SideEffect.INVITE_NEXT],
        QUICK_DECLINE_REPLY,
    )
