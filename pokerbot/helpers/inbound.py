"""
Handling for one inbound SMS, as delivered by the Twilio webhook.
"""
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from pokerbot.helpers.classifier import ClassifierContext, EscalateDecision, classify
from pokerbot.helpers.escalations import record_escalation
from pokerbot.helpers.flow import process_response
from pokerbot.helpers.games import find_active_game_for_phone
from pokerbot.helpers.invitations import get_invitation_for_phone
from pokerbot.helpers.messages import create_message, find_message_by_provider_id, get_recent_messages
from pokerbot.helpers.players import get_player_by_phone, normalize_phone, opt_out_player
from pokerbot.helpers.sms import send_sms
from pokerbot.helpers.time import format_game_date, format_game_time
from pokerbot.models import MessageDirection

STOP_WORDS = {"stop", "stopall", "unsubscribe", "cancel", "end", "quit"}
OPT_OUT_ACK = "Got it - you won't receive any more messages."


@dataclass
class InboundResult:
    outcome: str
    message_id: Optional[int] = None


def _is_stop(body: str) -> bool:
    return body.strip().lower() in STOP_WORDS


def _history(player_id, game_id, exclude_id):
    window = current_app.config.get("CONVERSATION_WINDOW", 5)
    return [
        ("player" if m.direction == MessageDirection.INBOUND else "bot", m.body)
        for m in get_recent_messages(player_id, game_id, window, exclude_id=exclude_id)
    ]


def handle_inbound_sms(from_phone: str, body: str, message_sid: Optional[str] = None) -> InboundResult:
    """
    outcome is one of: duplicate, opted_out, ignored, escalated, replied.
    """
    phone = normalize_phone(from_phone)
    body = body.strip()

    if message_sid and find_message_by_provider_id(message_sid):
        current_app.logger.info("[SMS] Duplicate delivery %s ignored", message_sid)
        return InboundResult("duplicate")

    game = find_active_game_for_phone(phone)
    if not game:
        if _is_stop(body):
            player = get_player_by_phone(phone)
            if player:
                opt_out_player(player.id)
            send_sms(phone, OPT_OUT_ACK)
            current_app.logger.info("[SMS] %s opted out with no active game", phone)
            return InboundResult("opted_out")

        current_app.logger.info("[SMS] No active game for %s, ignoring", phone)
        return InboundResult("ignored")

    invitation = get_invitation_for_phone(game.id, phone)
    if not invitation:
        current_app.logger.info("[SMS] No invitation for %s on game %s", phone, game.id)
        return InboundResult("ignored")

    player = invitation.player
    inbound = create_message(
        player.id,
        MessageDirection.INBOUND,
        body,
        game_id=game.id,
        provider_message_id=message_sid,
    )

    context = ClassifierContext(
        player_message=body,
        player_name=player.first_name,
        player_status=invitation.status.value,
        game_date=format_game_date(game),
        game_time=format_game_time(game),
        game_location=game.location,
        game_time_block=game.time_block or "",
        entry_instructions=game.entry_instructions or "",
        history=_history(player.id, game.id, inbound.id),
    )
    decision = classify(context)

    if isinstance(decision, EscalateDecision):
        record_escalation(inbound, decision.reason, decision.suggested_reply, game=game)
        return InboundResult("escalated", inbound.id)

    result = process_response(invitation.id, player.id, decision)
    if not result.success:
        record_escalation(
            inbound,
            f"Reply could not be applied automatically: {result.error}",
            decision.reply_text,
            game=game,
        )
        return InboundResult("escalated", inbound.id)

    if result.sms_response:
        sms = send_sms(phone, result.sms_response)
        if sms.success:
            create_message(
                player.id,
                MessageDirection.OUTBOUND,
                result.sms_response,
                game_id=game.id,
                provider_message_id=sms.provider_message_id,
            )
        else:
            current_app.logger.error("[SMS] Reply to %s failed: %s", phone, sms.error)

    return InboundResult("replied", inbound.id)
