from typing import Optional

from sqlalchemy import func, select

from pokerbot.extensions import db
from pokerbot.helpers.time import utcnow
from pokerbot.models import EscalationStatus, Message, MessageDirection


def create_message(player_id, direction, body: str, game_id=None, provider_message_id: Optional[str] = None) -> Message:
    msg = Message(
        player_id=player_id,
        game_id=game_id,
        direction=MessageDirection(direction),
        body=body or "",
        provider_message_id=provider_message_id,
        sent_at=utcnow(),
    )
    db.session.add(msg)
    db.session.commit()
    return msg


def get_message(message_id) -> Optional[Message]:
    return db.session.get(Message, message_id)


def find_message_by_provider_id(provider_message_id: str) -> Optional[Message]:
    if not provider_message_id:
        return None
    return Message.query.filter_by(provider_message_id=provider_message_id).first()


def get_recent_messages(player_id, game_id, limit: int, exclude_id=None) -> list[Message]:
    """Last ``limit`` messages for this player and game, oldest first."""
    q = Message.query.filter(Message.player_id == player_id, Message.game_id == game_id)
    if exclude_id is not None:
        q = q.filter(Message.id != exclude_id)
    recent = q.order_by(Message.sent_at.desc(), Message.id.desc()).limit(limit).all()
    return list(reversed(recent))


def get_conversation(player_id, game_id=None) -> list[Message]:
    q = Message.query.filter(Message.player_id == player_id)
    if game_id is not None:
        q = q.filter(Message.game_id == game_id)
    return q.order_by(Message.sent_at.asc(), Message.id.asc()).all()


def mark_escalated(message_id, reason: str, suggested_reply: Optional[str]) -> Message:
    msg = db.session.get(Message, message_id)
    msg.escalation_reason = reason
    msg.escalation_suggested_reply = suggested_reply
    msg.escalation_status = EscalationStatus.PENDING
    db.session.commit()
    return msg


def mark_escalation_resolved(message_id, resolution_text: str) -> Message:
    msg = db.session.get(Message, message_id)
    msg.escalation_status = EscalationStatus.RESOLVED
    msg.resolution_text = resolution_text
    msg.resolved_at = utcnow()
    db.session.commit()
    return msg


def list_pending_escalations() -> list[Message]:
    return (
        Message.query.filter(Message.escalation_status == EscalationStatus.PENDING)
        .order_by(Message.sent_at.desc(), Message.id.desc())
        .all()
    )


def count_pending_escalations() -> int:
    return db.session.execute(
        select(func.count(Message.id)).where(Message.escalation_status == EscalationStatus.PENDING)
    ).scalar() or 0
