import enum

from pokerbot.extensions import db
from pokerbot.helpers.time import utcnow


class MessageDirection(str, enum.Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class EscalationStatus(str, enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class Message(db.Model):
    """Append-only SMS log; doubles as the escalation queue."""

    __tablename__ = "message"

    id = db.Column(db.Integer, primary_key=True)

    player_id = db.Column(db.Integer, db.ForeignKey("player.id"), nullable=False, index=True)
    game_id = db.Column(db.Integer, db.ForeignKey("game.id", ondelete="SET NULL"), nullable=True, index=True)

    direction = db.Column(
        db.Enum(MessageDirection, native_enum=False, length=10, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    body = db.Column(db.Text, nullable=False)
    sent_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    # Twilio MessageSid; inbound duplicates are detected on this
    provider_message_id = db.Column(db.String(64), nullable=True, index=True)

    escalation_reason = db.Column(db.Text, nullable=True)
    escalation_suggested_reply = db.Column(db.Text, nullable=True)
    escalation_status = db.Column(
        db.Enum(EscalationStatus, native_enum=False, length=10, values_callable=lambda e: [m.value for m in e]),
        nullable=True,
        index=True,
    )
    # Text actually sent when the escalation was resolved (audit)
    resolution_text = db.Column(db.Text, nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    player = db.relationship("Player")
    game = db.relationship("Game")

    def to_dict(self):
        return {
            "id": self.id,
            "player_id": self.player_id,
            "game_id": self.game_id,
            "direction": self.direction.value,
            "body": self.body,
            "sent_at": self.sent_at.isoformat(),
            "provider_message_id": self.provider_message_id,
            "escalation_reason": self.escalation_reason,
            "escalation_suggested_reply": self.escalation_suggested_reply,
            "escalation_status": self.escalation_status.value if self.escalation_status else None,
            "resolution_text": self.resolution_text,
        }
