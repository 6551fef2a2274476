from pokerbot.helpers.time import utcnow
from pokerbot.extensions import db

class Player(db.Model):
    __tablename__ = "player"

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False, default="")

    # Stored normalised ("+15551234567"); inbound SMS are matched on this
    phone = db.Column(db.String(32), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=True)

    # Soft delete: opted-out players are never messaged again
    opted_out = db.Column(db.Boolean, nullable=False, default=False)

    response_count = db.Column(db.Integer, nullable=False, default=0)
    timeout_count = db.Column(db.Integer, nullable=False, default=0)
    last_invited_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    invitations = db.relationship("Invitation", back_populates="player", lazy=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "email": self.email,
            "opted_out": self.opted_out,
            "response_count": self.response_count,
            "timeout_count": self.timeout_count,
            "last_invited_at": self.last_invited_at.isoformat() if self.last_invited_at else None,
        }
