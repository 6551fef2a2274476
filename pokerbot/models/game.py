import enum

from pokerbot.extensions import db
from pokerbot.helpers.time import utcnow


class GameStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Admin-driven lifecycle; completed/cancelled are terminal
GAME_STATUS_TRANSITIONS = {
    GameStatus.DRAFT: {GameStatus.ACTIVE, GameStatus.CANCELLED},
    GameStatus.ACTIVE: {GameStatus.COMPLETED, GameStatus.CANCELLED},
    GameStatus.COMPLETED: set(),
    GameStatus.CANCELLED: set(),
}


class Game(db.Model):
    __tablename__ = "game"

    id = db.Column(db.Integer, primary_key=True)

    # Wall-clock date/time in GAME_TIMEZONE
    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.Time, nullable=False)

    location = db.Column(db.String(255), nullable=False)

    # Descriptive arrival text, e.g. "Doors 6:30, cards at 7"
    time_block = db.Column(db.String(255), nullable=False, default="")
    entry_instructions = db.Column(db.Text, nullable=True)

    capacity = db.Column(db.Integer, nullable=False, default=8)

    # Absolute cutoff (naive UTC)
    rsvp_deadline = db.Column(db.DateTime, nullable=False, index=True)

    status = db.Column(
        db.Enum(
            GameStatus,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=GameStatus.DRAFT,
        index=True,
    )

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    invitations = db.relationship(
        "Invitation",
        back_populates="game",
        lazy=True,
        order_by="Invitation.position",
    )

    __table_args__ = (
        db.CheckConstraint("capacity >= 1", name="ck_game_capacity_positive"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "time": self.time.strftime("%H:%M"),
            "location": self.location,
            "time_block": self.time_block,
            "entry_instructions": self.entry_instructions,
            "capacity": self.capacity,
            "rsvp_deadline": self.rsvp_deadline.isoformat(),
            "status": self.status.value,
        }
