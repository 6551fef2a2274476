import enum

from sqlalchemy import UniqueConstraint

from pokerbot.errors import InvalidTransition
from pokerbot.extensions import db


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    INVITED = "invited"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "InvitationStatus") -> bool:
        return target in INVITATION_TRANSITIONS[self]

    @classmethod
    def transition(cls, current, target):
        """
        Return the next status, or raise InvalidTransition.

        Nothing leaves a terminal status; the only way into
        confirmed/declined/timeout is from invited.
        """
        current = cls(current)
        target = cls(target)
        if not current.can_transition_to(target):
            raise InvalidTransition(current, target)
        return target


INVITATION_TRANSITIONS = {
    InvitationStatus.PENDING: {InvitationStatus.INVITED},
    InvitationStatus.INVITED: {
        InvitationStatus.CONFIRMED,
        InvitationStatus.DECLINED,
        InvitationStatus.TIMEOUT,
    },
    InvitationStatus.CONFIRMED: set(),
    InvitationStatus.DECLINED: set(),
    InvitationStatus.TIMEOUT: set(),
}

TERMINAL_STATUSES = frozenset(
    {InvitationStatus.CONFIRMED, InvitationStatus.DECLINED, InvitationStatus.TIMEOUT}
)


class CalendarStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


def _enum_column(enum_cls, **kwargs):
    return db.Column(
        db.Enum(
            enum_cls,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        **kwargs,
    )


class Invitation(db.Model):
    __tablename__ = "invitation"

    id = db.Column(db.Integer, primary_key=True)

    game_id = db.Column(
        db.Integer,
        db.ForeignKey("game.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    player_id = db.Column(
        db.Integer,
        db.ForeignKey("player.id"),
        nullable=False,
        index=True,
    )

    # Queue order within the game (lowest goes first)
    position = db.Column(db.Integer, nullable=False)

    status = _enum_column(InvitationStatus, nullable=False, default=InvitationStatus.PENDING)

    invited_at = db.Column(db.DateTime, nullable=True)
    responded_at = db.Column(db.DateTime, nullable=True)

    google_calendar_event_id = db.Column(db.String(255), nullable=True)
    calendar_status = _enum_column(CalendarStatus, nullable=True)

    game = db.relationship("Game", back_populates="invitations")
    player = db.relationship("Player", back_populates="invitations")

    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_invitation_game_player"),
        UniqueConstraint("game_id", "position", name="uq_invitation_game_position"),
        db.Index("ix_invitation_game_status_position", "game_id", "status", "position"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "game_id": self.game_id,
            "player_id": self.player_id,
            "player_name": self.player.full_name if self.player else None,
            "position": self.position,
            "status": self.status.value,
            "invited_at": self.invited_at.isoformat() if self.invited_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
            "google_calendar_event_id": self.google_calendar_event_id,
            "calendar_status": self.calendar_status.value if self.calendar_status else None,
        }
