from .player import Player
from .game import Game, GameStatus, GAME_STATUS_TRANSITIONS
from .invitation import (
    CalendarStatus,
    Invitation,
    InvitationStatus,
    INVITATION_TRANSITIONS,
    TERMINAL_STATUSES,
)
from .message import EscalationStatus, Message, MessageDirection

__all__ = [
    "CalendarStatus",
    "EscalationStatus",
    "GAME_STATUS_TRANSITIONS",
    "Game",
    "GameStatus",
    "INVITATION_TRANSITIONS",
    "Invitation",
    "InvitationStatus",
    "Message",
    "MessageDirection",
    "Player",
    "TERMINAL_STATUSES",
]
