class PokerbotError(Exception):
    """Base class for errors raised by the invitation engine."""

    http_status = 500


class NotFound(PokerbotError):
    http_status = 404


class InvitationNotFound(NotFound):
    def __init__(self, invitation_id):
        super().__init__(f"Invitation {invitation_id} not found")
        self.invitation_id = invitation_id


class GameNotFound(NotFound):
    def __init__(self, game_id):
        super().__init__(f"Game {game_id} not found")
        self.game_id = game_id


class PlayerNotFound(NotFound):
    def __init__(self, player_id):
        super().__init__(f"Player {player_id} not found")
        self.player_id = player_id


class EscalationNotFound(NotFound):
    def __init__(self, message_id):
        super().__init__(f"Escalation {message_id} not found")
        self.message_id = message_id


class InvalidState(PokerbotError):
    http_status = 409


class PlayerOptedOut(InvalidState):
    def __init__(self, player_id):
        super().__init__(f"Player {player_id} has opted out")
        self.player_id = player_id


class InvalidTransition(InvalidState):
    def __init__(self, current, target):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(f"Cannot move from {current_value} to {target_value}")
        self.current = current
        self.target = target


class UpstreamFailure(PokerbotError):
    """A gateway (SMS, classifier, calendar) call failed."""

    http_status = 502


class MalformedClassifierOutput(PokerbotError):
    """Classifier answered with something that is not a valid decision."""

    http_status = 502
