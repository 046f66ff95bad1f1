"""
Error types raised by game and room operations.

Every rejection a client can trigger is a GameError. Handlers turn these into
a failed acknowledgement; nothing here is fatal to a room or a connection.
"""


class GameError(Exception):
    """Base class for recoverable, client-caused failures."""

    category = "game_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(GameError):
    """Room or player does not exist."""
    category = "not_found"


class UnauthorizedError(GameError):
    """Caller is not allowed to perform this action (wrong turn, not host)."""
    category = "unauthorized"


class InvalidPhaseError(GameError):
    """Action is not legal in the room's current phase."""
    category = "invalid_phase"


class InvalidArgumentError(GameError):
    """Bad index, wrong card for a power, or a malformed request."""
    category = "invalid_argument"


class ResourceExhaustedError(GameError):
    """Nothing left to consume (peeks, cards, room codes)."""
    category = "resource_exhausted"


class RoomNotFoundError(NotFoundError):
    def __init__(self, message: str = "Room not found"):
        super().__init__(message)


class RoomFullError(ResourceExhaustedError):
    def __init__(self, message: str = "Room full"):
        super().__init__(message)
