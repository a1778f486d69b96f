"""Domain exceptions raised by the session engine."""
from typing import Iterable


class MapVetoException(Exception):
    """Base exception for map veto errors.

    Every subclass carries a human readable message naming the offending
    field or value so callers can correct and resubmit.
    """


class ValidationError(MapVetoException):
    """Raised for malformed or out-of-range input."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(reason)


class NotFoundError(MapVetoException):
    """Raised when a referenced entity does not exist."""

    def __init__(self, kind: str, id, message: str | None = None):
        self.kind = kind
        self.id = id
        super().__init__(message or f"{kind} not found: {id}")


class InvalidStateError(MapVetoException):
    """Raised when an operation is not allowed in the session's current status."""

    def __init__(self, current_status: str, allowed_statuses: Iterable[str], operation: str):
        self.current_status = str(current_status)
        self.allowed_statuses = [str(status) for status in allowed_statuses]
        self.operation = operation
        super().__init__(
            f"Cannot {operation} in {self.current_status} state. "
            f"Allowed states: {', '.join(self.allowed_statuses)}"
        )


class CapacityError(MapVetoException):
    """Raised when a session has no free player slots."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Session already has the maximum {limit} players")


class DuplicateError(MapVetoException):
    """Raised when a value that must be unique is already taken."""

    def __init__(self, field: str, value, message: str | None = None):
        self.field = field
        self.value = value
        super().__init__(message or f"{field} \"{value}\" is already in use")


class CollisionError(MapVetoException):
    """Raised when a freshly generated token collides with an existing one."""

    def __init__(self, message: str = "Token collision - please retry"):
        super().__init__(message)


class NotYourTurnError(MapVetoException):
    """Raised when a player acts outside their turn."""

    def __init__(self, player_id, current_turn: int):
        self.player_id = player_id
        self.current_turn = current_turn
        super().__init__(f"It is not player {player_id}'s turn (turn {current_turn})")


class TokenError(MapVetoException):
    """Raised when a player token is unknown or expired."""

    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    def __init__(self, code: str):
        self.code = code
        message = "Token has expired" if code == self.TOKEN_EXPIRED else "Invalid access token"
        super().__init__(message)
