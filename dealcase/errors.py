from fastapi import status


class GameError(Exception):
    """Base for every failure the game API reports to a caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    reason: str = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(GameError):
    status_code = status.HTTP_400_BAD_REQUEST
    reason = "invalid_input"


class UnauthorizedError(GameError):
    status_code = status.HTTP_401_UNAUTHORIZED
    reason = "unauthorized"


class NotOwnerError(GameError):
    status_code = status.HTTP_403_FORBIDDEN
    reason = "forbidden"


class GameNotFoundError(GameError):
    status_code = status.HTTP_404_NOT_FOUND
    reason = "not_found"


class StatePreconditionError(GameError):
    status_code = status.HTTP_400_BAD_REQUEST
    reason = "invalid_state"


class ConcurrencyConflictError(GameError):
    """A conditional write matched zero rows: another request got there first."""

    status_code = status.HTTP_409_CONFLICT
    reason = "conflict"


class CollaboratorError(GameError):
    """Persistence, identity or chain call failed. The message is logged, not returned."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    reason = "internal_error"
