# imposters/errors.py


class GameError(Exception):
    """Base class for failures the game service reports back to the caller."""

    status_code = 400
    code = "game_error"

    def to_detail(self) -> dict:
        return {"error": self.code, "message": str(self)}


class NotFound(GameError):
    status_code = 404
    code = "not_found"


class Unauthorized(GameError):
    status_code = 401
    code = "unauthorized"


class NotOwner(GameError):
    status_code = 403
    code = "not_owner"


class InvalidState(GameError):
    status_code = 409
    code = "invalid_state"


class GameAlreadyStarted(InvalidState):
    code = "game_already_started"


class StaleRound(InvalidState):
    """An answer was pinned to a round the participant is no longer in."""
    code = "stale_round"


class Conflict(GameError):
    status_code = 409
    code = "conflict"


class NameTaken(Conflict):
    code = "name_taken"


class AlreadyVoted(Conflict):
    code = "already_voted"


class GameValidationError(GameError):
    status_code = 400
    code = "validation_error"
