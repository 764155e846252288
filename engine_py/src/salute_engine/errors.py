# engine_py/src/salute_engine/errors.py

from typing import Optional


class GameError(Exception):
    """Base exception for game-related errors."""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class MalformedMessageError(GameError):
    """Inbound message could not be parsed or failed schema validation."""
    def __init__(self, message: str):
        super().__init__(MALFORMED_MESSAGE, message)


class RateLimitError(GameError):
    """Client exceeded the allowed volume for an action."""
    def __init__(self, action: str, retry_after_ms: int):
        self.action = action
        self.retry_after_ms = retry_after_ms
        super().__init__(RATE_LIMITED, f"Rate limited. Try again in {format_retry_after(retry_after_ms)}.")


class PersistenceError(GameError):
    """Durable storage failed. Logged server-side only."""
    def __init__(self, message: str):
        super().__init__(PERSISTENCE_FAILED, message)


# Error categories
CATEGORY_VALIDATION = "validation"
CATEGORY_NOT_FOUND = "not_found"
CATEGORY_RATE_LIMITED = "rate_limited"
CATEGORY_MALFORMED = "malformed"
CATEGORY_INTERNAL = "internal"

# Specific error codes
ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
NOT_IN_ROOM = "NOT_IN_ROOM"
ROOM_FULL = "ROOM_FULL"
GAME_ALREADY_STARTED = "GAME_ALREADY_STARTED"
NOT_HOST = "NOT_HOST"
NOT_ENOUGH_PLAYERS = "NOT_ENOUGH_PLAYERS"
WRONG_ROUND_PHASE = "WRONG_ROUND_PHASE"
NOT_YOUR_TURN = "NOT_YOUR_TURN"
WRONG_TURN_PHASE = "WRONG_TURN_PHASE"
INVALID_SELECTION = "INVALID_SELECTION"
RANK_MISMATCH = "RANK_MISMATCH"
SOURCE_EMPTY = "SOURCE_EMPTY"
INVALID_SOURCE = "INVALID_SOURCE"
TOO_EARLY = "TOO_EARLY"
JUST_PLAYED = "JUST_PLAYED"
INVALID_SETTINGS = "INVALID_SETTINGS"
RATE_LIMITED = "RATE_LIMITED"
MALFORMED_MESSAGE = "MALFORMED_MESSAGE"
PERSISTENCE_FAILED = "PERSISTENCE_FAILED"
INTERNAL_ERROR = "INTERNAL_ERROR"

_CATEGORIES = {
    ROOM_NOT_FOUND: CATEGORY_NOT_FOUND,
    PLAYER_NOT_FOUND: CATEGORY_NOT_FOUND,
    NOT_IN_ROOM: CATEGORY_NOT_FOUND,
    RATE_LIMITED: CATEGORY_RATE_LIMITED,
    MALFORMED_MESSAGE: CATEGORY_MALFORMED,
    PERSISTENCE_FAILED: CATEGORY_INTERNAL,
    INTERNAL_ERROR: CATEGORY_INTERNAL,
}


def error_category(code: Optional[str]) -> str:
    """Map an error code to its category; anything unlisted is a validation failure."""
    if code is None:
        return CATEGORY_INTERNAL
    return _CATEGORIES.get(code, CATEGORY_VALIDATION)


def format_retry_after(retry_after_ms: int) -> str:
    seconds = max(1, -(-retry_after_ms // 1000))
    if seconds >= 120:
        return f"{-(-seconds // 60)} minutes"
    return f"{seconds} seconds"
