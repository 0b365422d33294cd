"""
Lesson Engine Errors

Error types raised by the lesson session engine and its helpers.

Only SessionNotFoundError escapes the session operations; the others are
raised to an immediate caller which applies its own fallback.
"""

from typing import Optional


class LessonEngineError(Exception):
    """Base class for lesson engine errors."""


class SessionNotFoundError(LessonEngineError):
    """No session exists for the given (user_id, mission_id) key."""

    def __init__(self, user_id: str, mission_id: str):
        self.user_id = user_id
        self.mission_id = mission_id
        super().__init__(f"Session not found: {user_id}:{mission_id}")


class GenerationError(LessonEngineError):
    """A generation call failed or returned unusable content."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message)


class ResponseParseError(LessonEngineError):
    """Model output could not be normalized into a structured value."""

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class InvalidChoiceError(LessonEngineError):
    """A submitted selection matches no option of the current choice block."""

    def __init__(self, block_id: str, selection):
        self.block_id = block_id
        self.selection = selection
        super().__init__(f"No choice in block '{block_id}' matches {selection!r}")
