"""
Exception hierarchy for the math quiz game.
"""


class QuizError(Exception):
    """Base exception for quiz errors."""
    pass


class InvalidConfigError(QuizError):
    """Raised when difficulty or round count is outside the allowed bounds."""
    pass


class InvalidStateError(QuizError):
    """Raised when an operation is invoked in a phase that forbids it."""
    pass


class IndexOutOfRangeError(QuizError):
    """Raised when an answer index is outside the four answer slots."""
    pass


class SessionNotFoundError(QuizError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class SessionConflictError(QuizError):
    """Raised when attempting to start a session over an unfinished one."""
    pass
