"""
Exception hierarchy for the quiz session engine.
"""


class QuizError(Exception):
    """Base exception for quiz engine errors reported back to a sender."""

    notice_kind = "error"


class UserInputError(QuizError):
    """Raised for malformed commands, out-of-range question numbers or invalid options."""
    pass


class QuizPermissionError(QuizError):
    """Raised when someone other than the quiz owner issues an owner command."""
    pass


class StateConflictError(QuizError):
    """Raised when a command is not valid for the current session phase."""
    pass


class NotFoundError(QuizError):
    """Raised when no session or no active question exists for the sender."""

    notice_kind = "info"


class TransportError(QuizError):
    """Raised by transports when a send, lock or unlock fails."""
    pass
