"""
Errors raised by the core operations. All of them are recoverable: the caller
is expected to report them back to the user and let them retry.
"""
from pydantic import ValidationError


class CoreError(ValueError):
    """Base class for all errors raised by the content and assessment core."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])


def validation_messages(exc: ValidationError, default: str = "content") -> list[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc']) or default}: {error['msg']}"
        for error in exc.errors()
    ]


class InvalidContentShape(CoreError):
    """Content does not match the schema of its component type."""


class InvalidFiles(CoreError):
    """A file set violates its policy. `errors` holds every violation."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Invalid files: " + "; ".join(errors), errors)


class PastDeadline(CoreError):
    """The activity no longer accepts this submission."""


class NotSubmitted(CoreError):
    """The submission is not in a gradable state."""


class InvalidScore(CoreError):
    """Score is outside [0, max_score]."""


class AttemptsExceeded(CoreError):
    """The quiz attempt ceiling has already been reached."""


class UnsafeContent(CoreError):
    """Rich text tripped the deny-list. `fallback` holds the plain-text replacement."""

    def __init__(self, message: str, fallback: str) -> None:
        super().__init__(message)
        self.fallback = fallback


class InvalidActivity(CoreError):
    """Activity data or state does not allow the requested operation."""


class NotActivityOwner(CoreError):
    """Only the creator of an activity may change it."""


class StaleSubmission(CoreError):
    """The submission changed since it was read."""
