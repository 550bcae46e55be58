"""Error taxonomy for the quiz pipeline."""
from __future__ import annotations


class QuizError(Exception):
    """Base class for quiz pipeline failures."""

    retryable = False


class FetchError(QuizError):
    """The subject could not be read from the persistence collaborator."""


class GenerationError(QuizError):
    """The text-generation service was unreachable, unconfigured or failed."""

    retryable = True

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        msg = super().__str__()
        if self.status is not None:
            msg = f"{msg} (HTTP {self.status})"
        return msg


class ParseError(QuizError):
    """No question set could be recovered from the generator output."""

    retryable = True


class EmptySetError(ParseError):
    """Output decoded but zero questions survived validation."""


class ReportError(QuizError):
    """A completion record could not be persisted."""


class TransitionError(QuizError):
    """A session operation was called in a state that does not allow it."""
