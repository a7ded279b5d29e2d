"""Exceptions raised by the poll services and mapped to HTTP errors by the server."""

from __future__ import annotations

from poll_app.constants.poll_constants import VOTING_WINDOW_DAYS


class PollError(Exception):
    """Base class for poll domain errors."""


class QuestionNotFoundError(PollError):
    """Raised when a question id does not resolve to a stored question."""


class QuestionValidationError(PollError, ValueError):
    """Raised when question or vote input is malformed."""


class QuestionLockedError(PollError):
    """Raised when a vote arrives after the voting window closed."""

    def __init__(self, question_id: str, days_since_publication: int) -> None:
        super().__init__(
            f"This question can no longer be answered ({VOTING_WINDOW_DAYS}-day window expired)"
        )
        self.question_id = question_id
        self.days_since_publication = days_since_publication


class AlreadyAnsweredError(PollError):
    """Raised when the same voter submits twice for one question."""

    def __init__(self, question_id: str, voter_id: str) -> None:
        super().__init__("You have already answered this question.")
        self.question_id = question_id
        self.voter_id = voter_id


class StoreUnavailableError(PollError):
    """Raised when the table store cannot be reached. Callers may retry."""


class StoreConflictError(PollError):
    """Raised when the table store rejects a write that violates a uniqueness rule."""
