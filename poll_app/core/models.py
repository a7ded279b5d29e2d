"""Domain models for the daily poll."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class Phase(str, Enum):
    """Lifecycle phase of a question, derived from its age."""

    ANSWERABLE = "answerable"
    LOCKED_PENDING = "locked_pending"
    RESULTS_AVAILABLE = "results_available"


@dataclass(slots=True)
class PollQuestion:
    """A daily question with two to four distinct choices."""

    id: str
    publish_date: date
    question_text: str
    choices: list[str]
    image_url: str | None = None
    results_unlock_date: date | None = None


@dataclass(slots=True, frozen=True)
class QuestionStatus:
    """Snapshot of what a question permits on a given civil day."""

    days_since_publication: int
    can_answer: bool
    can_view_results: bool
    days_until_results: int
    phase: Phase

    @property
    def status(self) -> str:
        return "active" if self.can_answer else "locked"


@dataclass(slots=True, frozen=True)
class Voter:
    """Who is asking: a browser, and the signed-in user behind it if any."""

    client_id: str
    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def anonymous_id(self) -> str:
        return f"anon:{self.client_id}"

    @property
    def voter_id(self) -> str:
        return self.user_id if self.user_id is not None else self.anonymous_id


@dataclass(slots=True)
class VoteRecord:
    """A voter's answer plus their guess at the majority.

    ``correct`` stays ``None`` until reconciliation resolves the prediction.
    """

    question_id: str
    voter_id: str
    answer: str
    prediction: str
    correct: bool | None = None
    created_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.correct is not None


@dataclass(slots=True)
class UserStats:
    """Cumulative prediction statistics for an authenticated user."""

    user_id: str
    points: int = 0
    wins: int = 0
    losses: int = 0
    accuracy: float = 0.0
    current_win_streak: int = 0
    best_win_streak: int = 0
    daily_streak: int = 0
    best_daily_streak: int = 0
    last_answered_date: date | None = None


@dataclass(slots=True, frozen=True)
class ResultRow:
    """Percentage share of one choice."""

    choice: str
    percentage: int


@dataclass(slots=True, frozen=True)
class LockedResults:
    """Results are not viewable yet."""

    days_until_results: int
    locked: bool = field(default=True, init=False)


@dataclass(slots=True, frozen=True)
class AvailableResults:
    """Per-choice percentages in declared choice order."""

    rows: list[ResultRow]
    total_votes: int
    locked: bool = field(default=False, init=False)


@dataclass(slots=True, frozen=True)
class ReconcileOutcome:
    """What a single reconciliation pass decided."""

    question_id: str
    voter_id: str
    majority_answer: str
    was_correct: bool
