"""Business logic shared by every HTTP handler of the poll server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from poll_app.constants.poll_constants import PAST_QUESTION_LIMIT
from poll_app.core.clock import Clock
from poll_app.core.errors import StoreUnavailableError
from poll_app.core.lifecycle import classify
from poll_app.core.models import (
    AvailableResults,
    LockedResults,
    PollQuestion,
    QuestionStatus,
    UserStats,
    Voter,
    VoteRecord,
)
from poll_app.core.question_exporter import serialize_questions
from poll_app.core.question_importer import load_questions_from_file
from poll_app.core.sample_questions import build_sample_questions
from poll_app.core.services.question_repository import QuestionRepository
from poll_app.core.services.reconciliation import PredictionReconciler, majority_answer
from poll_app.core.services.results_aggregator import ResultsAggregator
from poll_app.core.services.stats_tracker import StatsTracker
from poll_app.core.services.vote_store import (
    CookieVoteBackend,
    DurableVoteBackend,
    VoteBackend,
    migrate_anonymous_votes,
    submit_vote,
)
from poll_app.storage.table_store import TableStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VoteReceipt:
    record: VoteRecord
    storage: str


@dataclass(slots=True)
class ResultsReport:
    question: PollQuestion
    results: LockedResults | AvailableResults
    your_vote: VoteRecord | None = None
    majority_answer: str | None = None


@dataclass(slots=True)
class SyncReport:
    migrated: int
    pending: int
    stats: UserStats


class PollManager:
    """Facade for poll services: Repository, Votes, Results, Reconciliation and Stats.

    Holds no per-user state. Every call resolves "today" from the clock afresh and
    receives the caller's identity and cookie-held records explicitly. There is no
    lock around multi-step operations.
    """

    def __init__(self, store: TableStore, clock: Clock) -> None:
        self._clock = clock
        self._repository = QuestionRepository(store)
        self._votes = DurableVoteBackend(store)
        self._stats = StatsTracker(store)
        self._aggregator = ResultsAggregator(self._votes)
        self._reconciler = PredictionReconciler(self._aggregator, self._stats)

    def today(self) -> date:
        return self._clock.today()

    # --- Questions ---

    def get_today_question(self) -> tuple[PollQuestion, QuestionStatus] | None:
        today = self.today()
        question = self._repository.find_by_date(today)
        if question is None:
            return None
        return question, classify(question, today)

    def get_question(self, question_id: str) -> tuple[PollQuestion, QuestionStatus]:
        question = self._repository.get(question_id)
        return question, classify(question, self.today())

    def get_past_questions(self, limit: int = PAST_QUESTION_LIMIT) -> list[tuple[PollQuestion, QuestionStatus]]:
        today = self.today()
        return [(question, classify(question, today)) for question in self._repository.list_before(today, limit)]

    # --- Votes ---

    def submit_vote(
        self,
        question_id: str,
        voter: Voter,
        answer: str,
        prediction: str,
        cookie_votes: CookieVoteBackend,
    ) -> VoteReceipt:
        question = self._repository.get(question_id)
        today = self.today()
        if voter.is_authenticated:
            try:
                record = submit_vote(question, voter.voter_id, answer, prediction, self._votes, today)
                return VoteReceipt(record=record, storage="database")
            except StoreUnavailableError:
                logger.warning(
                    "Store unavailable while saving vote for %s; falling back to cookie", voter.user_id
                )
        record = submit_vote(question, voter.anonymous_id, answer, prediction, cookie_votes, today)
        return VoteReceipt(record=record, storage="cookie")

    def lookup_vote(self, question_id: str, voter: Voter, cookie_votes: CookieVoteBackend) -> VoteRecord | None:
        if voter.is_authenticated:
            try:
                record = self._votes.get(question_id, voter.voter_id)
            except StoreUnavailableError:
                logger.warning("Store unavailable while reading vote for %s", voter.user_id)
                record = None
            if record is not None:
                return record
        return cookie_votes.get(question_id, voter.anonymous_id)

    # --- Results ---

    def get_results(self, question_id: str, voter: Voter, cookie_votes: CookieVoteBackend) -> ResultsReport:
        question = self._repository.get(question_id)
        today = self.today()
        results = self._aggregator.compute_results(question, today)
        report = ResultsReport(question=question, results=results)
        if isinstance(results, AvailableResults):
            report.majority_answer = majority_answer(results.rows)
            backend, voter_id = self._backend_for(question_id, voter, cookie_votes)
            self._reconciler.reconcile(question, voter_id, backend, today, results=results)
        report.your_vote = self.lookup_vote(question_id, voter, cookie_votes)
        return report

    def _backend_for(
        self, question_id: str, voter: Voter, cookie_votes: CookieVoteBackend
    ) -> tuple[VoteBackend, str]:
        """Where the caller's record for ``question_id`` lives.

        A signed-in voter whose vote fell back to the cookie during a store outage
        is resolved there until the next identity sync moves it.
        """
        if voter.is_authenticated and self._votes.get(question_id, voter.voter_id) is not None:
            return self._votes, voter.voter_id
        return cookie_votes, voter.anonymous_id

    # --- Identity transition & stats ---

    def sync_identity(self, voter: Voter, cookie_votes: CookieVoteBackend) -> SyncReport:
        """Fold a browser's cookie-held answers into the signed-in user's records."""
        if not voter.is_authenticated:
            raise ValueError("Identity sync requires a signed-in user.")
        stats = self._stats.ensure(voter.user_id)
        migrated = migrate_anonymous_votes(voter.user_id, cookie_votes, self._votes, self._repository)
        return SyncReport(migrated=migrated, pending=len(cookie_votes.records()), stats=stats)

    def get_user_stats(self, user_id: str) -> UserStats:
        return self._stats.ensure(user_id)

    # --- Admin ---

    def list_questions(self) -> list[tuple[PollQuestion, QuestionStatus]]:
        today = self.today()
        return [(question, classify(question, today)) for question in self._repository.list_all()]

    def add_question(self, question: PollQuestion) -> PollQuestion:
        return self._repository.add_question(question)

    def update_question(self, question_id: str, question: PollQuestion) -> PollQuestion:
        return self._repository.update_question(question_id, question)

    def delete_question(self, question_id: str) -> int:
        return self._repository.delete_question(question_id)

    def import_questions(self, file_path: Path) -> int:
        """Load questions from a text file, skipping dates that already have one."""
        imported = load_questions_from_file(file_path)
        added = 0
        for question in imported.questions:
            if self._repository.find_by_date(question.publish_date) is not None:
                logger.info("Skipping imported question for %s; date taken", question.publish_date)
                continue
            self._repository.add_question(question)
            added += 1
        logger.info("Imported %d question(s) from %s", added, file_path)
        return added

    def seed_sample_questions(self) -> int:
        """Schedule the built-in sample questions when no question exists yet."""
        if self._repository.list_all():
            return 0
        samples = build_sample_questions(self._clock)
        for question in samples:
            self._repository.add_question(question)
        logger.info("Seeded %d sample question(s)", len(samples))
        return len(samples)

    def export_questions_text(self) -> str:
        questions = sorted(self._repository.list_all(), key=lambda question: question.publish_date)
        return serialize_questions(questions) if questions else ""
