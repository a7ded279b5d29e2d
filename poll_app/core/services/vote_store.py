"""Vote records for anonymous (cookie-held) and authenticated (table store) voters.

Both backends obey the same contract: one record per (question, voter), written
with ``correct=None`` and resolved at most once by reconciliation. Uniqueness is a
check followed by an insert, so two simultaneous submissions from the same voter
can both land.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Protocol

from poll_app.core.errors import (
    AlreadyAnsweredError,
    QuestionLockedError,
    QuestionValidationError,
    StoreUnavailableError,
)
from poll_app.core.lifecycle import classify
from poll_app.core.models import PollQuestion, VoteRecord
from poll_app.core.services.question_repository import QuestionRepository
from poll_app.storage.table_store import ANSWERS_TABLE, Row, TableStore

logger = logging.getLogger(__name__)


class VoteBackend(Protocol):
    tracks_stats: bool

    def get(self, question_id: str, voter_id: str) -> VoteRecord | None: ...

    def insert(self, record: VoteRecord) -> VoteRecord: ...

    def set_correctness(self, question_id: str, voter_id: str, correct: bool) -> None: ...


class DurableVoteBackend:
    """Records keyed by authenticated user id in the ``poll_answers`` table."""

    tracks_stats = True

    def __init__(self, store: TableStore) -> None:
        self._store = store

    def get(self, question_id: str, voter_id: str) -> VoteRecord | None:
        rows = self._store.select(
            ANSWERS_TABLE, {"question_id": question_id, "user_id": voter_id}, limit=1
        )
        return _row_to_record(rows[0]) if rows else None

    def insert(self, record: VoteRecord) -> VoteRecord:
        self._store.insert(
            ANSWERS_TABLE,
            {
                "id": None,
                "question_id": record.question_id,
                "user_id": record.voter_id,
                "answer": record.answer,
                "prediction": record.prediction,
                "correct": record.correct,
                "created_at": record.created_at,
            },
        )
        return record

    def set_correctness(self, question_id: str, voter_id: str, correct: bool) -> None:
        self._store.update(
            ANSWERS_TABLE,
            {"question_id": question_id, "user_id": voter_id},
            {"correct": correct},
        )

    def answered_question_ids(self, voter_id: str, question_ids: list[str]) -> set[str]:
        if not question_ids:
            return set()
        rows = self._store.select(
            ANSWERS_TABLE, {"user_id": voter_id, "question_id__in": list(question_ids)}
        )
        return {str(row["question_id"]) for row in rows}

    def answers_for_question(self, question_id: str) -> list[str]:
        rows = self._store.select(ANSWERS_TABLE, {"question_id": question_id})
        return [row["answer"] for row in rows]


class CookieVoteBackend:
    """Records held by one browser, keyed by question id.

    ``entries`` is the decoded ``guess_data`` cookie. The server layer writes it
    back to the response whenever ``dirty`` is set.
    """

    tracks_stats = False

    def __init__(self, voter_id: str, entries: dict[str, dict[str, Any]] | None = None) -> None:
        self.voter_id = voter_id
        self._entries: dict[str, dict[str, Any]] = dict(entries or {})
        self.dirty = False

    def get(self, question_id: str, voter_id: str) -> VoteRecord | None:
        entry = self._entries.get(question_id)
        if not entry:
            return None
        return VoteRecord(
            question_id=question_id,
            voter_id=self.voter_id,
            answer=entry.get("answer", ""),
            # Older cookies stored the prediction under "guess".
            prediction=entry.get("prediction") or entry.get("guess", ""),
            correct=entry.get("correct"),
        )

    def insert(self, record: VoteRecord) -> VoteRecord:
        self._entries[record.question_id] = {
            "answer": record.answer,
            "prediction": record.prediction,
            "correct": record.correct,
        }
        self.dirty = True
        return record

    def set_correctness(self, question_id: str, voter_id: str, correct: bool) -> None:
        if question_id in self._entries:
            self._entries[question_id]["correct"] = correct
            self.dirty = True

    def records(self) -> list[VoteRecord]:
        return [self.get(question_id, self.voter_id) for question_id in self._entries]

    def discard(self, question_ids: set[str]) -> None:
        for question_id in question_ids:
            if self._entries.pop(question_id, None) is not None:
                self.dirty = True

    def to_cookie_data(self) -> dict[str, dict[str, Any]]:
        return {question_id: dict(entry) for question_id, entry in self._entries.items()}


def submit_vote(
    question: PollQuestion,
    voter_id: str,
    answer: str,
    prediction: str,
    backend: VoteBackend,
    today: date,
) -> VoteRecord:
    """Record a vote, or raise why it cannot be recorded.

    The lock is re-checked here on every call; client-side state is never trusted.
    """
    status = classify(question, today)
    if not status.can_answer:
        logger.info("Rejected vote on locked question %s by %s", question.id, voter_id)
        raise QuestionLockedError(question.id, status.days_since_publication)

    if not answer or not prediction:
        raise QuestionValidationError("Missing required fields")
    if answer not in question.choices:
        raise QuestionValidationError(f"'{answer}' is not a choice for this question")
    if prediction not in question.choices:
        raise QuestionValidationError(f"'{prediction}' is not a choice for this question")

    if backend.get(question.id, voter_id) is not None:
        logger.info("Rejected duplicate vote on %s by %s", question.id, voter_id)
        raise AlreadyAnsweredError(question.id, voter_id)

    record = VoteRecord(
        question_id=question.id,
        voter_id=voter_id,
        answer=answer,
        prediction=prediction,
        correct=None,
        created_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )
    backend.insert(record)
    logger.info("Recorded vote on %s by %s", question.id, voter_id)
    return record


def migrate_anonymous_votes(
    user_id: str,
    cookie_backend: CookieVoteBackend,
    durable_backend: DurableVoteBackend,
    questions: QuestionRepository,
) -> int:
    """Move cookie-held records into the durable store for a newly signed-in user.

    Records the user already has in the durable store win; the cookie copy is
    dropped without overwriting. Entries naming an unknown question, or an answer or
    prediction that is not one of its choices, are dropped as well. Returns the
    number of records inserted.
    """
    pending = cookie_backend.records()
    if not pending:
        return 0

    already_stored = durable_backend.answered_question_ids(
        user_id, [record.question_id for record in pending]
    )
    settled = set(already_stored)
    migrated = 0
    for record in pending:
        if record.question_id in already_stored:
            logger.debug("Skipping %s for %s; already answered in store", record.question_id, user_id)
            continue
        try:
            question = questions.find(record.question_id)
            if question is None or not _names_declared_choices(question, record):
                logger.warning(
                    "Dropping cookie answer for %s from %s; not a valid vote", record.question_id, user_id
                )
                settled.add(record.question_id)
                continue
            durable_backend.insert(
                VoteRecord(
                    question_id=record.question_id,
                    voter_id=user_id,
                    answer=record.answer,
                    prediction=record.prediction,
                    correct=None,
                    created_at=datetime.now(timezone.utc).replace(tzinfo=None),
                )
            )
        except StoreUnavailableError:
            logger.warning(
                "Store unavailable while migrating answers for %s; keeping the rest in cookies",
                user_id,
            )
            break
        settled.add(record.question_id)
        migrated += 1

    cookie_backend.discard(settled)
    logger.info("Migrated %d of %d cookie answer(s) for %s", migrated, len(pending), user_id)
    return migrated


def _names_declared_choices(question: PollQuestion, record: VoteRecord) -> bool:
    return record.answer in question.choices and record.prediction in question.choices


def _row_to_record(row: Row) -> VoteRecord:
    return VoteRecord(
        question_id=str(row["question_id"]),
        voter_id=str(row["user_id"]),
        answer=row["answer"],
        prediction=row["prediction"],
        correct=row.get("correct"),
        created_at=row.get("created_at"),
    )
