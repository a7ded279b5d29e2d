"""Service for storing daily questions in the table store."""

from __future__ import annotations

import logging
from datetime import date

from poll_app.constants.poll_constants import MAX_CHOICES, MIN_CHOICES
from poll_app.core.errors import QuestionNotFoundError, QuestionValidationError
from poll_app.core.lifecycle import results_unlock_date
from poll_app.core.models import PollQuestion
from poll_app.storage.table_store import (
    ANSWERS_TABLE,
    QUESTIONS_TABLE,
    Row,
    TableStore,
    normalize_date,
)

logger = logging.getLogger(__name__)


class QuestionRepository:
    """Validates and persists questions; one question per publish date."""

    def __init__(self, store: TableStore) -> None:
        self._store = store

    def get(self, question_id: str) -> PollQuestion:
        question = self.find(question_id)
        if question is None:
            raise QuestionNotFoundError(f"Question {question_id} not found")
        return question

    def find(self, question_id: str) -> PollQuestion | None:
        rows = self._store.select(QUESTIONS_TABLE, {"id": question_id}, limit=1)
        return _row_to_question(rows[0]) if rows else None

    def find_by_date(self, publish_date: date) -> PollQuestion | None:
        rows = self._store.select(QUESTIONS_TABLE, {"published_at": publish_date}, limit=1)
        return _row_to_question(rows[0]) if rows else None

    def list_before(self, day: date, limit: int) -> list[PollQuestion]:
        """Most recent questions published strictly before ``day``, newest first."""
        rows = self._store.select(
            QUESTIONS_TABLE,
            {"published_at__lt": day},
            order_by="published_at",
            descending=True,
            limit=limit,
        )
        return [_row_to_question(row) for row in rows]

    def list_all(self) -> list[PollQuestion]:
        rows = self._store.select(QUESTIONS_TABLE, order_by="published_at", descending=True)
        return [_row_to_question(row) for row in rows]

    def add_question(self, question: PollQuestion) -> PollQuestion:
        prepared = self._prepare_question(question)
        if self.find_by_date(prepared.publish_date) is not None:
            raise QuestionValidationError("A question already exists for this date")
        if not prepared.id:
            prepared.id = self._next_question_id()
        elif self._exists(prepared.id):
            raise QuestionValidationError(f"Question id {prepared.id} is already taken")
        prepared.results_unlock_date = results_unlock_date(prepared.publish_date)
        self._store.insert(QUESTIONS_TABLE, _question_to_row(prepared))
        logger.info("Added question %s for %s", prepared.id, prepared.publish_date)
        return prepared

    def update_question(self, question_id: str, question: PollQuestion) -> PollQuestion:
        existing = self.get(question_id)
        prepared = self._prepare_question(question)
        clash = self.find_by_date(prepared.publish_date)
        if clash is not None and clash.id != question_id:
            raise QuestionValidationError("Another question already exists for this date")
        # Identity is preserved across edits.
        prepared.id = existing.id
        prepared.results_unlock_date = results_unlock_date(prepared.publish_date)
        row = _question_to_row(prepared)
        row.pop("id")
        self._store.update(QUESTIONS_TABLE, {"id": question_id}, row)
        logger.info("Updated question %s", question_id)
        return prepared

    def delete_question(self, question_id: str) -> int:
        """Delete a question and every answer recorded for it. Returns answers removed."""
        if not self._exists(question_id):
            raise QuestionNotFoundError(f"Question {question_id} not found")
        self._store.delete(QUESTIONS_TABLE, {"id": question_id})
        removed = self._store.delete(ANSWERS_TABLE, {"question_id": question_id})
        logger.info("Deleted question %s and %d answer(s)", question_id, removed)
        return removed

    def _exists(self, question_id: str) -> bool:
        return bool(self._store.select(QUESTIONS_TABLE, {"id": question_id}, limit=1))

    def _next_question_id(self) -> str:
        highest = 0
        for row in self._store.select(QUESTIONS_TABLE):
            raw = str(row["id"])
            if raw.startswith("q") and raw[1:].isdigit():
                highest = max(highest, int(raw[1:]))
        return f"q{highest + 1}"

    def _prepare_question(self, question: PollQuestion) -> PollQuestion:
        """Validate and normalize a question before storage."""
        if not isinstance(question.publish_date, date):
            raise QuestionValidationError("Publish date must be a calendar date.")
        cleaned_text = (question.question_text or "").strip()
        if not cleaned_text:
            raise QuestionValidationError("Question text must not be empty.")
        choices = self._validate_choices(question.choices)
        image_url = (question.image_url or "").strip() or None
        return PollQuestion(
            id=(question.id or "").strip(),
            publish_date=question.publish_date,
            question_text=cleaned_text,
            choices=choices,
            image_url=image_url,
        )

    @staticmethod
    def _validate_choices(choices: list[str]) -> list[str]:
        if not isinstance(choices, list) or not MIN_CHOICES <= len(choices) <= MAX_CHOICES:
            raise QuestionValidationError(
                f"Must provide date, question, and {MIN_CHOICES}-{MAX_CHOICES} choices"
            )
        cleaned = [str(choice).strip() for choice in choices]
        if any(not choice for choice in cleaned):
            raise QuestionValidationError("Choice text cannot be empty.")
        if len(set(cleaned)) != len(cleaned):
            raise QuestionValidationError("Choices must be distinct.")
        return cleaned


def _question_to_row(question: PollQuestion) -> Row:
    return {
        "id": question.id,
        "published_at": question.publish_date,
        "question_text": question.question_text,
        "options": list(question.choices),
        "image_url": question.image_url,
        "results_unlock_date": question.results_unlock_date,
    }


def _row_to_question(row: Row) -> PollQuestion:
    return PollQuestion(
        id=str(row["id"]),
        publish_date=normalize_date(row["published_at"]),
        question_text=row["question_text"],
        choices=list(row["options"]),
        image_url=row.get("image_url"),
        results_unlock_date=normalize_date(row.get("results_unlock_date")),
    )
