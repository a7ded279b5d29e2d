"""Utilities for exporting questions to the plain-text format used for imports."""

from __future__ import annotations

from poll_app.core.models import PollQuestion

_CHOICE_LETTERS = ("A", "B", "C", "D")


def serialize_questions(questions: list[PollQuestion]) -> str:
    """Render questions as import blocks separated by ``---``."""
    blocks = [_serialize_question(question) for question in questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: PollQuestion) -> str:
    lines = [f"DATE: {question.publish_date.isoformat()}"]

    question_lines = question.question_text.splitlines() or [question.question_text]
    lines.append(f"Q: {question_lines[0]}")
    lines.extend(question_lines[1:])

    for letter, choice in zip(_CHOICE_LETTERS, question.choices):
        lines.append(f"{letter}: {choice}")

    if question.image_url:
        lines.append(f"IMAGE: {question.image_url}")

    return "\n".join(lines)
