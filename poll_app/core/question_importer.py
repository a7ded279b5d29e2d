"""Utilities for importing daily questions from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    DATE: YYYY-MM-DD   (publish date, one question per date)
    Q: Question text (supports markdown). Additional lines until the next
       marker are treated as part of the question.
    A: First choice
    B: Second choice
    C: Third choice    (optional)
    D: Fourth choice   (optional)
    IMAGE: https://... (optional illustration)

Example:

    DATE: 2025-01-05
    Q: Are you a morning person or a night owl?
    A: Morning Person
    B: Night Owl

The admin uses this to load a batch of upcoming questions in one go; each parsed
question still goes through the repository's validation on insert.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path

from poll_app.constants.poll_constants import MAX_CHOICES, MIN_CHOICES
from poll_app.core.clock import parse_civil_date
from poll_app.core.models import PollQuestion


class QuestionImportError(Exception):
    """Raised when a question file cannot be parsed."""


@dataclass(slots=True)
class ImportedQuestions:
    """Container for imported question metadata."""

    source_path: Path
    questions: list[PollQuestion]


_CHOICE_ORDER = ["A", "B", "C", "D"]


def load_questions_from_file(file_path: Path) -> ImportedQuestions:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_questions_text(text)
    if not questions:
        raise QuestionImportError("Question file did not contain any questions.")
    return ImportedQuestions(source_path=file_path, questions=questions)


def parse_questions_text(text: str) -> list[PollQuestion]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    return [_parse_block(block) for block in blocks if block]


def _parse_block(block: str) -> PollQuestion:
    question_lines: list[str] = []
    choices: dict[str, str] = {}
    publish_date: date | None = None
    image_url: str | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("DATE:"):
            raw_value = line.split(":", 1)[1].strip()
            try:
                publish_date = parse_civil_date(raw_value)
            except ValueError as exc:
                raise QuestionImportError(f"DATE must be YYYY-MM-DD, got '{raw_value}'.") from exc
            current_section = None
            continue

        if upper.startswith("IMAGE:"):
            image_url = line.split(":", 1)[1].strip() or None
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _CHOICE_ORDER and line[1] == ":":
            letter = line[0].upper()
            choices[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _CHOICE_ORDER:
            choices[current_section] = choices[current_section] + f" {line}"
        else:
            raise QuestionImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    if publish_date is None:
        raise QuestionImportError("Publish date missing (DATE: ...)")
    if not question_lines:
        raise QuestionImportError("Question text missing (Q: ...)")

    letters = [letter for letter in _CHOICE_ORDER if letter in choices]
    if letters != _CHOICE_ORDER[: len(letters)]:
        raise QuestionImportError("Choices must be lettered consecutively starting at A.")
    if not MIN_CHOICES <= len(letters) <= MAX_CHOICES:
        raise QuestionImportError(
            f"Each question must define between {MIN_CHOICES} and {MAX_CHOICES} choices."
        )

    choice_list = [choices[letter].strip() for letter in letters]
    if any(not choice for choice in choice_list):
        raise QuestionImportError("Choice text cannot be empty.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuestionImportError("Question text cannot be empty.")

    return PollQuestion(
        id="",  # assigned by QuestionRepository on insert
        publish_date=publish_date,
        question_text=question_text,
        choices=choice_list,
        image_url=image_url,
    )
