"""Tests for the plain-text question import and export format."""

from datetime import date

import pytest

from poll_app.core.question_exporter import serialize_questions
from poll_app.core.question_importer import (
    QuestionImportError,
    load_questions_from_file,
    parse_questions_text,
)

from conftest import day, make_question

SAMPLE = """\
DATE: 2025-03-10
Q: Are you a morning person
or a night owl?
A: Morning Person
B: Night Owl

---

DATE: 2025-03-11
Q: What's your favorite season?
A: Spring
B: Summer
C: Fall
D: Winter
IMAGE: https://example.com/seasons.png
"""


def test_parses_blocks_with_multiline_text():
    questions = parse_questions_text(SAMPLE)

    assert len(questions) == 2
    assert questions[0].publish_date == date(2025, 3, 10)
    assert questions[0].question_text == "Are you a morning person\nor a night owl?"
    assert questions[0].choices == ["Morning Person", "Night Owl"]
    assert questions[1].choices == ["Spring", "Summer", "Fall", "Winter"]
    assert questions[1].image_url == "https://example.com/seasons.png"


@pytest.mark.parametrize(
    "block,message",
    [
        ("Q: No date?\nA: Yes\nB: No", "DATE"),
        ("DATE: 2025-3-1\nQ: Bad date?\nA: Yes\nB: No", "YYYY-MM-DD"),
        ("DATE: 2025-03-01\nQ: One choice?\nA: Yes", "between"),
        ("DATE: 2025-03-01\nQ: Gap?\nA: Yes\nC: No", "consecutively"),
        ("DATE: 2025-03-01\nstray text\nQ: Where?\nA: Yes\nB: No", "outside"),
    ],
)
def test_malformed_blocks_are_rejected(block, message):
    with pytest.raises(QuestionImportError, match=message):
        parse_questions_text(block)


def test_exported_text_imports_back(tmp_path):
    questions = [
        make_question(publish_date=date(2025, 3, 10), text="First?\nReally?"),
        make_question(publish_date=date(2025, 3, 11), choices=["Yes", "No"], text="Second?"),
    ]
    target = tmp_path / "questions.txt"
    target.write_text(serialize_questions(questions), encoding="utf-8")

    imported = load_questions_from_file(target)

    assert [q.question_text for q in imported.questions] == ["First?\nReally?", "Second?"]
    assert imported.questions[1].choices == ["Yes", "No"]


def test_empty_file_fails(tmp_path):
    empty = tmp_path / "empty.txt"
    empty.write_text("\n\n", encoding="utf-8")

    with pytest.raises(QuestionImportError):
        load_questions_from_file(empty)


def test_manager_import_skips_taken_dates(manager, tmp_path):
    manager.add_question(make_question(publish_date=date(2025, 3, 10), text="Already here?"))
    seed = tmp_path / "seed.txt"
    seed.write_text(SAMPLE, encoding="utf-8")

    assert manager.import_questions(seed) == 1
    assert manager.import_questions(seed) == 0

    exported = parse_questions_text(manager.export_questions_text())
    assert [q.question_text for q in exported] == ["Already here?", "What's your favorite season?"]


def test_sample_questions_fill_an_empty_store_once(manager):
    assert manager.seed_sample_questions() == 5
    assert manager.seed_sample_questions() == 0

    today_question, status = manager.get_today_question()
    assert today_question.id == "q1"
    assert today_question.choices == ["Morning Person", "Night Owl"]
    assert status.can_answer is True
    past = manager.get_past_questions()
    assert [q.publish_date for q, _ in past] == [day(-1), day(-2), day(-3), day(-4)]
    assert past[-1][0].question_text == "Pizza or Burgers?"


def test_sample_questions_skip_a_store_with_questions(manager):
    manager.add_question(make_question(publish_date=day(3)))

    assert manager.seed_sample_questions() == 0
    assert manager.get_today_question() is None
