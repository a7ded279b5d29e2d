"""Tests for the in-memory and SQLAlchemy table stores."""

from datetime import date

import pytest

from poll_app.core.errors import StoreConflictError, StoreUnavailableError
from poll_app.storage.table_store import (
    ANSWERS_TABLE,
    QUESTIONS_TABLE,
    STATS_TABLE,
    InMemoryTableStore,
    SqlTableStore,
    normalize_date,
)


def _sql_store(tmp_path):
    store = SqlTableStore.from_url(f"sqlite:///{tmp_path / 'poll.db'}", timeout_seconds=2)
    store.create_schema()
    return store


@pytest.fixture(params=["memory", "sql"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryTableStore()
    return _sql_store(tmp_path)


def _question_row(question_id, published_at):
    return {
        "id": question_id,
        "published_at": published_at,
        "question_text": f"Question {question_id}",
        "options": ["Yes", "No"],
        "image_url": None,
        "results_unlock_date": None,
    }


def test_select_filters_orders_and_limits(any_store):
    for index in range(1, 5):
        any_store.insert(QUESTIONS_TABLE, _question_row(f"q{index}", date(2025, 3, index)))

    rows = any_store.select(
        QUESTIONS_TABLE,
        {"published_at__lt": date(2025, 3, 4)},
        order_by="published_at",
        descending=True,
        limit=2,
    )

    assert [row["id"] for row in rows] == ["q3", "q2"]
    assert rows[0]["options"] == ["Yes", "No"]
    assert normalize_date(rows[0]["published_at"]) == date(2025, 3, 3)


def test_answers_get_generated_ids_and_null_filters(any_store):
    first = any_store.insert(
        ANSWERS_TABLE,
        {"id": None, "question_id": "q1", "user_id": "u1", "answer": "Yes", "prediction": "No", "correct": None},
    )
    any_store.insert(
        ANSWERS_TABLE,
        {"id": None, "question_id": "q1", "user_id": "u2", "answer": "No", "prediction": "No", "correct": True},
    )

    assert first["id"] is not None
    pending = any_store.select(ANSWERS_TABLE, {"question_id": "q1", "correct": None})
    assert [row["user_id"] for row in pending] == ["u1"]


def test_update_and_delete_report_counts(any_store):
    any_store.insert(STATS_TABLE, {"user_id": "u1", "points": 0, "wins": 0, "losses": 0, "accuracy": 0.0})

    assert any_store.update(STATS_TABLE, {"user_id": "u1"}, {"points": 10}) == 1
    assert any_store.select(STATS_TABLE, {"user_id": "u1"})[0]["points"] == 10
    assert any_store.update(STATS_TABLE, {"user_id": "nobody"}, {"points": 10}) == 0
    assert any_store.delete(STATS_TABLE, {"user_id": "u1"}) == 1
    assert any_store.select(STATS_TABLE) == []


def test_in_filter(any_store):
    for user in ("u1", "u2", "u3"):
        any_store.insert(
            ANSWERS_TABLE,
            {"id": None, "question_id": "q1", "user_id": user, "answer": "Yes", "prediction": "Yes", "correct": None},
        )

    rows = any_store.select(ANSWERS_TABLE, {"user_id__in": ["u1", "u3"]})
    assert sorted(row["user_id"] for row in rows) == ["u1", "u3"]


def test_unknown_operator_is_rejected():
    store = InMemoryTableStore()
    store.insert(QUESTIONS_TABLE, _question_row("q1", date(2025, 3, 1)))

    with pytest.raises(ValueError):
        store.select(QUESTIONS_TABLE, {"published_at__between": date(2025, 3, 1)})


def test_unavailable_memory_store_raises():
    store = InMemoryTableStore()
    store.available = False

    with pytest.raises(StoreUnavailableError):
        store.select(QUESTIONS_TABLE)


def test_sql_store_reports_unique_violations_as_conflicts(tmp_path):
    store = _sql_store(tmp_path)
    store.insert(QUESTIONS_TABLE, _question_row("q1", date(2025, 3, 1)))

    with pytest.raises(StoreConflictError):
        store.insert(QUESTIONS_TABLE, _question_row("q2", date(2025, 3, 1)))


def test_sql_store_unknown_table(tmp_path):
    with pytest.raises(ValueError):
        _sql_store(tmp_path).select("nope")


def test_normalize_date_accepts_strings():
    assert normalize_date("2025-03-01") == date(2025, 3, 1)
    assert normalize_date(None) is None
