"""Shared fixtures for the poll server tests."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from poll_app.core.clock import FixedClock
from poll_app.core.models import PollQuestion
from poll_app.core.poll_manager import PollManager
from poll_app.storage.table_store import InMemoryTableStore

DAY0 = date(2025, 3, 10)


def make_question(
    question_id: str = "",
    publish_date: date = DAY0,
    choices: list[str] | None = None,
    text: str = "Coffee or tea?",
) -> PollQuestion:
    return PollQuestion(
        id=question_id,
        publish_date=publish_date,
        question_text=text,
        choices=list(choices or ["Coffee", "Tea", "Neither"]),
    )


def day(offset: int) -> date:
    return DAY0 + timedelta(days=offset)


@pytest.fixture
def store() -> InMemoryTableStore:
    return InMemoryTableStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(DAY0)


@pytest.fixture
def manager(store, clock) -> PollManager:
    return PollManager(store=store, clock=clock)
