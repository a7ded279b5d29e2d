"""Unit tests for the question lifecycle engine and civil clock."""

from datetime import date, timedelta

import pytest

from poll_app.core.clock import CivilClock, FixedClock, date_offset, parse_civil_date
from poll_app.core.lifecycle import classify, days_since, results_unlock_date
from poll_app.core.models import Phase

from conftest import DAY0, day, make_question


@pytest.mark.parametrize("age", range(-5, 11))
def test_can_answer_and_can_view_results_are_complementary(age):
    status = classify(make_question(publish_date=DAY0), day(age))

    assert status.days_since_publication == age
    assert status.can_answer == (age < 1)
    assert status.can_view_results == (not status.can_answer)
    assert status.days_until_results == max(0, 1 - age)


def test_publish_day_is_answerable():
    status = classify(make_question(), day(0))

    assert status.can_answer is True
    assert status.can_view_results is False
    assert status.days_until_results == 1
    assert status.phase is Phase.ANSWERABLE
    assert status.status == "active"


def test_day_after_publish_shows_results():
    status = classify(make_question(), day(1))

    assert status.can_answer is False
    assert status.can_view_results is True
    assert status.days_until_results == 0
    assert status.phase is Phase.RESULTS_AVAILABLE
    assert status.status == "locked"


def test_future_question_is_still_answerable():
    status = classify(make_question(), day(-1))

    assert status.days_since_publication == -1
    assert status.can_answer is True
    assert status.days_until_results == 2


def test_phase_never_regresses_as_days_pass():
    order = [Phase.ANSWERABLE, Phase.LOCKED_PENDING, Phase.RESULTS_AVAILABLE]
    question = make_question()
    phases = [classify(question, day(offset)).phase for offset in range(-3, 6)]

    ranks = [order.index(phase) for phase in phases]
    assert ranks == sorted(ranks)


def test_results_unlock_date_uses_three_day_horizon():
    assert results_unlock_date(DAY0) == DAY0 + timedelta(days=3)
    # The stored horizon does not gate results.
    assert classify(make_question(), day(1)).can_view_results is True


def test_days_since_counts_calendar_days():
    assert days_since(date(2024, 12, 31), date(2025, 1, 1)) == 1
    assert days_since(date(2024, 2, 28), date(2024, 3, 1)) == 2


def test_fixed_clock_advance_and_offset():
    clock = FixedClock(DAY0)
    assert date_offset(-2, clock) == day(-2)

    clock.advance()
    assert clock.today() == day(1)


def test_civil_clock_reports_its_zone():
    clock = CivilClock("America/New_York")

    assert clock.timezone_name == "America/New_York"
    assert isinstance(clock.today(), date)


def test_parse_civil_date_rejects_malformed_input():
    assert parse_civil_date("2025-03-10") == DAY0
    assert parse_civil_date(DAY0) == DAY0
    for bad in ("2025-3-10", "10/03/2025", "", "2025-13-01"):
        with pytest.raises(ValueError):
            parse_civil_date(bad)
