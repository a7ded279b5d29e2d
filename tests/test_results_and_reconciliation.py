"""Tests for result tallies, majority resolution and statistics updates."""

from dataclasses import replace
from datetime import date

from poll_app.core.models import AvailableResults, LockedResults, ResultRow, UserStats
from poll_app.core.services.reconciliation import PredictionReconciler, majority_answer
from poll_app.core.services.results_aggregator import ResultsAggregator, tally
from poll_app.core.services.stats_tracker import StatsTracker, apply_outcome
from poll_app.core.services.vote_store import CookieVoteBackend, DurableVoteBackend, submit_vote

from conftest import DAY0, day, make_question


def _percentages(results):
    return [row.percentage for row in results.rows]


def test_two_one_zero_split_rounds_each_share():
    results = tally(["Coffee", "Tea", "Neither"], ["Coffee", "Tea", "Coffee"])

    assert _percentages(results) == [67, 33, 0]
    assert [row.choice for row in results.rows] == ["Coffee", "Tea", "Neither"]
    assert results.total_votes == 3


def test_rounding_drift_is_not_corrected():
    results = tally(["A", "B", "C"], ["A", "B", "C"])

    assert _percentages(results) == [33, 33, 33]
    assert sum(_percentages(results)) == 99

    thirds = tally(["A", "B", "C"], ["A", "B", "C", "C", "C", "C"])
    assert _percentages(thirds) == [17, 17, 67]
    assert sum(_percentages(thirds)) == 101


def test_no_votes_gives_zero_everywhere():
    results = tally(["Yes", "No"], [])

    assert _percentages(results) == [0, 0]
    assert results.total_votes == 0


def test_half_shares_round_up():
    assert _percentages(tally(["Yes", "No"], ["Yes", "No"])) == [50, 50]
    assert _percentages(tally(["A", "B", "C", "D"], ["A"] + ["B"] * 7)) == [13, 88, 0, 0]


def test_aggregator_locks_until_day_after_publish(store):
    votes = DurableVoteBackend(store)
    aggregator = ResultsAggregator(votes)
    question = make_question("q1")
    submit_vote(question, "u1", "Tea", "Tea", votes, DAY0)

    locked = aggregator.compute_results(question, DAY0)
    assert isinstance(locked, LockedResults)
    assert locked.days_until_results == 1
    assert locked.locked is True

    available = aggregator.compute_results(question, day(1))
    assert isinstance(available, AvailableResults)
    assert _percentages(available) == [0, 100, 0]


def test_majority_tie_goes_to_first_declared_choice():
    rows = [ResultRow("Cats", 50), ResultRow("Dogs", 50)]

    assert {majority_answer(rows) for _ in range(10)} == {"Cats"}
    assert majority_answer([ResultRow("A", 20), ResultRow("B", 40), ResultRow("C", 40)]) == "B"
    assert majority_answer([]) is None


def _setup_reconciler(store):
    votes = DurableVoteBackend(store)
    stats = StatsTracker(store)
    reconciler = PredictionReconciler(ResultsAggregator(votes), stats)
    return votes, stats, reconciler


def test_reconcile_marks_correct_and_credits_stats(store):
    votes, stats, reconciler = _setup_reconciler(store)
    question = make_question("q1")
    submit_vote(question, "u1", "Coffee", "Coffee", votes, DAY0)
    submit_vote(question, "u2", "Coffee", "Tea", votes, DAY0)

    outcome = reconciler.reconcile(question, "u1", votes, day(1))

    assert outcome.majority_answer == "Coffee"
    assert outcome.was_correct is True
    assert votes.get("q1", "u1").correct is True
    credited = stats.get("u1")
    assert (credited.points, credited.wins, credited.losses) == (10, 1, 0)
    assert credited.accuracy == 100.0
    assert credited.last_answered_date == day(1)


def test_reconcile_twice_changes_nothing(store):
    votes, stats, reconciler = _setup_reconciler(store)
    question = make_question("q1")
    submit_vote(question, "u1", "Tea", "Coffee", votes, DAY0)
    submit_vote(question, "u2", "Tea", "Tea", votes, DAY0)

    first = reconciler.reconcile(question, "u1", votes, day(1))
    after_once = stats.get("u1")
    second = reconciler.reconcile(question, "u1", votes, day(1))

    assert first.was_correct is False
    assert second is None
    assert stats.get("u1") == after_once
    assert (after_once.wins, after_once.losses, after_once.points) == (0, 1, 0)


def test_reconcile_waits_for_results(store):
    votes, stats, reconciler = _setup_reconciler(store)
    question = make_question("q1")
    submit_vote(question, "u1", "Tea", "Tea", votes, DAY0)

    assert reconciler.reconcile(question, "u1", votes, DAY0) is None
    assert votes.get("q1", "u1").correct is None
    assert stats.get("u1") is None


def test_reconcile_without_record_is_a_no_op(store):
    votes, stats, reconciler = _setup_reconciler(store)

    assert reconciler.reconcile(make_question("q1"), "nobody", votes, day(1)) is None


def test_tie_resolution_matches_reconcile(store):
    votes, _, reconciler = _setup_reconciler(store)
    question = make_question("q1", choices=["Cats", "Dogs"])
    submit_vote(question, "u1", "Cats", "Dogs", votes, DAY0)
    submit_vote(question, "u2", "Dogs", "Cats", votes, DAY0)

    outcome = reconciler.reconcile(question, "u2", votes, day(1))

    assert outcome.majority_answer == "Cats"
    assert outcome.was_correct is True


def test_cookie_records_resolve_without_stats(store):
    votes, stats, reconciler = _setup_reconciler(store)
    question = make_question("q1")
    submit_vote(question, "u1", "Tea", "Tea", votes, DAY0)
    cookie = CookieVoteBackend("anon:abc", {"q1": {"answer": "Coffee", "prediction": "Tea", "correct": None}})

    outcome = reconciler.reconcile(question, "anon:abc", cookie, day(1))

    assert outcome.was_correct is True
    assert cookie.get("q1", "anon:abc").correct is True
    assert cookie.dirty is True
    assert stats.get("anon:abc") is None


def test_daily_streak_rules():
    start = UserStats(user_id="u1")

    first = apply_outcome(start, True, date(2025, 3, 10))
    assert first.daily_streak == 1

    same_day = apply_outcome(first, True, date(2025, 3, 10))
    assert same_day.daily_streak == 1

    next_day = apply_outcome(same_day, False, date(2025, 3, 11))
    assert next_day.daily_streak == 2

    after_gap = apply_outcome(next_day, True, date(2025, 3, 14))
    assert after_gap.daily_streak == 1
    assert after_gap.best_daily_streak == 2


def test_win_streak_resets_and_best_is_kept():
    stats = UserStats(user_id="u1")
    for is_correct in (True, True, True, False, True):
        stats = apply_outcome(stats, is_correct, date(2025, 3, 10))

    assert stats.current_win_streak == 1
    assert stats.best_win_streak == 3
    assert stats.wins == 4
    assert stats.losses == 1
    assert stats.points == 40
    assert stats.accuracy == 80.0


def test_best_values_never_decrease():
    stats = replace(UserStats(user_id="u1"), best_win_streak=9, best_daily_streak=7)

    updated = apply_outcome(stats, False, date(2025, 3, 10))

    assert updated.best_win_streak == 9
    assert updated.best_daily_streak == 7


def test_stats_tracker_ensure_creates_once(store):
    tracker = StatsTracker(store)

    created = tracker.ensure("u1")
    tracker.record_outcome("u1", True, DAY0)

    assert created.points == 0
    assert tracker.ensure("u1").points == 10
