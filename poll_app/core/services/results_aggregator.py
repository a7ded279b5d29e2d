"""Tallies stored answers into per-choice percentages."""

from __future__ import annotations

from collections import Counter
from datetime import date

from poll_app.core.lifecycle import classify
from poll_app.core.models import AvailableResults, LockedResults, PollQuestion, ResultRow
from poll_app.core.services.vote_store import DurableVoteBackend


def tally(choices: list[str], answers: list[str]) -> AvailableResults:
    """Percentages in declared choice order.

    Each share is rounded on its own, so the total can land on 99 or 101.
    Answers naming a choice that is no longer listed still count toward the total.
    """
    counts = Counter(answers)
    total_votes = sum(counts.values())
    rows = [
        ResultRow(
            choice=choice,
            percentage=_round_half_up(counts.get(choice, 0) * 100, total_votes) if total_votes else 0,
        )
        for choice in choices
    ]
    return AvailableResults(rows=rows, total_votes=total_votes)


def _round_half_up(numerator: int, denominator: int) -> int:
    # Halves round up.
    return (2 * numerator + denominator) // (2 * denominator)


class ResultsAggregator:
    """Reads answers from the durable store once a question's results unlock."""

    def __init__(self, votes: DurableVoteBackend) -> None:
        self._votes = votes

    def compute_results(self, question: PollQuestion, today: date) -> LockedResults | AvailableResults:
        status = classify(question, today)
        if not status.can_view_results:
            return LockedResults(days_until_results=status.days_until_results)
        return tally(question.choices, self._votes.answers_for_question(question.id))
