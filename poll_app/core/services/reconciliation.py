"""Resolves pending majority predictions once a question's results unlock.

Reconciliation runs lazily when a voter looks at unlocked results. A record whose
``correct`` field is already set is left alone, which makes repeated calls no-ops.
The record is read, then written, then the statistics row is read and written,
with no lock around the sequence: two clients of the same user resolving at the
same instant can both credit the statistics.
"""

from __future__ import annotations

import logging
from datetime import date

from poll_app.core.models import AvailableResults, PollQuestion, ReconcileOutcome, ResultRow
from poll_app.core.services.results_aggregator import ResultsAggregator
from poll_app.core.services.stats_tracker import StatsTracker
from poll_app.core.services.vote_store import VoteBackend

logger = logging.getLogger(__name__)


def majority_answer(rows: list[ResultRow]) -> str | None:
    """Choice with the highest percentage.

    Ties go to the choice declared first. ``sorted`` is stable, so this is
    deterministic, but which of the tied choices "won" carries no meaning.
    """
    if not rows:
        return None
    return sorted(rows, key=lambda row: -row.percentage)[0].choice


class PredictionReconciler:
    """Fills in prediction correctness and folds it into user statistics."""

    def __init__(self, aggregator: ResultsAggregator, stats: StatsTracker) -> None:
        self._aggregator = aggregator
        self._stats = stats

    def reconcile(
        self,
        question: PollQuestion,
        voter_id: str,
        backend: VoteBackend,
        today: date,
        results: AvailableResults | None = None,
    ) -> ReconcileOutcome | None:
        """Resolve the voter's pending prediction, if any. Returns ``None`` when nothing changed."""
        record = backend.get(question.id, voter_id)
        if record is None or record.is_resolved:
            return None

        if results is None:
            computed = self._aggregator.compute_results(question, today)
            if not isinstance(computed, AvailableResults):
                return None
            results = computed

        majority = majority_answer(results.rows)
        if majority is None:
            return None
        was_correct = record.prediction == majority

        backend.set_correctness(question.id, voter_id, was_correct)
        if backend.tracks_stats:
            self._stats.record_outcome(voter_id, was_correct, today)

        logger.info(
            "Reconciled %s for %s: predicted %r, majority %r, correct=%s",
            question.id,
            voter_id,
            record.prediction,
            majority,
            was_correct,
        )
        return ReconcileOutcome(
            question_id=question.id,
            voter_id=voter_id,
            majority_answer=majority,
            was_correct=was_correct,
        )
