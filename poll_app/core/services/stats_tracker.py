"""Service for cumulative prediction statistics of signed-in users."""

from __future__ import annotations

import logging
from dataclasses import asdict, replace
from datetime import date

from poll_app.constants.poll_constants import POINTS_PER_CORRECT
from poll_app.core.models import UserStats
from poll_app.storage.table_store import STATS_TABLE, Row, TableStore, normalize_date

logger = logging.getLogger(__name__)


def apply_outcome(stats: UserStats, is_correct: bool, today: date) -> UserStats:
    """Return ``stats`` with one resolved prediction folded in."""
    wins = stats.wins + (1 if is_correct else 0)
    losses = stats.losses + (0 if is_correct else 1)
    accuracy = wins / (wins + losses) * 100

    daily_streak = stats.daily_streak
    if stats.last_answered_date is None:
        daily_streak = 1
    else:
        gap = (today - stats.last_answered_date).days
        if gap == 1:
            daily_streak += 1
        elif gap != 0:
            daily_streak = 1

    current_win_streak = stats.current_win_streak + 1 if is_correct else 0

    return replace(
        stats,
        points=stats.points + (POINTS_PER_CORRECT if is_correct else 0),
        wins=wins,
        losses=losses,
        accuracy=accuracy,
        current_win_streak=current_win_streak,
        best_win_streak=max(stats.best_win_streak, current_win_streak),
        daily_streak=daily_streak,
        best_daily_streak=max(stats.best_daily_streak, daily_streak),
        last_answered_date=today,
    )


class StatsTracker:
    """Reads and writes ``user_stats`` rows. Updates are read-modify-write."""

    def __init__(self, store: TableStore) -> None:
        self._store = store

    def get(self, user_id: str) -> UserStats | None:
        rows = self._store.select(STATS_TABLE, {"user_id": user_id}, limit=1)
        return _row_to_stats(rows[0]) if rows else None

    def ensure(self, user_id: str) -> UserStats:
        """Return the user's stats, creating a zeroed row on first use."""
        existing = self.get(user_id)
        if existing is not None:
            return existing
        stats = UserStats(user_id=user_id)
        self._store.insert(STATS_TABLE, asdict(stats))
        logger.info("Initialized stats for %s", user_id)
        return stats

    def record_outcome(self, user_id: str, is_correct: bool, today: date) -> UserStats:
        current = self.get(user_id)
        updated = apply_outcome(current or UserStats(user_id=user_id), is_correct, today)
        values = asdict(updated)
        if current is None:
            self._store.insert(STATS_TABLE, values)
        else:
            values.pop("user_id")
            self._store.update(STATS_TABLE, {"user_id": user_id}, values)
        return updated


def _row_to_stats(row: Row) -> UserStats:
    return UserStats(
        user_id=str(row["user_id"]),
        points=row.get("points") or 0,
        wins=row.get("wins") or 0,
        losses=row.get("losses") or 0,
        accuracy=float(row.get("accuracy") or 0.0),
        current_win_streak=row.get("current_win_streak") or 0,
        best_win_streak=row.get("best_win_streak") or 0,
        daily_streak=row.get("daily_streak") or 0,
        best_daily_streak=row.get("best_daily_streak") or 0,
        last_answered_date=normalize_date(row.get("last_answered_date")),
    )
