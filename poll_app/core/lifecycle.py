"""Question lifecycle: which actions a question allows on a given civil day.

Everything here is a pure function of (publish date, today). Callers must pass a
fresh ``today`` per request; a status computed yesterday is wrong after midnight.
"""

from __future__ import annotations

from datetime import date, timedelta

from poll_app.constants.poll_constants import (
    RESULTS_DELAY_DAYS,
    RESULTS_UNLOCK_SYNC_DAYS,
    VOTING_WINDOW_DAYS,
)
from poll_app.core.models import Phase, PollQuestion, QuestionStatus


def days_since(publish_date: date, today: date) -> int:
    """Whole civil days between publication and today. Negative for future questions."""
    return (today - publish_date).days


def classify(question: PollQuestion, today: date) -> QuestionStatus:
    return classify_date(question.publish_date, today)


def classify_date(publish_date: date, today: date) -> QuestionStatus:
    age = days_since(publish_date, today)
    can_answer = age < VOTING_WINDOW_DAYS
    can_view_results = age >= RESULTS_DELAY_DAYS
    if can_view_results:
        phase = Phase.RESULTS_AVAILABLE
    elif can_answer:
        phase = Phase.ANSWERABLE
    else:
        phase = Phase.LOCKED_PENDING
    return QuestionStatus(
        days_since_publication=age,
        can_answer=can_answer,
        can_view_results=can_view_results,
        days_until_results=max(0, RESULTS_DELAY_DAYS - age),
        phase=phase,
    )


def results_unlock_date(publish_date: date) -> date:
    """Unlock date stored alongside synced question rows.

    This 3-day horizon is not what gates results; ``classify`` uses
    ``RESULTS_DELAY_DAYS``, and the two values disagree.
    """
    return publish_date + timedelta(days=RESULTS_UNLOCK_SYNC_DAYS)
