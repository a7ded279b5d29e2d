"""Starter questions scheduled on a fresh store: today and the four days before."""

from __future__ import annotations

from poll_app.core.clock import Clock, date_offset
from poll_app.core.models import PollQuestion

# (days from today, prompt, choices)
SAMPLE_QUESTIONS: list[tuple[int, str, list[str]]] = [
    (0, "Are you a morning person or a night owl?", ["Morning Person", "Night Owl"]),
    (-1, "Which do you prefer?", ["Coffee", "Tea", "Neither"]),
    (-2, "What's your favorite season?", ["Spring", "Summer", "Fall", "Winter"]),
    (-3, "Do you prefer cats or dogs?", ["Cats", "Dogs", "Both!", "Neither"]),
    (-4, "Pizza or Burgers?", ["Pizza", "Burgers"]),
]


def build_sample_questions(clock: Clock) -> list[PollQuestion]:
    return [
        PollQuestion(
            id="",
            publish_date=date_offset(offset, clock),
            question_text=text,
            choices=list(choices),
        )
        for offset, text, choices in SAMPLE_QUESTIONS
    ]
