"""Poll lifecycle and scoring constants shared across core and server layers."""

CIVIL_TIMEZONE: str = "America/New_York"

# A question accepts votes while it is younger than this many days.
VOTING_WINDOW_DAYS: int = 1
# Results become viewable once a question is this many days old.
RESULTS_DELAY_DAYS: int = 1
# Horizon written to `results_unlock_date` when a question row is saved. Not consulted
# by the lifecycle engine.
RESULTS_UNLOCK_SYNC_DAYS: int = 3

MIN_CHOICES: int = 2
MAX_CHOICES: int = 4
PAST_QUESTION_LIMIT: int = 5
POINTS_PER_CORRECT: int = 10

CLIENT_ID_COOKIE: str = "poll_client_id"
GUESS_DATA_COOKIE: str = "guess_data"
COOKIE_MAX_AGE_DAYS: int = 365
