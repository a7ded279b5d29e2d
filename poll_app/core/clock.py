"""Civil date resolution in one fixed timezone."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from poll_app.constants.poll_constants import CIVIL_TIMEZONE


class Clock(Protocol):
    def today(self) -> date: ...


class CivilClock:
    """Resolves "today" in a fixed timezone so server and clients agree on the day."""

    def __init__(self, timezone_name: str = CIVIL_TIMEZONE) -> None:
        self._zone = ZoneInfo(timezone_name)

    @property
    def timezone_name(self) -> str:
        return self._zone.key

    def today(self) -> date:
        return datetime.now(self._zone).date()


class FixedClock:
    """Clock pinned to a single day."""

    def __init__(self, day: date) -> None:
        self._day = day

    def today(self) -> date:
        return self._day

    def advance(self, days: int = 1) -> None:
        self._day = self._day + timedelta(days=days)


def date_offset(days: int, clock: Clock) -> date:
    return clock.today() + timedelta(days=days)


def parse_civil_date(value: str | date) -> date:
    """Parse a ``YYYY-MM-DD`` string. Any other shape raises ``ValueError``."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value.strip()) != 10:
        raise ValueError(f"Invalid civil date: {value!r}")
    return date.fromisoformat(value.strip())
