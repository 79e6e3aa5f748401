"""Injectable clock — all "now"/"today" reads in the engine go through here.

Deadline and lock rules (10:00 cancellation cut-off, 18:00 edit window) are
evaluated in the organisation's local timezone, so the clock always returns
timezone-aware datetimes in ``settings.TIMEZONE``.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from timesheet.config import settings


class Clock:
    """System clock in the configured local timezone."""

    def __init__(self, tz_name: str | None = None) -> None:
        self.tz = ZoneInfo(tz_name or settings.TIMEZONE)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock frozen at a given instant (naive values are taken as local time)."""

    def __init__(self, at: datetime, tz_name: str | None = None) -> None:
        super().__init__(tz_name)
        self._at = at if at.tzinfo else at.replace(tzinfo=self.tz)

    def now(self) -> datetime:
        return self._at.astimezone(self.tz)

    def set(self, at: datetime) -> None:
        self._at = at if at.tzinfo else at.replace(tzinfo=self.tz)


_system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency: the process-wide clock (override in tests)."""
    return _system_clock
