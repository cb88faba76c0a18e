"""Operational clock.

All billing decisions are made on calendar days in ``BILLING_TIMEZONE``. Services
take a ``Clock`` so tests can pin "now" without patching ``datetime``.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from recurbill.core.config import settings


class Clock:
    """Wall clock in the operational timezone."""

    def __init__(self, timezone: str | None = None, cutoff_hour: int | None = None) -> None:
        self.tz = ZoneInfo(timezone or settings.BILLING_TIMEZONE)
        self.cutoff_hour = settings.BILLING_CUTOFF_HOUR if cutoff_hour is None else cutoff_hour

    def now(self) -> dt.datetime:
        return dt.datetime.now(self.tz)

    def today(self) -> dt.date:
        return self.now().date()

    def past_cutoff(self) -> bool:
        """True once the daily sweep hour has been reached today."""
        return self.now().hour >= self.cutoff_hour

    def day_bounds(self, day: dt.date) -> tuple[dt.datetime, dt.datetime]:
        """Midnight-to-midnight bounds of ``day`` as aware datetimes."""
        start = dt.datetime.combine(day, dt.time.min, tzinfo=self.tz)
        return start, start + dt.timedelta(days=1)


@dataclass
class FixedClock(Clock):
    """Clock frozen at a given instant (tests, replays of a past sweep)."""

    instant: dt.datetime
    cutoff: int | None = None

    def __post_init__(self) -> None:
        super().__init__(cutoff_hour=self.cutoff)
        if self.instant.tzinfo is None:
            self.instant = self.instant.replace(tzinfo=self.tz)
        else:
            self.instant = self.instant.astimezone(self.tz)

    def now(self) -> dt.datetime:
        return self.instant

    def advance(self, **delta: float) -> None:
        self.instant = self.instant + dt.timedelta(**delta)
