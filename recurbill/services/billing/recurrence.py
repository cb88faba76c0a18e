"""Due-date arithmetic for plan recurrences.

Month-based periods clamp to the last day of the target month instead of
rolling over (Jan 31 + 1 month -> Feb 28/29, never Mar 3). A charge that was
clamped returns to its anchor day afterwards: with ``anchor_day=31`` the
sequence is Jan 31 -> Feb 29 -> Mar 31, not Mar 29.
"""
from __future__ import annotations

import calendar
from datetime import date, timedelta

from recurbill.models.models import Recurrence


def _coerce(recurrence: Recurrence | str) -> Recurrence:
    if isinstance(recurrence, Recurrence):
        return recurrence
    try:
        return Recurrence(str(recurrence).lower())
    except ValueError as e:
        raise ValueError(f"Invalid recurrence: {recurrence}") from e


def _last_day(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(start: date, months: int, day: int | None = None) -> date:
    """Shift ``start`` by whole months, clamping to the target month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    target_day = day or start.day
    return date(year, month, min(target_day, _last_day(year, month)))


def _target_day(current: date, anchor_day: int | None) -> int:
    """Day-of-month to aim for when advancing ``current``.

    The anchor only wins when ``current`` itself looks clamped: it sits on the
    last day of its month and the anchor is later than that.
    """
    if anchor_day and anchor_day > current.day and current.day == _last_day(current.year, current.month):
        return anchor_day
    return current.day


def next_due_date(current: date, recurrence: Recurrence | str, anchor_day: int | None = None) -> date:
    """Return the due date one recurrence period after ``current``.

    Args:
        current: Due date of the charge being advanced
        recurrence: Plan cadence
        anchor_day: Day-of-month the billing cycle started on
            (usually the client's billing start day)

    Raises:
        ValueError: If recurrence is not a known cadence
    """
    period = _coerce(recurrence)
    if period.days:
        return current + timedelta(days=period.days)
    return add_months(current, period.months, _target_day(current, anchor_day))


def add_periods(anchor: date, recurrence: Recurrence | str, count: int) -> date:
    """Jump ``count`` periods from ``anchor`` in one step.

    Equal to applying ``next_due_date`` ``count`` times with
    ``anchor_day=anchor.day``.
    """
    if count < 0:
        raise ValueError("count must be non-negative")
    period = _coerce(recurrence)
    if period.days:
        return anchor + timedelta(days=period.days * count)
    return add_months(anchor, period.months * count, anchor.day)
