"""
Recurrence -- pure period arithmetic for recurring works.

Responsibility:
    Compute the due date, calendar bounds, and display name of successive
    billing periods from (pattern, anchor day, start date, previous due date).
    Nothing here touches the database or the clock; callers pass "today".

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Used by the period
    generator service and by property tests directly.

Invariants enforced:
    - The anchor day always resolves to a real date by clipping to the
      month length (anchor 31 in February -> 28th or 29th).
    - Each successive due date is strictly later than the previous one:
      advancing is done on the *month* of the previous due date, never on
      its day, so a clipped February due date does not drag later periods
      to the 28th.
    - Period bounds are the full calendar unit (month, quarter, half-year,
      year) that contains the due date.

Failure modes:
    - InvalidRecurrenceError for an unknown pattern or an anchor day
      outside 1..31.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum

from practice_kernel.exceptions import InvalidRecurrenceError


class RecurrencePattern(str, Enum):
    """Supported recurrence cadences."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half_yearly"
    YEARLY = "yearly"

    @property
    def months(self) -> int:
        """Length of one recurrence unit in months."""
        return _UNIT_MONTHS[self]

    @classmethod
    def parse(cls, value: str | RecurrencePattern | None) -> RecurrencePattern:
        """Accept enum members and the common spellings used in imports."""
        if isinstance(value, RecurrencePattern):
            return value
        if value is None:
            raise InvalidRecurrenceError(None, None, "pattern is required")
        normalized = value.strip().lower().replace("-", "_")
        if normalized == "halfyearly":
            normalized = "half_yearly"
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidRecurrenceError(value, None, "unknown pattern") from None


_UNIT_MONTHS = {
    RecurrencePattern.MONTHLY: 1,
    RecurrencePattern.QUARTERLY: 3,
    RecurrencePattern.HALF_YEARLY: 6,
    RecurrencePattern.YEARLY: 12,
}


@dataclass(frozen=True)
class PeriodWindow:
    """Computed bounds of one billing period."""

    name: str
    period_start: date
    period_end: date
    due_date: date


def validate_anchor_day(anchor_day: int, pattern: str | None = None) -> int:
    if not 1 <= anchor_day <= 31:
        raise InvalidRecurrenceError(pattern, anchor_day, "anchor day must be 1-31")
    return anchor_day


def clip_to_month(year: int, month: int, day: int) -> date:
    """Build a date, clipping the day to the last day of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    """Return (year, month) shifted by a number of months."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def first_due_date(
    pattern: RecurrencePattern, anchor_day: int, start_date: date
) -> date:
    """
    Due date of the first period.

    The anchor day is applied in the start date's own month.  If that lands
    before the start date, the first due date rolls forward one unit.
    """
    validate_anchor_day(anchor_day, pattern.value)
    candidate = clip_to_month(start_date.year, start_date.month, anchor_day)
    if candidate < start_date:
        year, month = add_months(start_date.year, start_date.month, pattern.months)
        candidate = clip_to_month(year, month, anchor_day)
    return candidate


def next_due_date(
    pattern: RecurrencePattern, anchor_day: int, previous_due: date
) -> date:
    """Advance exactly one unit from the previous due date's month."""
    validate_anchor_day(anchor_day, pattern.value)
    year, month = add_months(previous_due.year, previous_due.month, pattern.months)
    return clip_to_month(year, month, anchor_day)


def period_bounds(pattern: RecurrencePattern, due_date: date) -> tuple[date, date]:
    """Calendar unit (start, end) containing the due date."""
    unit = pattern.months
    start_month = ((due_date.month - 1) // unit) * unit + 1
    start = date(due_date.year, start_month, 1)
    end_year, end_month = add_months(due_date.year, start_month, unit - 1)
    end = clip_to_month(end_year, end_month, 31)
    return start, end


def period_name(pattern: RecurrencePattern, due_date: date) -> str:
    """Human label: 'October 2025', 'Q1 2025', 'H1 2025', '2025'."""
    if pattern is RecurrencePattern.MONTHLY:
        return f"{calendar.month_name[due_date.month]} {due_date.year}"
    if pattern is RecurrencePattern.QUARTERLY:
        return f"Q{(due_date.month - 1) // 3 + 1} {due_date.year}"
    if pattern is RecurrencePattern.HALF_YEARLY:
        return f"H{(due_date.month - 1) // 6 + 1} {due_date.year}"
    return str(due_date.year)


def window_for_due_date(pattern: RecurrencePattern, due_date: date) -> PeriodWindow:
    start, end = period_bounds(pattern, due_date)
    return PeriodWindow(
        name=period_name(pattern, due_date),
        period_start=start,
        period_end=end,
        due_date=due_date,
    )


def next_window(
    pattern: RecurrencePattern,
    anchor_day: int,
    start_date: date,
    previous_due: date | None,
) -> PeriodWindow:
    """
    Window of the period that follows ``previous_due``.

    With no previous period this is the first period of the work.
    """
    if previous_due is None:
        due = first_due_date(pattern, anchor_day, start_date)
    else:
        due = next_due_date(pattern, anchor_day, previous_due)
    return window_for_due_date(pattern, due)


def catch_up_horizon(pattern: RecurrencePattern, today: date) -> date:
    """
    Latest due date the generator may create on a given day.

    Periods are generated up to one unit ahead of today and no further.
    """
    year, month = add_months(today.year, today.month, pattern.months)
    return clip_to_month(year, month, today.day)


def pending_windows(
    pattern: RecurrencePattern,
    anchor_day: int,
    start_date: date,
    last_due: date | None,
    today: date,
    limit: int,
) -> list[PeriodWindow]:
    """
    Windows that should exist but do not yet, oldest first.

    The first period is always produced when there is none.  After that a
    new window is produced only while the latest due date has already
    elapsed (``last_due < today``) and the new due date stays within
    ``catch_up_horizon``.  ``limit`` bounds a single run.
    """
    windows: list[PeriodWindow] = []
    horizon = catch_up_horizon(pattern, today)

    if last_due is None:
        first = next_window(pattern, anchor_day, start_date, None)
        windows.append(first)
        last_due = first.due_date

    while len(windows) < limit and last_due < today:
        candidate = next_window(pattern, anchor_day, start_date, last_due)
        if candidate.due_date > horizon:
            break
        windows.append(candidate)
        last_due = candidate.due_date

    return windows
