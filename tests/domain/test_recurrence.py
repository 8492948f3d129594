"""
Tests for practice_kernel.domain.recurrence -- pure period arithmetic.

Covers first/next due dates with month-length clipping, period bounds and
names per pattern, the bounded catch-up window, and property tests for
strict ordering and the anchor-day invariant.
"""

import calendar
from datetime import date

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from practice_kernel.domain.recurrence import (
    RecurrencePattern,
    catch_up_horizon,
    first_due_date,
    next_due_date,
    next_window,
    pending_windows,
    period_bounds,
    period_name,
)
from practice_kernel.exceptions import InvalidRecurrenceError

MONTHLY = RecurrencePattern.MONTHLY
QUARTERLY = RecurrencePattern.QUARTERLY
HALF_YEARLY = RecurrencePattern.HALF_YEARLY
YEARLY = RecurrencePattern.YEARLY


class TestPatternParsing:
    """RecurrencePattern.parse accepts the common spellings."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("monthly", MONTHLY),
            ("Quarterly", QUARTERLY),
            ("half-yearly", HALF_YEARLY),
            ("halfyearly", HALF_YEARLY),
            ("half_yearly", HALF_YEARLY),
            (" yearly ", YEARLY),
        ],
    )
    def test_known_spellings(self, raw, expected):
        assert RecurrencePattern.parse(raw) is expected

    def test_unknown_pattern_rejected(self):
        with pytest.raises(InvalidRecurrenceError) as exc_info:
            RecurrencePattern.parse("fortnightly")
        assert exc_info.value.code == "INVALID_RECURRENCE"

    def test_missing_pattern_rejected(self):
        with pytest.raises(InvalidRecurrenceError):
            RecurrencePattern.parse(None)

    def test_unit_lengths(self):
        assert [p.months for p in (MONTHLY, QUARTERLY, HALF_YEARLY, YEARLY)] == [1, 3, 6, 12]


class TestFirstDueDate:
    """The first period anchors in the start date's own month."""

    def test_anchor_after_start_stays_in_month(self):
        assert first_due_date(MONTHLY, 10, date(2025, 10, 7)) == date(2025, 10, 10)

    def test_anchor_on_start_date(self):
        assert first_due_date(MONTHLY, 10, date(2025, 10, 10)) == date(2025, 10, 10)

    def test_anchor_before_start_rolls_one_unit(self):
        assert first_due_date(MONTHLY, 5, date(2025, 10, 7)) == date(2025, 11, 5)
        assert first_due_date(QUARTERLY, 5, date(2025, 10, 7)) == date(2026, 1, 5)

    def test_anchor_clipped_in_start_month(self):
        assert first_due_date(MONTHLY, 31, date(2025, 2, 1)) == date(2025, 2, 28)

    def test_invalid_anchor_rejected(self):
        with pytest.raises(InvalidRecurrenceError):
            first_due_date(MONTHLY, 0, date(2025, 1, 1))
        with pytest.raises(InvalidRecurrenceError):
            first_due_date(MONTHLY, 32, date(2025, 1, 1))


class TestNextDueDate:
    """Advancing one unit from the previous due date's month."""

    def test_anchor_31_clips_to_february(self):
        assert next_due_date(MONTHLY, 31, date(2025, 1, 31)) == date(2025, 2, 28)
        assert next_due_date(MONTHLY, 31, date(2024, 1, 31)) == date(2024, 2, 29)

    def test_clipped_february_does_not_drag_march(self):
        assert next_due_date(MONTHLY, 31, date(2025, 2, 28)) == date(2025, 3, 31)

    def test_year_rollover(self):
        assert next_due_date(MONTHLY, 15, date(2025, 12, 15)) == date(2026, 1, 15)
        assert next_due_date(QUARTERLY, 15, date(2025, 11, 15)) == date(2026, 2, 15)

    def test_half_yearly_and_yearly(self):
        assert next_due_date(HALF_YEARLY, 30, date(2025, 8, 30)) == date(2026, 2, 28)
        assert next_due_date(YEARLY, 29, date(2024, 2, 29)) == date(2025, 2, 28)


class TestBoundsAndNames:
    """Period bounds are the calendar unit containing the due date."""

    def test_monthly(self):
        assert period_bounds(MONTHLY, date(2025, 10, 10)) == (date(2025, 10, 1), date(2025, 10, 31))
        assert period_name(MONTHLY, date(2025, 10, 10)) == "October 2025"

    def test_quarterly(self):
        assert period_bounds(QUARTERLY, date(2025, 2, 10)) == (date(2025, 1, 1), date(2025, 3, 31))
        assert period_name(QUARTERLY, date(2025, 2, 10)) == "Q1 2025"
        assert period_name(QUARTERLY, date(2025, 11, 10)) == "Q4 2025"

    def test_half_yearly(self):
        assert period_bounds(HALF_YEARLY, date(2025, 8, 1)) == (date(2025, 7, 1), date(2025, 12, 31))
        assert period_name(HALF_YEARLY, date(2025, 3, 1)) == "H1 2025"
        assert period_name(HALF_YEARLY, date(2025, 8, 1)) == "H2 2025"

    def test_yearly(self):
        assert period_bounds(YEARLY, date(2025, 6, 30)) == (date(2025, 1, 1), date(2025, 12, 31))
        assert period_name(YEARLY, date(2025, 6, 30)) == "2025"

    def test_february_end_in_leap_year(self):
        assert period_bounds(MONTHLY, date(2024, 2, 10))[1] == date(2024, 2, 29)

    def test_next_window_without_previous_is_first_period(self):
        window = next_window(MONTHLY, 10, date(2025, 10, 7), None)
        assert window.name == "October 2025"
        assert window.due_date == date(2025, 10, 10)
        assert window.period_start == date(2025, 10, 1)
        assert window.period_end == date(2025, 10, 31)


class TestPendingWindows:
    """Bounded catch-up: never past today plus one unit."""

    def test_first_period_always_created(self):
        windows = pending_windows(MONTHLY, 10, date(2025, 10, 7), None, date(2025, 10, 7), 24)
        assert [w.due_date for w in windows] == [date(2025, 10, 10)]

    def test_elapsed_period_triggers_next(self):
        windows = pending_windows(MONTHLY, 10, date(2025, 10, 7), None, date(2025, 10, 13), 24)
        assert [w.due_date for w in windows] == [date(2025, 10, 10), date(2025, 11, 10)]

    def test_nothing_pending_while_latest_not_elapsed(self):
        windows = pending_windows(
            MONTHLY, 10, date(2025, 10, 7), date(2025, 11, 10), date(2025, 10, 20), 24
        )
        assert windows == []

    def test_catch_up_after_long_gap(self):
        windows = pending_windows(
            MONTHLY, 10, date(2025, 1, 1), date(2025, 1, 10), date(2025, 4, 15), 24
        )
        assert [w.due_date for w in windows] == [
            date(2025, 2, 10),
            date(2025, 3, 10),
            date(2025, 4, 10),
            date(2025, 5, 10),
        ]

    def test_limit_caps_a_single_run(self):
        windows = pending_windows(
            MONTHLY, 1, date(2020, 1, 1), date(2020, 1, 1), date(2025, 1, 2), 5
        )
        assert len(windows) == 5
        assert windows[-1].due_date == date(2020, 6, 1)

    def test_horizon_is_one_unit_ahead(self):
        assert catch_up_horizon(MONTHLY, date(2025, 1, 31)) == date(2025, 2, 28)
        assert catch_up_horizon(YEARLY, date(2025, 3, 1)) == date(2026, 3, 1)


# ---------------------------------------------------------------------------
# Property tests
# ---------------------------------------------------------------------------

patterns = st.sampled_from(list(RecurrencePattern))
anchors = st.integers(min_value=1, max_value=31)
start_dates = st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31))


class TestRecurrenceProperties:
    """Invariants that hold for every pattern, anchor, and start date."""

    @given(pattern=patterns, anchor=anchors, start=start_dates)
    @settings(max_examples=200)
    def test_successive_due_dates_strictly_increase(self, pattern, anchor, start):
        due = first_due_date(pattern, anchor, start)
        for _ in range(30):
            following = next_due_date(pattern, anchor, due)
            assert following > due
            due = following

    @given(pattern=patterns, anchor=anchors, start=start_dates)
    @settings(max_examples=200)
    def test_due_day_is_anchor_or_month_end(self, pattern, anchor, start):
        due = first_due_date(pattern, anchor, start)
        for _ in range(13):
            month_end = calendar.monthrange(due.year, due.month)[1]
            assert due.day == min(anchor, month_end)
            due = next_due_date(pattern, anchor, due)

    @given(pattern=patterns, anchor=anchors, start=start_dates)
    def test_first_due_date_not_before_start(self, pattern, anchor, start):
        assert first_due_date(pattern, anchor, start) >= start

    @given(pattern=patterns, anchor=anchors, start=start_dates)
    def test_due_date_inside_its_bounds(self, pattern, anchor, start):
        window = next_window(pattern, anchor, start, None)
        assert window.period_start <= window.due_date <= window.period_end
