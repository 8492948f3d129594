"""
Tests for PeriodGenerator.

Covers first-period creation, bounded catch-up, idempotency (including the
absorbed concurrent-insert race), template copying, and input errors.
"""

from dataclasses import replace
from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select

from practice_kernel.exceptions import WorkNotFoundError, WorkNotRecurringError
from practice_kernel.models.period import Period, PeriodDocument
from practice_kernel.models.task import TaskStatus
from practice_kernel.services.period_generator import PeriodGenerator, anchor_day_of


def _periods(session, work_id):
    return session.execute(
        select(Period).where(Period.work_id == work_id).order_by(Period.due_date)
    ).scalars().all()


class TestGenerateForWork:
    """Scenario: monthly on the 10th, started 7 Oct, generator runs 13 Oct."""

    def test_first_and_next_period_created(self, session, generator, make_work, test_actor_id):
        work = make_work()

        result = generator.generate_for_work(
            work.id, today=date(2025, 10, 13), actor_id=test_actor_id
        )

        assert result.created_due_dates == (date(2025, 10, 10), date(2025, 11, 10))
        assert not result.capped
        periods = _periods(session, work.id)
        assert [p.name for p in periods] == ["October 2025", "November 2025"]
        assert periods[0].period_start == date(2025, 10, 1)
        assert periods[0].period_end == date(2025, 10, 31)

    def test_only_first_period_before_due_date_elapses(self, generator, make_work):
        work = make_work()

        result = generator.generate_for_work(work.id, today=date(2025, 10, 7))

        assert result.created_due_dates == (date(2025, 10, 10),)

    def test_rerun_same_day_creates_nothing(self, session, generator, make_work):
        work = make_work()
        generator.generate_for_work(work.id, today=date(2025, 10, 13))

        again = generator.generate_for_work(work.id, today=date(2025, 10, 13))

        assert again.created_count == 0
        assert len(_periods(session, work.id)) == 2

    def test_next_run_after_latest_due_date(self, generator, make_work):
        work = make_work()
        generator.generate_for_work(work.id, today=date(2025, 10, 13))

        assert generator.generate_for_work(work.id, today=date(2025, 11, 10)).created_count == 0
        later = generator.generate_for_work(work.id, today=date(2025, 11, 11))

        assert later.created_due_dates == (date(2025, 12, 10),)

    def test_due_dates_strictly_increasing(self, session, generator, make_work):
        work = make_work(anchor_day=31, start_date=date(2025, 1, 1))

        generator.generate_for_work(work.id, today=date(2025, 6, 1))

        due_dates = [p.due_date for p in _periods(session, work.id)]
        assert due_dates == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 31),
            date(2025, 4, 30),
            date(2025, 5, 31),
            date(2025, 6, 30),
        ]

    def test_quarterly_names(self, session, generator, make_work):
        work = make_work(recurrence_pattern="quarterly", anchor_day=15, start_date=date(2025, 1, 1))

        generator.generate_for_work(work.id, today=date(2025, 4, 16))

        assert [p.name for p in _periods(session, work.id)] == ["Q1 2025", "Q2 2025", "Q3 2025"]

    def test_catch_up_is_capped(self, session, clock, settings, make_work, captured_logs):
        generator = PeriodGenerator(session, clock, replace(settings, max_catch_up_periods=3))
        work = make_work(anchor_day=1, start_date=date(2024, 1, 1))

        result = generator.generate_for_work(work.id, today=date(2025, 10, 13))

        assert result.created_count == 3
        assert result.capped
        assert any(r["message"] == "period_catch_up_capped" for r in captured_logs())

        # Next run continues where the cap stopped.
        follow_up = generator.generate_for_work(work.id, today=date(2025, 10, 13))
        assert follow_up.created_due_dates[0] == date(2024, 4, 1)

    def test_exact_fit_at_limit_is_not_capped(self, generator, make_work, captured_logs):
        work = make_work(anchor_day=1, start_date=date(2024, 1, 1))

        result = generator.generate_for_work(work.id, today=date(2025, 11, 2))

        assert result.created_count == 24
        assert result.created_due_dates[-1] == date(2025, 12, 1)
        assert not result.capped
        assert not any(r["message"] == "period_catch_up_capped" for r in captured_logs())
        assert generator.generate_for_work(work.id, today=date(2025, 11, 2)).created_count == 0

    def test_inactive_work_skipped(self, generator, make_work):
        work = make_work()
        work.is_active = False

        result = generator.generate_for_work(work.id, today=date(2025, 10, 13))

        assert result.created_count == 0

    def test_non_recurring_work_rejected(self, generator, make_work):
        work = make_work(is_recurring=False)

        with pytest.raises(WorkNotRecurringError) as exc_info:
            generator.generate_for_work(work.id, today=date(2025, 10, 13))
        assert exc_info.value.code == "WORK_NOT_RECURRING"

    def test_unknown_work_rejected(self, generator):
        with pytest.raises(WorkNotFoundError):
            generator.generate_for_work(uuid4(), today=date(2025, 10, 13))

    def test_missing_anchor_defaults_to_start_day(self, generator, make_work):
        work = make_work(anchor_day=None)
        assert anchor_day_of(work) == 7

        result = generator.generate_for_work(work.id, today=date(2025, 10, 7))

        assert result.created_due_dates == (date(2025, 10, 7),)


class TestTemplates:
    """New periods receive the service's task and document templates."""

    def test_tasks_copied_pending_with_period_due_date(self, make_period, tasks_of):
        period = make_period()

        tasks = tasks_of(period)

        assert [t.title for t in tasks] == ["Collect statements", "Reconcile bank", "Review"]
        assert all(t.status == TaskStatus.PENDING.value for t in tasks)
        assert all(t.due_date == period.due_date for t in tasks)
        assert all(t.work_id == period.work_id for t in tasks)

    def test_counters_initialised(self, make_period):
        period = make_period()

        assert period.total_tasks == 3
        assert period.completed_tasks == 0
        assert period.all_tasks_completed is False
        assert period.status == "pending"
        assert period.is_billed is False

    def test_documents_copied_uncollected(self, session, make_period):
        period = make_period()

        documents = session.execute(
            select(PeriodDocument).where(PeriodDocument.period_id == period.id)
        ).scalars().all()

        assert [(d.name, d.is_required, d.is_collected) for d in documents] == [
            ("Bank statement", True, False)
        ]

    def test_inactive_template_not_copied(self, session, service, make_period, tasks_of):
        template = service.task_templates[0]
        template.is_active = False
        session.flush()

        period = make_period()

        assert len(tasks_of(period)) == 2


class TestCreatePeriod:
    """create_period is idempotent per (work, due_date)."""

    def test_existing_period_returned(self, generator, make_work, test_actor_id):
        work = make_work()
        window = generator.next_period_window(work, None)
        first, created = generator.create_period(work, window, test_actor_id)

        second, created_again = generator.create_period(work, window, test_actor_id)

        assert created is True
        assert created_again is False
        assert second.id == first.id

    def test_concurrent_insert_absorbed(
        self, session, generator, make_work, monkeypatch, captured_logs, test_actor_id
    ):
        work = make_work()
        window = generator.next_period_window(work, None)
        winner, _ = generator.create_period(work, window, test_actor_id)

        # The losing generator's existence check ran before the winner flushed.
        real_find = generator.find_period
        calls = []

        def stale_then_real(work_id, due_date):
            calls.append(due_date)
            return None if len(calls) == 1 else real_find(work_id, due_date)

        monkeypatch.setattr(generator, "find_period", stale_then_real)

        period, created = generator.create_period(work, window, test_actor_id)

        assert created is False
        assert period.id == winner.id
        assert len(_periods(session, work.id)) == 1
        assert any(r["message"] == "period_insert_race_absorbed" for r in captured_logs())


class TestGenerateAllDue:
    def test_only_active_recurring_works(self, generator, make_work):
        monthly = make_work()
        one_off = make_work(is_recurring=False, title="Audit")
        paused = make_work(title="Paused")
        paused.is_active = False

        results = generator.generate_all_due(today=date(2025, 10, 13))

        assert [r.work_id for r in results] == [monthly.id]
        assert results[0].created_count == 2
        assert one_off.id not in generator.active_recurring_work_ids()


class TestRemovePeriod:
    def test_tasks_and_documents_deleted(self, session, generator, make_period):
        period = make_period()
        period_id = period.id

        removed = generator.remove_period(period)

        assert removed == 3
        assert session.get(Period, period_id) is None
        assert session.execute(
            select(PeriodDocument).where(PeriodDocument.period_id == period_id)
        ).first() is None
