"""
PeriodGenerator -- creates billing periods for recurring works.

Responsibility:
    Turn a recurring work's (pattern, anchor day, start date) plus the
    latest existing period into the periods that should exist today, and
    create any that are missing, each with the service's task and document
    templates copied onto it.

Architecture position:
    Kernel > Services.  Called synchronously at work creation (first
    period) and by the daily batch task (catch-up).  Date arithmetic lives
    in ``domain.recurrence``; this module only persists its output.

Invariants enforced:
    - Idempotent: a period for (work, due_date) is created at most once.
      The pre-insert existence check handles the common case; the unique
      constraint plus a SAVEPOINT handles concurrent generators, whose
      losing insert becomes a no-op returning the winner's row.
    - Bounded catch-up: never beyond one recurrence unit past today and
      never more than ``max_catch_up_periods`` per work per run.
    - Periods of a work are strictly ordered by due date.

Failure modes:
    - WorkNotFoundError / WorkNotRecurringError for bad input.
    - InvalidRecurrenceError for an unknown pattern or bad anchor day.

Audit relevance:
    ``period_created`` is logged for every new period with its due date
    and the number of tasks and documents copied onto it.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practice_kernel.domain.clock import Clock
from practice_kernel.domain.dtos import GenerationResult, OwnerKind, OwnerRef
from practice_kernel.domain.recurrence import (
    PeriodWindow,
    RecurrencePattern,
    next_window,
    pending_windows,
)
from practice_kernel.domain.settings import KernelSettings
from practice_kernel.exceptions import (
    PeriodNotFoundError,
    WorkNotFoundError,
    WorkNotRecurringError,
)
from practice_kernel.logging_config import get_logger
from practice_kernel.models.directory import DocumentTemplate, TaskTemplate
from practice_kernel.models.period import Period, PeriodDocument
from practice_kernel.models.task import Task, TaskStatus
from practice_kernel.models.work import Work
from practice_kernel.services.base import BaseService
from practice_kernel.services.task_tracker import TaskTracker

logger = get_logger("services.period_generator")


def anchor_day_of(work: Work) -> int:
    """Configured anchor day, or the start date's day when none is set."""
    return work.anchor_day if work.anchor_day is not None else work.start_date.day


class PeriodGenerator(BaseService):
    """
    Period creation for recurring works.

    Contract:
        ``generate_for_work`` may be called any number of times on any day;
        it only ever adds the periods that are due and missing.

    Non-goals:
        - Deleting or re-dating periods when a work's pattern changes.
    """

    def __init__(self, session: Session, clock: Clock, settings: KernelSettings):
        super().__init__(session)
        self._clock = clock
        self._settings = settings
        self._tracker = TaskTracker(session, clock)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_work(self, work_id: UUID, lock: bool = False) -> Work:
        stmt = select(Work).where(Work.id == work_id)
        if lock:
            stmt = stmt.with_for_update()
        work = self.session.execute(stmt).scalar_one_or_none()
        if work is None:
            raise WorkNotFoundError(str(work_id))
        return work

    def get_period(self, period_id: UUID) -> Period:
        period = self.session.get(Period, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def find_period(self, work_id: UUID, due_date: date) -> Period | None:
        return self.session.execute(
            select(Period).where(Period.work_id == work_id, Period.due_date == due_date)
        ).scalar_one_or_none()

    def last_due_date(self, work_id: UUID) -> date | None:
        return self.session.execute(
            select(func.max(Period.due_date)).where(Period.work_id == work_id)
        ).scalar_one_or_none()

    def next_period_window(self, work: Work, last_period: Period | None) -> PeriodWindow:
        """Bounds of the period following ``last_period`` (or the first one)."""
        self._require_recurring(work)
        return next_window(
            RecurrencePattern.parse(work.recurrence_pattern),
            anchor_day_of(work),
            work.start_date,
            last_period.due_date if last_period is not None else None,
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_period(
        self, work: Work, window: PeriodWindow, actor_id: UUID
    ) -> tuple[Period, bool]:
        """
        Create the period for ``window`` unless it already exists.

        Returns (period, created).  A concurrent insert of the same
        (work, due_date) is absorbed: the SAVEPOINT is rolled back and the
        winner's row returned with created=False.
        """
        existing = self.find_period(work.id, window.due_date)
        if existing is not None:
            return existing, False

        savepoint = self.session.begin_nested()
        try:
            period = Period(
                work_id=work.id,
                name=window.name,
                period_start=window.period_start,
                period_end=window.period_end,
                due_date=window.due_date,
                created_by_id=actor_id,
            )
            self.session.add(period)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info(
                "period_insert_race_absorbed",
                extra={"work_id": str(work.id), "due_date": window.due_date.isoformat()},
            )
            existing = self.find_period(work.id, window.due_date)
            if existing is None:
                raise
            return existing, False

        task_count = self._copy_task_templates(work, period, actor_id)
        document_count = self._copy_document_templates(work, period, actor_id)
        self._tracker.recount(OwnerRef(OwnerKind.PERIOD, period.id))

        logger.info(
            "period_created",
            extra={
                "work_id": str(work.id),
                "period_id": str(period.id),
                "period_name": period.name,
                "due_date": period.due_date.isoformat(),
                "tasks_copied": task_count,
                "documents_copied": document_count,
            },
        )
        return period, True

    def generate_for_work(
        self,
        work_id: UUID,
        today: date | None = None,
        actor_id: UUID | None = None,
    ) -> GenerationResult:
        """
        Create every due-and-missing period for one recurring work.

        Inactive works are skipped with an empty result.
        """
        today = today or self._clock.today()
        actor_id = actor_id or self._settings.system_actor_id
        work = self.get_work(work_id, lock=True)
        self._require_recurring(work)

        if not work.is_active:
            logger.info("period_generation_skipped_inactive", extra={"work_id": str(work.id)})
            return GenerationResult(work_id=work.id)

        limit = self._settings.max_catch_up_periods
        windows = pending_windows(
            RecurrencePattern.parse(work.recurrence_pattern),
            anchor_day_of(work),
            work.start_date,
            self.last_due_date(work.id),
            today,
            limit + 1,
        )
        # One window past the limit tells a real cap from an exact fit.
        capped = len(windows) > limit
        windows = windows[:limit]

        created_ids: list[UUID] = []
        created_dates: list[date] = []
        skipped = 0
        for window in windows:
            period, created = self.create_period(work, window, actor_id)
            if created:
                created_ids.append(period.id)
                created_dates.append(period.due_date)
            else:
                skipped += 1

        if capped:
            logger.warning(
                "period_catch_up_capped",
                extra={"work_id": str(work.id), "limit": limit},
            )

        return GenerationResult(
            work_id=work.id,
            created_period_ids=tuple(created_ids),
            created_due_dates=tuple(created_dates),
            skipped_existing=skipped,
            capped=capped,
        )

    def active_recurring_work_ids(self) -> list[UUID]:
        return list(
            self.session.execute(
                select(Work.id)
                .where(Work.is_recurring.is_(True), Work.is_active.is_(True))
                .order_by(Work.start_date, Work.id)
            ).scalars()
        )

    def generate_all_due(
        self, today: date | None = None, actor_id: UUID | None = None
    ) -> list[GenerationResult]:
        today = today or self._clock.today()
        results = [
            self.generate_for_work(work_id, today, actor_id)
            for work_id in self.active_recurring_work_ids()
        ]
        logger.info(
            "period_generation_completed",
            extra={
                "as_of": today.isoformat(),
                "works": len(results),
                "periods_created": sum(r.created_count for r in results),
            },
        )
        return results

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_period(self, period: Period) -> int:
        """
        Delete a period with its tasks and documents.

        The caller must already have removed the period's invoice.
        Returns the number of tasks deleted.
        """
        tasks = self.session.execute(
            select(Task).where(Task.period_id == period.id)
        ).scalars().all()
        for task in tasks:
            self.session.delete(task)
        self.session.flush()
        self.session.delete(period)
        self.session.flush()
        logger.info(
            "period_deleted",
            extra={"period_id": str(period.id), "tasks_removed": len(tasks)},
        )
        return len(tasks)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_recurring(self, work: Work) -> None:
        if not work.is_recurring:
            raise WorkNotRecurringError(str(work.id))

    def _copy_task_templates(self, work: Work, period: Period, actor_id: UUID) -> int:
        templates = self.session.execute(
            select(TaskTemplate)
            .where(TaskTemplate.service_id == work.service_id, TaskTemplate.is_active.is_(True))
            .order_by(TaskTemplate.sort_order)
        ).scalars().all()
        for template in templates:
            self.session.add(
                Task(
                    work_id=work.id,
                    period_id=period.id,
                    title=template.title,
                    priority=template.priority,
                    estimated_hours=template.estimated_hours,
                    sort_order=template.sort_order,
                    status=TaskStatus.PENDING.value,
                    due_date=period.due_date,
                    created_by_id=actor_id,
                )
            )
        self.session.flush()
        return len(templates)

    def _copy_document_templates(self, work: Work, period: Period, actor_id: UUID) -> int:
        templates = self.session.execute(
            select(DocumentTemplate)
            .where(DocumentTemplate.service_id == work.service_id)
            .order_by(DocumentTemplate.sort_order)
        ).scalars().all()
        for template in templates:
            self.session.add(
                PeriodDocument(
                    period_id=period.id,
                    name=template.name,
                    is_required=template.is_required,
                    is_collected=False,
                    created_by_id=actor_id,
                )
            )
        self.session.flush()
        return len(templates)
