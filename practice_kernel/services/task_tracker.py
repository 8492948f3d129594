"""
TaskTracker -- owner counters and the completion edge.

Responsibility:
    Keep each billing owner's (period or one-off work) task counters exact
    and derive its completion flag and status.  Every task insert, status
    change, or delete is followed by a full recount of the owner in the
    same transaction; the returned CompletionChange tells the caller
    whether the owner just became complete (the billing trigger) or just
    stopped being complete.

Architecture position:
    Kernel > Services.  Called by PracticeBillingService, which forwards
    a ``became_complete`` change to the BillingEngine.

Invariants enforced:
    - Full recount, never delta: (total, completed) come from COUNT queries.
    - all_tasks_completed == (total > 0 and completed == total).
    - status: completed if all complete, in_progress if any completed,
      pending otherwise.
    - completed_at / completed_by are stamped on the transition into
      completion and cleared on the transition out.
    - A work is an owner only when it is one-off.
    - A zero-task owner never becomes complete through tasks; it needs
      ``complete_owner`` (explicit completion).

Failure modes:
    - TaskNotFoundError, InvalidTaskStatusError, PeriodNotFoundError,
      WorkNotFoundError, PeriodHasOpenTasksError, WorkIsRecurringError
      (a recurring work is never a billing owner; its periods are).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from practice_kernel.domain.clock import Clock
from practice_kernel.domain.dtos import CompletionChange, OwnerKind, OwnerRef
from practice_kernel.exceptions import (
    InvalidTaskStatusError,
    PeriodHasOpenTasksError,
    PeriodNotFoundError,
    TaskNotFoundError,
    WorkIsRecurringError,
    WorkNotFoundError,
)
from practice_kernel.logging_config import get_logger
from practice_kernel.models.period import Period
from practice_kernel.models.task import Task, TaskStatus
from practice_kernel.models.work import OwnerStatus, Work
from practice_kernel.services.base import BaseService

logger = get_logger("services.task_tracker")


def owner_of(task: Task) -> OwnerRef:
    if task.period_id is not None:
        return OwnerRef(OwnerKind.PERIOD, task.period_id)
    return OwnerRef(OwnerKind.WORK, task.work_id)


def derive_status(total: int, completed: int) -> OwnerStatus:
    if total > 0 and completed == total:
        return OwnerStatus.COMPLETED
    if completed > 0:
        return OwnerStatus.IN_PROGRESS
    return OwnerStatus.PENDING


class TaskTracker(BaseService):
    """
    Task mutations and owner recounts.

    Contract:
        Every public mutator returns the owner's CompletionChange after a
        full recount.  Nothing here emits invoices.
    """

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    # ------------------------------------------------------------------
    # Owner access
    # ------------------------------------------------------------------

    def load_owner(self, owner: OwnerRef, lock: bool = True) -> Period | Work:
        model = Period if owner.kind == OwnerKind.PERIOD else Work
        stmt = select(model).where(model.id == owner.owner_id)
        if lock:
            stmt = stmt.with_for_update()
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            if owner.kind == OwnerKind.PERIOD:
                raise PeriodNotFoundError(str(owner.owner_id))
            raise WorkNotFoundError(str(owner.owner_id))
        if owner.kind == OwnerKind.WORK and row.is_recurring:
            raise WorkIsRecurringError(str(owner.owner_id))
        return row

    def get_task(self, task_id: UUID) -> Task:
        task = self.session.get(Task, task_id)
        if task is None:
            raise TaskNotFoundError(str(task_id))
        return task

    # ------------------------------------------------------------------
    # Recount
    # ------------------------------------------------------------------

    def count_tasks(self, owner: OwnerRef) -> tuple[int, int]:
        """Pure (total, completed) for an owner, straight from the tasks table."""
        stmt = select(
            func.count(Task.id),
            func.coalesce(
                func.sum(case((Task.status == TaskStatus.COMPLETED.value, 1), else_=0)),
                0,
            ),
        )
        if owner.kind == OwnerKind.PERIOD:
            stmt = stmt.where(Task.period_id == owner.owner_id)
        else:
            stmt = stmt.where(Task.work_id == owner.owner_id, Task.period_id.is_(None))
        total, completed = self.session.execute(stmt).one()
        return int(total), int(completed)

    def recount(self, owner: OwnerRef, actor_id: UUID | None = None) -> CompletionChange:
        """Recompute counters, flag, and status; report the completion edge."""
        self.session.flush()
        row = self.load_owner(owner)
        total, completed = self.count_tasks(owner)

        was_complete = row.status == OwnerStatus.COMPLETED.value
        all_done = total > 0 and completed == total

        row.total_tasks = total
        row.completed_tasks = completed
        row.all_tasks_completed = all_done

        became_complete = all_done and not was_complete
        became_incomplete = was_complete and not all_done

        row.status = derive_status(total, completed).value
        if became_complete:
            row.completed_at = self._clock.now()
            row.completed_by_id = actor_id
        elif became_incomplete:
            row.completed_at = None
            row.completed_by_id = None
        if actor_id is not None:
            row.updated_by_id = actor_id
        self.session.flush()

        change = CompletionChange(
            owner=owner,
            total_tasks=total,
            completed_tasks=completed,
            all_tasks_completed=all_done,
            became_complete=became_complete,
            became_incomplete=became_incomplete,
        )
        logger.info(
            "owner_recounted",
            extra={
                "owner_kind": owner.kind.value,
                "owner_id": str(owner.owner_id),
                "total_tasks": total,
                "completed_tasks": completed,
                "became_complete": became_complete,
                "became_incomplete": became_incomplete,
            },
        )
        return change

    # ------------------------------------------------------------------
    # Task mutations
    # ------------------------------------------------------------------

    def set_status(
        self, task_id: UUID, status: TaskStatus | str, actor_id: UUID | None = None
    ) -> CompletionChange:
        task = self.get_task(task_id)
        try:
            new_status = TaskStatus(status)
        except ValueError:
            raise InvalidTaskStatusError(str(task_id), str(status)) from None

        if task.status != new_status.value:
            task.status = new_status.value
            if new_status == TaskStatus.COMPLETED:
                task.completed_at = self._clock.now()
                task.completed_by_id = actor_id
            else:
                task.completed_at = None
                task.completed_by_id = None
            if actor_id is not None:
                task.updated_by_id = actor_id
            logger.info(
                "task_status_changed",
                extra={"task_id": str(task_id), "status": new_status.value},
            )

        return self.recount(owner_of(task), actor_id)

    def add_task(
        self,
        owner: OwnerRef,
        title: str,
        actor_id: UUID,
        *,
        priority: str = "medium",
        estimated_hours: Decimal | None = None,
        assignee_id: UUID | None = None,
        due_date: date | None = None,
        sort_order: int = 0,
    ) -> tuple[Task, CompletionChange]:
        row = self.load_owner(owner)
        work_id = row.work_id if owner.kind == OwnerKind.PERIOD else row.id
        if owner.kind == OwnerKind.PERIOD and due_date is None:
            due_date = row.due_date
        task = Task(
            work_id=work_id,
            period_id=owner.owner_id if owner.kind == OwnerKind.PERIOD else None,
            title=title,
            priority=priority,
            estimated_hours=estimated_hours,
            assignee_id=assignee_id,
            due_date=due_date,
            sort_order=sort_order,
            status=TaskStatus.PENDING.value,
            created_by_id=actor_id,
        )
        self.session.add(task)
        self.session.flush()
        logger.info(
            "task_added",
            extra={"task_id": str(task.id), "owner_id": str(owner.owner_id)},
        )
        return task, self.recount(owner, actor_id)

    def delete_task(self, task_id: UUID, actor_id: UUID | None = None) -> CompletionChange:
        task = self.get_task(task_id)
        owner = owner_of(task)
        self.session.delete(task)
        self.session.flush()
        logger.info("task_deleted", extra={"task_id": str(task_id)})
        return self.recount(owner, actor_id)

    # ------------------------------------------------------------------
    # Explicit completion
    # ------------------------------------------------------------------

    def complete_owner(self, owner: OwnerRef, actor_id: UUID) -> CompletionChange:
        """
        Mark an owner completed without going through tasks.

        Allowed for zero-task owners and owners whose tasks are all done.

        Raises:
            PeriodHasOpenTasksError: some tasks are still open.
        """
        row = self.load_owner(owner)
        total, completed = self.count_tasks(owner)
        if total > 0 and completed < total:
            raise PeriodHasOpenTasksError(str(owner.owner_id), total, completed)

        was_complete = row.status == OwnerStatus.COMPLETED.value
        row.total_tasks = total
        row.completed_tasks = completed
        row.all_tasks_completed = total > 0
        row.status = OwnerStatus.COMPLETED.value
        if not was_complete:
            row.completed_at = self._clock.now()
            row.completed_by_id = actor_id
        row.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "owner_completed_explicitly",
            extra={
                "owner_kind": owner.kind.value,
                "owner_id": str(owner.owner_id),
                "total_tasks": total,
            },
        )
        return CompletionChange(
            owner=owner,
            total_tasks=total,
            completed_tasks=completed,
            all_tasks_completed=total > 0,
            became_complete=not was_complete,
        )
