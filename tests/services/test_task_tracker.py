"""
Tests for TaskTracker -- full recount and the completion edge.
"""

from uuid import uuid4

import pytest

from practice_kernel.domain.dtos import OwnerKind, OwnerRef
from practice_kernel.exceptions import (
    InvalidTaskStatusError,
    PeriodHasOpenTasksError,
    TaskNotFoundError,
    WorkIsRecurringError,
)
from practice_kernel.models.task import TaskStatus
from practice_kernel.models.work import OwnerStatus


def period_owner(period):
    return OwnerRef(OwnerKind.PERIOD, period.id)


class TestRecount:
    """Counters always equal the COUNT of tasks, never a running delta."""

    def test_partial_completion_is_in_progress(self, tracker, make_period, tasks_of):
        period = make_period()
        first = tasks_of(period)[0]

        change = tracker.set_status(first.id, TaskStatus.COMPLETED)

        assert (change.total_tasks, change.completed_tasks) == (3, 1)
        assert not change.all_tasks_completed
        assert not change.became_complete
        assert period.status == OwnerStatus.IN_PROGRESS.value
        assert period.completed_tasks == 1

    def test_last_task_fires_completion_edge_once(self, tracker, make_period, tasks_of, clock):
        period = make_period()
        changes = [
            tracker.set_status(task.id, TaskStatus.COMPLETED) for task in tasks_of(period)
        ]

        assert [c.became_complete for c in changes] == [False, False, True]
        assert period.all_tasks_completed is True
        assert period.status == OwnerStatus.COMPLETED.value
        assert period.completed_at == clock.now()

        # Completing an already-complete task again is not a new edge.
        again = tracker.set_status(tasks_of(period)[0].id, TaskStatus.COMPLETED)
        assert not again.became_complete

    def test_reopening_a_task_fires_incomplete_edge(self, tracker, make_period, tasks_of, complete_all):
        period = make_period()
        complete_all(period)

        change = tracker.set_status(tasks_of(period)[1].id, TaskStatus.PENDING)

        assert change.became_incomplete
        assert not change.all_tasks_completed
        assert period.status == OwnerStatus.IN_PROGRESS.value
        assert period.completed_at is None

    def test_in_progress_task_does_not_count_as_completed(self, tracker, make_period, tasks_of):
        period = make_period()

        change = tracker.set_status(tasks_of(period)[0].id, TaskStatus.IN_PROGRESS)

        assert change.completed_tasks == 0
        assert period.status == OwnerStatus.PENDING.value

    def test_task_completion_stamps(self, tracker, make_period, tasks_of, clock, test_actor_id):
        period = make_period()
        task = tasks_of(period)[0]

        tracker.set_status(task.id, TaskStatus.COMPLETED, test_actor_id)
        assert task.completed_at == clock.now()
        assert task.completed_by_id == test_actor_id

        tracker.set_status(task.id, "pending", test_actor_id)
        assert task.completed_at is None
        assert task.completed_by_id is None


class TestAddAndDelete:
    def test_adding_task_to_complete_period_reopens_it(self, tracker, make_period, complete_all, test_actor_id):
        period = make_period()
        complete_all(period)

        task, change = tracker.add_task(period_owner(period), "Late adjustment", test_actor_id)

        assert change.became_incomplete
        assert (change.total_tasks, change.completed_tasks) == (4, 3)
        assert task.due_date == period.due_date
        assert task.period_id == period.id

    def test_deleting_last_open_task_completes_owner(self, tracker, make_period, tasks_of):
        period = make_period()
        tasks = tasks_of(period)
        tracker.set_status(tasks[0].id, TaskStatus.COMPLETED)
        tracker.set_status(tasks[1].id, TaskStatus.COMPLETED)

        change = tracker.delete_task(tasks[2].id)

        assert change.became_complete
        assert (change.total_tasks, change.completed_tasks) == (2, 2)

    def test_deleting_every_task_leaves_owner_incomplete(self, tracker, make_period, tasks_of):
        period = make_period()
        change = None
        for task in tasks_of(period):
            change = tracker.delete_task(task.id)

        assert change.total_tasks == 0
        assert not change.all_tasks_completed
        assert not change.became_complete
        assert period.status == OwnerStatus.PENDING.value

    def test_work_owner_tasks(self, tracker, make_work, test_actor_id):
        work = make_work(is_recurring=False, title="Annual audit")
        owner = OwnerRef(OwnerKind.WORK, work.id)

        task, change = tracker.add_task(owner, "Fieldwork", test_actor_id)
        assert task.period_id is None
        assert change.total_tasks == 1

        done = tracker.set_status(task.id, TaskStatus.COMPLETED)
        assert done.became_complete
        assert done.owner == owner
        assert work.status == OwnerStatus.COMPLETED.value


class TestErrors:
    def test_unknown_task(self, tracker):
        with pytest.raises(TaskNotFoundError):
            tracker.set_status(uuid4(), TaskStatus.COMPLETED)

    def test_unknown_status(self, tracker, make_period, tasks_of):
        period = make_period()

        with pytest.raises(InvalidTaskStatusError) as exc_info:
            tracker.set_status(tasks_of(period)[0].id, "done")
        assert exc_info.value.status == "done"

    def test_recurring_work_is_not_an_owner(self, tracker, make_work, test_actor_id):
        work = make_work()
        work_owner = OwnerRef(OwnerKind.WORK, work.id)

        with pytest.raises(WorkIsRecurringError) as exc_info:
            tracker.complete_owner(work_owner, test_actor_id)
        assert exc_info.value.work_id == str(work.id)
        with pytest.raises(WorkIsRecurringError):
            tracker.add_task(work_owner, "Ad hoc review", test_actor_id)
        assert work.status == OwnerStatus.PENDING.value


class TestExplicitCompletion:
    """Zero-task owners complete only through complete_owner."""

    def test_zero_task_period(self, tracker, make_period, tasks_of, test_actor_id):
        period = make_period()
        for task in tasks_of(period):
            tracker.delete_task(task.id)

        change = tracker.complete_owner(period_owner(period), test_actor_id)

        assert change.became_complete
        assert change.total_tasks == 0
        assert not change.all_tasks_completed
        assert period.status == OwnerStatus.COMPLETED.value
        assert period.completed_by_id == test_actor_id

    def test_open_tasks_rejected(self, tracker, make_period, test_actor_id):
        period = make_period()

        with pytest.raises(PeriodHasOpenTasksError) as exc_info:
            tracker.complete_owner(period_owner(period), test_actor_id)
        assert (exc_info.value.total_tasks, exc_info.value.completed_tasks) == (3, 0)

    def test_repeat_is_not_a_new_edge(self, tracker, make_period, complete_all, test_actor_id):
        period = make_period()
        complete_all(period)

        change = tracker.complete_owner(period_owner(period), test_actor_id)

        assert not change.became_complete
