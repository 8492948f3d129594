"""
Batch tasks: period generation for recurring works.

One item per active recurring work.  Each item runs the kernel period
generator for that work as of the run date; a work with nothing due is
reported as skipped.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from practice_batch.domain.types import BatchItemStatus
from practice_batch.tasks.base import BatchItemInput, BatchTaskResult
from practice_kernel.domain.clock import Clock, SystemClock
from practice_kernel.domain.settings import KernelSettings
from practice_kernel.exceptions import PracticeKernelError
from practice_kernel.services.period_generator import PeriodGenerator

PERIOD_GENERATION = "periods.generate_due"


class PeriodGenerationTask:
    """Create due-and-missing periods for every active recurring work."""

    def __init__(self, settings: KernelSettings, clock: Clock | None = None):
        self._settings = settings
        self._clock = clock or SystemClock()

    @property
    def task_type(self) -> str:
        return PERIOD_GENERATION

    @property
    def description(self) -> str:
        return "Generate due billing periods for recurring works"

    def _generator(self, session: Session) -> PeriodGenerator:
        return PeriodGenerator(session, self._clock, self._settings)

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        work_ids = self._generator(session).active_recurring_work_ids()
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(work_id),
                payload={"work_id": str(work_id)},
            )
            for i, work_id in enumerate(work_ids)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        try:
            result = self._generator(session).generate_for_work(
                UUID(item.payload["work_id"]),
                today=as_of.date(),
                actor_id=self._settings.system_actor_id,
            )
        except PracticeKernelError as exc:
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                error_code=exc.code,
                error_message=str(exc),
            )

        if result.created_count == 0:
            return BatchTaskResult(status=BatchItemStatus.SKIPPED)
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "work_id": item.payload["work_id"],
                "created": result.created_count,
                "due_dates": [d.isoformat() for d in result.created_due_dates],
                "capped": result.capped,
            },
        )
