"""
BatchRunner -- SAVEPOINT-per-item batch execution.

Contract:
    Resolves a task from the registry, prepares its items, and executes
    each item inside its own SAVEPOINT.  A failing item (returned FAILED or
    raised) rolls back its SAVEPOINT only; the rest of the run continues.

Architecture: practice_batch/services.  Imports from practice_batch.domain,
    practice_batch.tasks, and the kernel clock and logging.

Invariants enforced:
    - SAVEPOINT isolation per item.
    - All timestamps from the injected Clock.
    - Does NOT call ``session.commit()``; the caller (scheduler or host)
      owns the transaction boundary.
"""

from __future__ import annotations

import threading
import time
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from practice_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
)
from practice_batch.tasks.base import TaskRegistry
from practice_kernel.domain.clock import Clock, SystemClock
from practice_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.runner")


class BatchRunner:
    """Batch execution engine with SAVEPOINT-per-item isolation.

    Non-goals:
        - No persisted job history or retries; a re-run is simply another
          run, and tasks are idempotent.
    """

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry,
        clock: Clock | None = None,
        stop_event: threading.Event | None = None,
    ):
        self._session = session
        self._task_registry = task_registry
        self._clock = clock or SystemClock()
        self._stop_event = stop_event

    def run(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
    ) -> BatchRunResult:
        """Run ``task_type`` over all of its items.

        Raises:
            KeyError: task_type is not registered.
        """
        task = self._task_registry.get(task_type)
        parameters = parameters or {}
        correlation_id = str(uuid4())
        start_time = time.monotonic()
        started_at = self._clock.now()

        with LogContext.bind(correlation_id=correlation_id):
            items = task.prepare_items(
                parameters=parameters, session=self._session, as_of=started_at
            )
            logger.info(
                "batch_run_started",
                extra={"task_type": task_type, "total_items": len(items)},
            )

            succeeded = 0
            failed = 0
            skipped = 0
            item_results: list[BatchItemResult] = []

            for batch_item in items:
                if self._stop_event is not None and self._stop_event.is_set():
                    logger.info("batch_run_interrupted", extra={"task_type": task_type})
                    break

                item_start = time.monotonic()
                savepoint = self._session.begin_nested()
                try:
                    result = task.execute_item(
                        item=batch_item,
                        parameters=parameters,
                        session=self._session,
                        as_of=started_at,
                    )
                    if result.status == BatchItemStatus.SUCCEEDED:
                        savepoint.commit()
                        succeeded += 1
                    elif result.status == BatchItemStatus.SKIPPED:
                        savepoint.rollback()
                        skipped += 1
                    else:
                        savepoint.rollback()
                        failed += 1
                        logger.warning(
                            "batch_item_failed",
                            extra={
                                "item_key": batch_item.item_key,
                                "error_code": result.error_code,
                            },
                        )
                    item_result = BatchItemResult(
                        item_index=batch_item.item_index,
                        item_key=batch_item.item_key,
                        status=result.status,
                        error_code=result.error_code,
                        error_message=result.error_message,
                        result_data=result.result_data,
                        duration_ms=int((time.monotonic() - item_start) * 1000),
                    )
                except Exception as exc:
                    savepoint.rollback()
                    failed += 1
                    logger.exception(
                        "batch_item_exception",
                        extra={"item_key": batch_item.item_key},
                    )
                    item_result = BatchItemResult(
                        item_index=batch_item.item_index,
                        item_key=batch_item.item_key,
                        status=BatchItemStatus.FAILED,
                        error_code="UNHANDLED_EXCEPTION",
                        error_message=str(exc),
                        duration_ms=int((time.monotonic() - item_start) * 1000),
                    )

                item_results.append(item_result)

            self._session.flush()

            if failed == 0:
                status = BatchRunStatus.COMPLETED
            elif succeeded == 0 and skipped == 0:
                status = BatchRunStatus.FAILED
            else:
                status = BatchRunStatus.PARTIALLY_COMPLETED

            duration_ms = int((time.monotonic() - start_time) * 1000)
            logger.info(
                "batch_run_completed",
                extra={
                    "task_type": task_type,
                    "status": status.value,
                    "succeeded": succeeded,
                    "failed": failed,
                    "skipped": skipped,
                    "duration_ms": duration_ms,
                },
            )

        return BatchRunResult(
            task_type=task_type,
            status=status,
            total_items=len(items),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            item_results=tuple(item_results),
            started_at=started_at,
            completed_at=self._clock.now(),
            duration_ms=duration_ms,
            correlation_id=correlation_id,
        )
