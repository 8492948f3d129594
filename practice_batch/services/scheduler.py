"""
DailyScheduler -- In-process polling scheduler for daily batch runs.

Contract:
    Polls on a configurable interval and, the first time it polls on a new
    calendar day, runs the configured task through ``BatchRunner`` in a
    fresh session, committing on success.

Architecture: practice_batch/services.

Invariants enforced:
    - All dates from the injected Clock.
    - At most one successful run per calendar day.  A failed tick is
      rolled back and retried on the next poll.
    - Graceful shutdown: the stop signal is passed to the runner, which
      checks it between items.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Callable

from sqlalchemy.orm import Session

from practice_batch.domain.types import BatchRunResult
from practice_batch.services.runner import BatchRunner
from practice_batch.tasks.base import TaskRegistry
from practice_kernel.domain.clock import Clock, SystemClock
from practice_kernel.logging_config import get_logger

logger = get_logger("batch.scheduler")


class DailyScheduler:
    """Runs one batch task once per calendar day.

    Contract:
        - ``tick()`` runs the task if it has not run today (public for
          testing).
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler; concurrent schedulers are safe only
          because the period generator is idempotent.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        task_registry: TaskRegistry,
        task_type: str,
        clock: Clock | None = None,
        tick_interval_seconds: float = 3600.0,
    ):
        self._session_factory = session_factory
        self._task_registry = task_registry
        self._task_type = task_type
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_run_date: date | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def last_run_date(self) -> date | None:
        return self._last_run_date

    def tick(self) -> BatchRunResult | None:
        """Run the task if it is due today.

        Returns the run result, or None if nothing ran (already ran today,
        or the run failed).
        """
        today = self._clock.today()
        if self._last_run_date == today:
            return None

        session = self._session_factory()
        try:
            runner = BatchRunner(
                session, self._task_registry, self._clock, self._stop_event
            )
            result = runner.run(self._task_type)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("scheduler_tick_failed", extra={"task_type": self._task_type})
            return None
        finally:
            session.close()

        self._last_run_date = today
        logger.info(
            "scheduler_run_recorded",
            extra={
                "task_type": self._task_type,
                "run_date": today.isoformat(),
                "status": result.status.value,
            },
        )
        return result

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="period-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the background thread to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._tick_interval)
