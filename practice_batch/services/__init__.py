"""
practice_batch.services -- Runner, scheduler, and the standard wiring.
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from practice_batch.services.runner import BatchRunner
from practice_batch.services.scheduler import DailyScheduler
from practice_batch.tasks.base import default_task_registry
from practice_batch.tasks.period_tasks import PERIOD_GENERATION, PeriodGenerationTask
from practice_config import PracticeConfig, get_active_config
from practice_config.bridges import build_kernel_settings
from practice_kernel.domain.clock import Clock, SystemClock


def build_period_scheduler(
    session_factory: Callable[[], Session],
    config: PracticeConfig | None = None,
    clock: Clock | None = None,
) -> DailyScheduler:
    """Daily period-generation scheduler configured from ``config``."""
    config = config or get_active_config()
    clock = clock or SystemClock()
    task = PeriodGenerationTask(build_kernel_settings(config), clock)
    return DailyScheduler(
        session_factory=session_factory,
        task_registry=default_task_registry(task),
        task_type=PERIOD_GENERATION,
        clock=clock,
        tick_interval_seconds=config.scheduler.interval_seconds,
    )


__all__ = [
    "BatchRunner",
    "DailyScheduler",
    "build_period_scheduler",
]
