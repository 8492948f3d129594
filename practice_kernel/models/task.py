"""
Task ORM Model (``practice_kernel.models.task``).

A task belongs to a period (recurring work) or directly to a work
(one-off).  ``period_id`` null means the work itself is the owner.
Status changes go through the task tracker so owner counters stay exact.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from practice_kernel.db.base import TrackedBase, UUIDString


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Task(TrackedBase):
    """A unit of work counted toward its owner's completion."""

    __tablename__ = "tasks"

    __table_args__ = (
        Index("idx_tasks_period", "period_id"),
        Index("idx_tasks_work", "work_id"),
    )

    work_id: Mapped[UUID] = mapped_column(
        ForeignKey("works.id"), nullable=False
    )
    period_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("periods.id"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    estimated_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default=TaskStatus.PENDING.value)
    assignee_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Task {self.title} [{self.status}]>"
