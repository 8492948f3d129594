"""
Module: practice_kernel.models.period
Responsibility: ORM persistence for billing periods of recurring works and
    the per-period document checklist.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - Exactly one Period per (work_id, due_date) (uq_periods_work_due).  The
      generator checks first; this constraint is the backstop for
      concurrent generators.
    - completed_tasks <= total_tasks (ck_periods_task_counts).
    - status is stored as pending / in_progress / completed.  "overdue" is
      never stored; selectors derive it from due_date and today.

Failure modes:
    - IntegrityError on a duplicate (work_id, due_date), which the period
      generator converts into a no-op.

Audit relevance:
    is_billed + invoice_id are the single source of truth for "this period
    has been invoiced".  completed_at / completed_by_id record who closed
    the period's work.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice_kernel.db.base import TrackedBase, UUIDString
from practice_kernel.models.work import OwnerStatus

if TYPE_CHECKING:
    from practice_kernel.models.work import Work


class Period(TrackedBase):
    """
    One billing interval of a recurring work.

    Contract:
        Created only by the period generator.  Counter columns are written
        only by the task tracker; billing columns only by the billing engine.
    """

    __tablename__ = "periods"

    __table_args__ = (
        UniqueConstraint("work_id", "due_date", name="uq_periods_work_due"),
        CheckConstraint(
            "completed_tasks <= total_tasks",
            name="ck_periods_task_counts",
        ),
        Index("idx_periods_due_date", "due_date"),
        Index("idx_periods_invoice", "invoice_id"),
    )

    work_id: Mapped[UUID] = mapped_column(
        ForeignKey("works.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    period_start: Mapped[date] = mapped_column(nullable=False)
    period_end: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=OwnerStatus.PENDING.value
    )
    total_tasks: Mapped[int] = mapped_column(Integer, default=0)
    completed_tasks: Mapped[int] = mapped_column(Integer, default=0)
    all_tasks_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    billing_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_billed: Mapped[bool] = mapped_column(Boolean, default=False)
    invoice_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    billing_block_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    work: Mapped[Work] = relationship("Work", back_populates="periods")
    documents: Mapped[list[PeriodDocument]] = relationship(
        "PeriodDocument",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Period {self.name} due {self.due_date}>"


class PeriodDocument(TrackedBase):
    """Document checklist entry for one period, copied from the service."""

    __tablename__ = "period_documents"

    __table_args__ = (
        Index("idx_period_documents_period", "period_id"),
    )

    period_id: Mapped[UUID] = mapped_column(
        ForeignKey("periods.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    is_collected: Mapped[bool] = mapped_column(Boolean, default=False)

    period: Mapped[Period] = relationship("Period", back_populates="documents")
