"""
Module: practice_kernel.models.work
Responsibility: ORM persistence for works -- the billable engagement
    definitions that drive period generation and, for one-off engagements,
    carry the billing-owner state themselves.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - recurrence_pattern is non-null whenever is_recurring (ck_works_pattern).
    - anchor_day in 1..31 when set (ck_works_anchor_day).
    - Owner counters: completed_tasks <= total_tasks (ck_works_task_counts).
    - Works are never deleted while periods reference them; deactivate via
      is_active instead.

Failure modes:
    - IntegrityError on a recurring work without a pattern.

Audit relevance:
    is_billed and invoice_id on a non-recurring work are the authoritative
    record of whether it has produced its invoice.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from practice_kernel.models.directory import Customer, Service
    from practice_kernel.models.period import Period


class OwnerStatus(str, Enum):
    """Progress status shared by periods and non-recurring works."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Work(TrackedBase):
    """
    A recurring or one-off engagement for one customer on one service.

    Contract:
        Recurring works own a list of Periods, each of which is a billing
        owner.  Non-recurring works are themselves the billing owner and
        use the owner columns below.

    Guarantees:
        - start_date anchors the first period.
        - billing_amount is the fallback price for every period.
        - auto_bill gates automatic invoice emission.
    """

    __tablename__ = "works"

    __table_args__ = (
        CheckConstraint(
            "NOT is_recurring OR recurrence_pattern IS NOT NULL",
            name="ck_works_pattern",
        ),
        CheckConstraint(
            "anchor_day IS NULL OR (anchor_day >= 1 AND anchor_day <= 31)",
            name="ck_works_anchor_day",
        ),
        CheckConstraint(
            "completed_tasks <= total_tasks",
            name="ck_works_task_counts",
        ),
        Index("idx_works_customer", "customer_id"),
        Index("idx_works_recurring_active", "is_recurring", "is_active"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    service_id: Mapped[UUID] = mapped_column(
        ForeignKey("services.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurrence_pattern: Mapped[str | None] = mapped_column(String(20), nullable=True)
    anchor_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date] = mapped_column(nullable=False)
    billing_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    auto_bill: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Owner state (non-recurring works only)
    status: Mapped[str] = mapped_column(
        String(20), default=OwnerStatus.PENDING.value
    )
    total_tasks: Mapped[int] = mapped_column(Integer, default=0)
    completed_tasks: Mapped[int] = mapped_column(Integer, default=0)
    all_tasks_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    is_billed: Mapped[bool] = mapped_column(Boolean, default=False)
    invoice_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    billing_block_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)

    customer: Mapped[Customer] = relationship("Customer")
    service: Mapped[Service] = relationship("Service")
    periods: Mapped[list[Period]] = relationship(
        "Period",
        back_populates="work",
        order_by="Period.due_date",
    )

    def __repr__(self) -> str:
        kind = self.recurrence_pattern if self.is_recurring else "one-off"
        return f"<Work {self.title} ({kind})>"
