"""
Module: practice_kernel.selectors.period_selector
Responsibility: Period and invoice list queries for display, including the
    derived "overdue" status and the billing status label.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - "overdue" is computed here from due_date and ``today``; it is never
      written back to the period row.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from practice_kernel.models.invoice import Invoice
from practice_kernel.models.period import Period
from practice_kernel.models.work import OwnerStatus
from practice_kernel.selectors.base import BaseSelector

OVERDUE = "overdue"

BILLED = "billed"
UNBILLED = "unbilled"


def display_status(stored_status: str, due_date: date, today: date) -> str:
    """Stored status, or "overdue" for an unfinished period past its due date."""
    if stored_status != OwnerStatus.COMPLETED.value and due_date < today:
        return OVERDUE
    return stored_status


def billing_status(is_billed: bool, block_reason: str | None) -> str:
    if is_billed:
        return BILLED
    if block_reason:
        return f"not billed - {block_reason}"
    return UNBILLED


@dataclass(frozen=True)
class PeriodRow:
    period_id: UUID
    work_id: UUID
    name: str
    period_start: date
    period_end: date
    due_date: date
    status: str
    total_tasks: int
    completed_tasks: int
    billing_status: str
    invoice_id: UUID | None
    invoice_number: str | None
    invoice_status: str | None
    invoice_total: Decimal | None


class PeriodSelector(BaseSelector):
    """Period list with billing and invoice status."""

    def __init__(self, session: Session):
        super().__init__(session)

    def list_periods(
        self, today: date, work_id: UUID | None = None
    ) -> list[PeriodRow]:
        query = (
            select(Period, Invoice.invoice_number, Invoice.status, Invoice.total_amount)
            .outerjoin(Invoice, Invoice.id == Period.invoice_id)
            .order_by(Period.work_id, Period.due_date)
        )
        if work_id is not None:
            query = query.where(Period.work_id == work_id)

        return [
            PeriodRow(
                period_id=period.id,
                work_id=period.work_id,
                name=period.name,
                period_start=period.period_start,
                period_end=period.period_end,
                due_date=period.due_date,
                status=display_status(period.status, period.due_date, today),
                total_tasks=period.total_tasks,
                completed_tasks=period.completed_tasks,
                billing_status=billing_status(period.is_billed, period.billing_block_reason),
                invoice_id=period.invoice_id,
                invoice_number=number,
                invoice_status=status,
                invoice_total=total,
            )
            for period, number, status, total in self.session.execute(query).all()
        ]

    def invoices_for_customer(self, customer_id: UUID) -> list[Invoice]:
        return list(
            self.session.execute(
                select(Invoice)
                .where(Invoice.customer_id == customer_id)
                .order_by(Invoice.invoice_date, Invoice.invoice_number)
            ).scalars()
        )
