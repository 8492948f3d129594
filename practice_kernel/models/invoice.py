"""
Invoice ORM Models (``practice_kernel.models.invoice``).

Responsibility
--------------
Invoices emitted by the billing engine, their lines, and the receipt
vouchers created when an invoice is paid.

Architecture position
---------------------
**Kernel > Models** -- persistence.  Imports from ``db/base.py`` only.

Invariants enforced
-------------------
* invoice_number unique (uq_invoices_number); voucher_number unique.
* total_amount == subtotal + tax_amount (ck_invoices_total).
* At most one receipt voucher per invoice (uq_receipt_vouchers_invoice).
* work_id / period_id are soft references: a source removed outside the
  kernel surfaces as InvoiceSourceMissingError instead of blocking the
  removal or silently cascading.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice_kernel.db.base import TrackedBase, UUIDString
from practice_kernel.domain.invoice_transitions import InvoiceStatus

if TYPE_CHECKING:
    from practice_kernel.models.directory import Service


class Invoice(TrackedBase):
    """
    A customer invoice derived from exactly one period or one-off work.

    Guarantees:
        - status is an InvoiceStatus value; transitions go through the
          invoice lifecycle controller only.
        - paid_amount / balance_due follow the receipt voucher.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_number"),
        CheckConstraint(
            "total_amount = subtotal + tax_amount",
            name="ck_invoices_total",
        ),
        Index("idx_invoices_customer", "customer_id"),
        Index("idx_invoices_work", "work_id"),
        Index("idx_invoices_period", "period_id"),
        Index("idx_invoices_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    work_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    period_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    invoice_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    balance_due: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvoiceStatus.DRAFT.value
    )
    receivable_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    income_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    lines: Mapped[list[InvoiceLine]] = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} [{self.status}] {self.total_amount}>"


class InvoiceLine(TrackedBase):
    """One billed line; auto-billed invoices carry exactly one."""

    __tablename__ = "invoice_lines"

    __table_args__ = (
        Index("idx_invoice_lines_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(default=1)
    service_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("services.id"), nullable=True
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped[Invoice] = relationship("Invoice", back_populates="lines")
    service: Mapped[Service | None] = relationship("Service")


class ReceiptVoucher(TrackedBase):
    """
    Payment-received record created when an invoice becomes paid.

    Deleted, together with its ledger entries, when the invoice leaves
    the paid status.
    """

    __tablename__ = "receipt_vouchers"

    __table_args__ = (
        UniqueConstraint("voucher_number", name="uq_receipt_vouchers_number"),
        UniqueConstraint("invoice_id", name="uq_receipt_vouchers_invoice"),
    )

    voucher_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    receipt_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    cash_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    receivable_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default="posted")

    def __repr__(self) -> str:
        return f"<ReceiptVoucher {self.voucher_number} {self.amount}>"
