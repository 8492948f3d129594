"""
Directory ORM Models (``practice_kernel.models.directory``).

Responsibility
--------------
The customer and service directory the billing engine reads from:
customers (with their receivable account), services (price, tax, terms,
income account), per-customer price overrides, and the task and document
templates copied onto every new period.

Architecture position
---------------------
**Kernel > Models** -- persistence.  Imports from ``db/base.py`` only.
CRUD screens for these rows live outside the kernel; the kernel only reads
them, except for ``Customer.receivable_account_id`` which the account
resolver fills in when customer ledgers are auto-created.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from practice_kernel.models.ledger import Account


class Customer(TrackedBase):
    """
    A billed customer.

    Guarantees:
        - code is unique (uq_customers_code).
        - receivable_account_id, when set, is this customer's own ledger.
    """

    __tablename__ = "customers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_customers_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    receivable_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    receivable_account: Mapped[Account | None] = relationship(
        "Account", foreign_keys=[receivable_account_id]
    )

    def __repr__(self) -> str:
        return f"<Customer {self.code}: {self.name}>"


class Service(TrackedBase):
    """
    A billable service offering.

    Guarantees:
        - tax_rate is a percentage (18 means 18%); null means untaxed.
        - payment_terms is a PaymentTerms value or null (tenant default).
        - income_account_id overrides the tenant income account when set.
    """

    __tablename__ = "services"

    __table_args__ = (
        UniqueConstraint("code", name="uq_services_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    default_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    payment_terms: Mapped[str | None] = mapped_column(String(20), nullable=True)
    income_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    task_templates: Mapped[list[TaskTemplate]] = relationship(
        "TaskTemplate",
        back_populates="service",
        order_by="TaskTemplate.sort_order",
    )
    document_templates: Mapped[list[DocumentTemplate]] = relationship(
        "DocumentTemplate",
        back_populates="service",
        order_by="DocumentTemplate.sort_order",
    )

    def __repr__(self) -> str:
        return f"<Service {self.code}: {self.name}>"


class CustomerServicePrice(TrackedBase):
    """Negotiated price for one customer on one service."""

    __tablename__ = "customer_service_prices"

    __table_args__ = (
        UniqueConstraint(
            "customer_id", "service_id", name="uq_customer_service_prices"
        ),
    )

    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    service_id: Mapped[UUID] = mapped_column(
        ForeignKey("services.id"), nullable=False
    )
    price: Mapped[Decimal] = mapped_column(nullable=False)


class TaskTemplate(TrackedBase):
    """Task blueprint copied onto each new period of a service."""

    __tablename__ = "task_templates"

    __table_args__ = (
        Index("idx_task_templates_service", "service_id"),
    )

    service_id: Mapped[UUID] = mapped_column(
        ForeignKey("services.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    estimated_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    service: Mapped[Service] = relationship("Service", back_populates="task_templates")


class DocumentTemplate(TrackedBase):
    """Document checklist item copied onto each new period of a service."""

    __tablename__ = "document_templates"

    __table_args__ = (
        Index("idx_document_templates_service", "service_id"),
    )

    service_id: Mapped[UUID] = mapped_column(
        ForeignKey("services.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    service: Mapped[Service] = relationship(
        "Service", back_populates="document_templates"
    )
