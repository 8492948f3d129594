"""ORM models for the practice kernel."""

from practice_kernel.models.directory import (
    Customer,
    CustomerServicePrice,
    DocumentTemplate,
    Service,
    TaskTemplate,
)
from practice_kernel.models.invoice import Invoice, InvoiceLine, ReceiptVoucher
from practice_kernel.models.ledger import (
    Account,
    AccountType,
    LedgerEntry,
    NormalBalance,
    SequenceCounter,
    SourceType,
)
from practice_kernel.models.period import Period, PeriodDocument
from practice_kernel.models.task import Task, TaskStatus
from practice_kernel.models.work import OwnerStatus, Work

__all__ = [
    "Account",
    "AccountType",
    "Customer",
    "CustomerServicePrice",
    "DocumentTemplate",
    "Invoice",
    "InvoiceLine",
    "LedgerEntry",
    "NormalBalance",
    "OwnerStatus",
    "Period",
    "PeriodDocument",
    "ReceiptVoucher",
    "SequenceCounter",
    "Service",
    "SourceType",
    "Task",
    "TaskStatus",
    "TaskTemplate",
    "Work",
]
