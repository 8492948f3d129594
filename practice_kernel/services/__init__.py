"""Services for the practice kernel (write side)."""

from practice_kernel.services.account_resolver import AccountResolver
from practice_kernel.services.billing_engine import BillingEngine
from practice_kernel.services.invoice_lifecycle import InvoiceLifecycle
from practice_kernel.services.ledger_posting import LedgerPostingService
from practice_kernel.services.numbering_service import NumberingService
from practice_kernel.services.period_generator import PeriodGenerator
from practice_kernel.services.sequence_service import SequenceService
from practice_kernel.services.task_tracker import TaskTracker

__all__ = [
    "AccountResolver",
    "BillingEngine",
    "InvoiceLifecycle",
    "LedgerPostingService",
    "NumberingService",
    "PeriodGenerator",
    "SequenceService",
    "TaskTracker",
]
