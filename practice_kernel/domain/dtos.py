"""
Data Transfer Objects for the practice kernel.

Responsibility:
    Frozen result and input objects passed between services and returned
    to callers.  Duplicate-prevention outcomes (already billed, already
    posted) are expressed here as statuses, not exceptions.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from practice_kernel.domain.invoice_transitions import InvoiceEffects, InvoiceStatus


# ---------------------------------------------------------------------------
# Ledger posting
# ---------------------------------------------------------------------------


class PostingStatus(str, Enum):
    """Outcome of a ledger posting request."""

    POSTED = "posted"
    ALREADY_POSTED = "already_posted"


@dataclass(frozen=True)
class PostingResult:
    """Result of posting one source document to the ledger."""

    status: PostingStatus
    source_key: str
    posting_id: UUID | None = None
    entry_ids: tuple[UUID, ...] = ()

    @property
    def is_success(self) -> bool:
        return self.status in (PostingStatus.POSTED, PostingStatus.ALREADY_POSTED)


@dataclass(frozen=True)
class UnpostResult:
    """Result of removing every entry for a source key."""

    source_key: str
    removed_count: int
    debits: Decimal = Decimal("0")
    credits: Decimal = Decimal("0")


@dataclass(frozen=True)
class JournalLine:
    """
    One line of a manual journal voucher.

    Exactly one of debit / credit must be positive; the other zero.
    """

    account_code: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    narration: str | None = None


# ---------------------------------------------------------------------------
# Task tracking
# ---------------------------------------------------------------------------


class OwnerKind(str, Enum):
    """Which entity owns a set of tasks and carries the billing state."""

    PERIOD = "period"
    WORK = "work"


@dataclass(frozen=True)
class OwnerRef:
    kind: OwnerKind
    owner_id: UUID


@dataclass(frozen=True)
class CompletionChange:
    """
    Owner counters after a recount.

    became_complete / became_incomplete are the edges the billing engine
    reacts to; they are never both true.
    """

    owner: OwnerRef
    total_tasks: int
    completed_tasks: int
    all_tasks_completed: bool
    became_complete: bool = False
    became_incomplete: bool = False


# ---------------------------------------------------------------------------
# Billing decisions
# ---------------------------------------------------------------------------


class BillingOutcome(str, Enum):
    """What the billing engine did when an owner reached completion."""

    INVOICED = "invoiced"
    ALREADY_BILLED = "already_billed"
    AUTO_BILL_DISABLED = "auto_bill_disabled"
    NO_PRICE = "no_price"
    NOT_COMPLETE = "not_complete"


@dataclass(frozen=True)
class BillingDecision:
    """Result of one billing evaluation for one owner."""

    outcome: BillingOutcome
    owner: OwnerRef
    invoice_id: UUID | None = None
    invoice_number: str | None = None
    subtotal: Decimal | None = None
    tax_amount: Decimal | None = None
    total: Decimal | None = None
    reason: str | None = None

    @property
    def invoiced(self) -> bool:
        return self.outcome == BillingOutcome.INVOICED


@dataclass(frozen=True)
class TaskMutationResult:
    """Recount plus whatever billing decision it triggered."""

    task_id: UUID
    change: CompletionChange
    billing: BillingDecision | None = None


# ---------------------------------------------------------------------------
# Invoice lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceTransitionResult:
    """
    Outcome of a status change request.

    On rejection, ``error_code`` and ``error_message`` carry the structured
    error and nothing was applied.
    """

    invoice_id: UUID
    from_status: InvoiceStatus | None
    to_status: InvoiceStatus | None
    applied: bool
    effects: InvoiceEffects | None = None
    receipt_voucher_number: str | None = None
    warnings: tuple[str, ...] = ()
    error_code: str | None = None
    error_message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.error_code is None


@dataclass(frozen=True)
class InvoiceRemoval:
    """What was torn down when an invoice was deleted."""

    invoice_id: UUID
    invoice_number: str
    ledger_entries_removed: int
    receipt_voucher_removed: bool
    owner: OwnerRef | None


# ---------------------------------------------------------------------------
# Period generation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationResult:
    """Periods created for one work in one generator run."""

    work_id: UUID
    created_period_ids: tuple[UUID, ...] = ()
    created_due_dates: tuple[date, ...] = ()
    skipped_existing: int = 0
    capped: bool = False

    @property
    def created_count(self) -> int:
        return len(self.created_period_ids)


@dataclass(frozen=True)
class PeriodDeletion:
    """What was torn down when a period was deleted."""

    period_id: UUID
    tasks_removed: int
    invoice_removal: InvoiceRemoval | None = None
