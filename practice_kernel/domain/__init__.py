"""
Pure domain layer.

Period arithmetic, billing policy, the invoice transition table, DTOs,
the clock abstraction, and kernel settings.  Nothing here touches the
ORM or the database; "today" and configuration are passed in.
"""

from practice_kernel.domain.billing_policy import (
    InvoiceAmounts,
    PaymentTerms,
    PriceCandidates,
    PriceSource,
    ResolvedPrice,
    compute_amounts,
    due_date_for,
    parse_payment_terms,
    resolve_price,
)
from practice_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from practice_kernel.domain.dtos import (
    BillingDecision,
    BillingOutcome,
    CompletionChange,
    GenerationResult,
    InvoiceRemoval,
    InvoiceTransitionResult,
    JournalLine,
    OwnerKind,
    OwnerRef,
    PeriodDeletion,
    PostingResult,
    PostingStatus,
    TaskMutationResult,
    UnpostResult,
)
from practice_kernel.domain.invoice_transitions import (
    INVOICE_WORKFLOW,
    POSTED_STATUSES,
    InvoiceEffects,
    InvoiceStatus,
    is_allowed,
    plan_transition,
)
from practice_kernel.domain.recurrence import (
    PeriodWindow,
    RecurrencePattern,
    next_window,
    pending_windows,
)
from practice_kernel.domain.settings import (
    SYSTEM_ACTOR_ID,
    KernelSettings,
    LedgerRoles,
    NumberFormat,
)

__all__ = [
    "BillingDecision",
    "BillingOutcome",
    "Clock",
    "CompletionChange",
    "DeterministicClock",
    "GenerationResult",
    "INVOICE_WORKFLOW",
    "InvoiceAmounts",
    "InvoiceEffects",
    "InvoiceRemoval",
    "InvoiceStatus",
    "InvoiceTransitionResult",
    "JournalLine",
    "KernelSettings",
    "LedgerRoles",
    "NumberFormat",
    "OwnerKind",
    "OwnerRef",
    "POSTED_STATUSES",
    "PaymentTerms",
    "PeriodDeletion",
    "PeriodWindow",
    "PostingResult",
    "PostingStatus",
    "PriceCandidates",
    "PriceSource",
    "RecurrencePattern",
    "ResolvedPrice",
    "SYSTEM_ACTOR_ID",
    "SystemClock",
    "TaskMutationResult",
    "UnpostResult",
    "compute_amounts",
    "due_date_for",
    "is_allowed",
    "next_window",
    "parse_payment_terms",
    "pending_windows",
    "plan_transition",
    "resolve_price",
]
