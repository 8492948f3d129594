"""
Invoice status state machine (``practice_kernel.domain.invoice_transitions``).

Responsibility
--------------
The single table of allowed invoice status edges and, for each edge, the
ledger effects it implies.  Effects are decided by the (from, to) *edge*,
never by the target status alone: moving ``sent -> overdue`` posts nothing
new, while ``draft -> overdue`` posts the invoice.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The invoice
lifecycle service asks ``plan_transition`` what to do and then performs it.

Invariants enforced
-------------------
* ``sent`` and ``overdue`` are "posted" statuses: the receivable/income pair
  exists while the invoice sits in either.
* ``paid`` is posted AND has a receipt voucher.
* ``draft`` and ``cancelled`` have no ledger footprint.
* Re-entering the current status is a no-op with no effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    SENT = "sent"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


POSTED_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.OVERDUE, InvoiceStatus.PAID})


@dataclass(frozen=True)
class Transition:
    """A valid status edge."""
    from_state: InvoiceStatus
    to_state: InvoiceStatus
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: InvoiceStatus
    states: tuple[InvoiceStatus, ...]
    transitions: tuple[Transition, ...]

    def find(self, from_state: InvoiceStatus, to_state: InvoiceStatus) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.to_state == to_state:
                return transition
        return None


@dataclass(frozen=True)
class InvoiceEffects:
    """
    Ledger side effects of one status edge.

    ``post_invoice`` is an ensure: posting is skipped when the invoice's
    source key already has entries.
    """
    post_invoice: bool = False
    unpost_invoice: bool = False
    create_receipt: bool = False
    remove_receipt: bool = False

    @property
    def is_empty(self) -> bool:
        return not (
            self.post_invoice
            or self.unpost_invoice
            or self.create_receipt
            or self.remove_receipt
        )


NO_EFFECTS = InvoiceEffects()

_D = InvoiceStatus.DRAFT
_S = InvoiceStatus.SENT
_O = InvoiceStatus.OVERDUE
_P = InvoiceStatus.PAID
_C = InvoiceStatus.CANCELLED

INVOICE_WORKFLOW = Workflow(
    name="practice_invoice",
    description="Auto-billed practice invoice lifecycle",
    initial_state=_D,
    states=(_D, _S, _O, _P, _C),
    transitions=(
        Transition(_D, _S, "send"),
        Transition(_D, _O, "mark_overdue"),
        Transition(_D, _P, "record_payment"),
        Transition(_D, _C, "cancel"),
        Transition(_S, _D, "revert_to_draft"),
        Transition(_S, _O, "mark_overdue"),
        Transition(_S, _P, "record_payment"),
        Transition(_S, _C, "cancel"),
        Transition(_O, _D, "revert_to_draft"),
        Transition(_O, _S, "clear_overdue"),
        Transition(_O, _P, "record_payment"),
        Transition(_O, _C, "cancel"),
        Transition(_P, _D, "revert_to_draft"),
        Transition(_P, _S, "reverse_payment"),
        Transition(_P, _O, "reverse_payment"),
        Transition(_C, _D, "reopen"),
    ),
)


def is_allowed(from_state: InvoiceStatus, to_state: InvoiceStatus) -> bool:
    if from_state == to_state:
        return True
    return INVOICE_WORKFLOW.find(from_state, to_state) is not None


def plan_transition(from_state: InvoiceStatus, to_state: InvoiceStatus) -> InvoiceEffects:
    """
    Ledger effects for an allowed edge.

    Callers must check ``is_allowed`` first; an unknown edge yields no
    effects rather than guessing.
    """
    from_state = InvoiceStatus(from_state)
    to_state = InvoiceStatus(to_state)
    if from_state == to_state or not is_allowed(from_state, to_state):
        return NO_EFFECTS

    was_posted = from_state in POSTED_STATUSES
    will_be_posted = to_state in POSTED_STATUSES
    had_receipt = from_state is _P
    will_have_receipt = to_state is _P

    return InvoiceEffects(
        post_invoice=(will_be_posted and not was_posted) or will_have_receipt,
        unpost_invoice=was_posted and not will_be_posted,
        create_receipt=will_have_receipt and not had_receipt,
        remove_receipt=had_receipt and not will_have_receipt,
    )
