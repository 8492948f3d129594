"""
Billing policy -- pure pricing, tax, and payment-term rules.

Responsibility:
    Decide what an owner (period or non-recurring work) should be billed:
    the price by precedence, the tax at the service rate, the total, and
    the due date implied by the service's payment terms.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The billing engine
    gathers the inputs from the directory tables and calls into here.

Invariants enforced:
    - Price precedence: customer-service override, then period amount, then
      work amount, then service default, then zero.  The first non-null
      candidate wins, even if it is zero.
    - tax == round_money(subtotal * tax_rate / 100); a null rate is 0.
    - total == subtotal + tax.
    - Unknown or missing payment terms fall back to the configured default.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from practice_kernel.db.types import ZERO, round_money


class PaymentTerms(str, Enum):
    """Invoice payment terms relative to the invoice date."""

    DUE_ON_RECEIPT = "due_on_receipt"
    NET_15 = "net_15"
    NET_30 = "net_30"
    NET_45 = "net_45"
    NET_60 = "net_60"

    @property
    def days(self) -> int:
        return _TERM_DAYS[self]


_TERM_DAYS = {
    PaymentTerms.DUE_ON_RECEIPT: 0,
    PaymentTerms.NET_15: 15,
    PaymentTerms.NET_30: 30,
    PaymentTerms.NET_45: 45,
    PaymentTerms.NET_60: 60,
}


class PriceSource(str, Enum):
    """Which candidate supplied the billing price."""

    CUSTOMER_OVERRIDE = "customer_override"
    PERIOD = "period"
    WORK = "work"
    SERVICE_DEFAULT = "service_default"
    NONE = "none"


@dataclass(frozen=True)
class PriceCandidates:
    """Every place a price may come from, in no particular order."""

    customer_override: Decimal | None = None
    period_amount: Decimal | None = None
    work_amount: Decimal | None = None
    service_default: Decimal | None = None


@dataclass(frozen=True)
class ResolvedPrice:
    amount: Decimal
    source: PriceSource

    @property
    def is_billable(self) -> bool:
        return self.amount > 0


@dataclass(frozen=True)
class InvoiceAmounts:
    """Computed invoice totals for a single-line invoice."""

    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal


def resolve_price(candidates: PriceCandidates) -> ResolvedPrice:
    """Pick the price by precedence; zero with source NONE when nothing is set."""
    ordered = (
        (candidates.customer_override, PriceSource.CUSTOMER_OVERRIDE),
        (candidates.period_amount, PriceSource.PERIOD),
        (candidates.work_amount, PriceSource.WORK),
        (candidates.service_default, PriceSource.SERVICE_DEFAULT),
    )
    for amount, source in ordered:
        if amount is not None:
            return ResolvedPrice(amount=round_money(Decimal(amount)), source=source)
    return ResolvedPrice(amount=ZERO, source=PriceSource.NONE)


def compute_amounts(subtotal: Decimal, tax_rate: Decimal | None) -> InvoiceAmounts:
    """
    Tax and total for one line.

    >>> compute_amounts(Decimal("1000"), Decimal("18")).total
    Decimal('1180.00')
    """
    rate = Decimal(tax_rate) if tax_rate is not None else Decimal("0")
    subtotal = round_money(Decimal(subtotal))
    tax = round_money(subtotal * rate / Decimal("100"))
    return InvoiceAmounts(
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax,
        total=subtotal + tax,
    )


def parse_payment_terms(
    value: str | PaymentTerms | None, default: PaymentTerms
) -> PaymentTerms:
    """Unknown or missing terms resolve to ``default``."""
    if isinstance(value, PaymentTerms):
        return value
    if not value:
        return default
    try:
        return PaymentTerms(value.strip().lower().replace("-", "_"))
    except ValueError:
        return default


def due_date_for(invoice_date: date, terms: PaymentTerms) -> date:
    return invoice_date + timedelta(days=terms.days)
