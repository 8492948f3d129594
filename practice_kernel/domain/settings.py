"""
Kernel settings -- the configuration values services consume.

Responsibility:
    Typed, frozen settings the kernel services are constructed with.  The
    kernel never reads YAML or environment variables; ``practice_config``
    builds a ``KernelSettings`` and hands it in.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from practice_kernel.domain.billing_policy import PaymentTerms

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


@dataclass(frozen=True)
class LedgerRoles:
    """Account codes for the roles automatic postings need."""

    receivable_code: str | None = None
    income_code: str | None = None
    cash_code: str | None = None
    auto_create_customer_accounts: bool = False
    customer_account_prefix: str = "AR-"


@dataclass(frozen=True)
class NumberFormat:
    """
    ``{prefix}{number}{suffix}`` where number = starting_number + counter - 1.

    >>> NumberFormat(prefix="INV-").render(1)
    'INV-000001'
    """

    prefix: str
    suffix: str = ""
    width: int = 6
    zero_pad: bool = True
    starting_number: int = 1

    def render(self, counter: int) -> str:
        number = self.starting_number + counter - 1
        digits = str(number).zfill(self.width) if self.zero_pad else str(number)
        return f"{self.prefix}{digits}{self.suffix}"


def _default_formats() -> dict[str, NumberFormat]:
    return {
        "invoice": NumberFormat(prefix="INV-"),
        "receipt": NumberFormat(prefix="RCT-"),
        "journal": NumberFormat(prefix="JV-"),
    }


@dataclass(frozen=True)
class KernelSettings:
    ledger: LedgerRoles = field(default_factory=LedgerRoles)
    number_formats: dict[str, NumberFormat] = field(default_factory=_default_formats)
    default_payment_terms: PaymentTerms = PaymentTerms.NET_30
    max_catch_up_periods: int = 24
    system_actor_id: UUID = SYSTEM_ACTOR_ID

    def number_format(self, document_type: str) -> NumberFormat:
        fmt = self.number_formats.get(document_type)
        if fmt is None:
            return NumberFormat(prefix=f"{document_type.upper()}-")
        return fmt
