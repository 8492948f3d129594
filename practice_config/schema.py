"""
Configuration Schema (``practice_config.schema``).

Responsibility
--------------
Frozen dataclasses describing one tenant's billing configuration: which
ledger accounts play the receivable / income / cash roles, how document
numbers are formatted, the default payment terms, and the batch limits.

Architecture position
---------------------
**Config layer** -- pure data.  No I/O, no kernel imports.

Invariants enforced
-------------------
* All schema objects are ``frozen=True``.
* Account roles are referenced by *code*, never by id, so a YAML file is
  portable between databases.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

# Fixed id used as created_by_id for rows the scheduler creates.
DEFAULT_SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


@dataclass(frozen=True)
class LedgerMapping:
    """
    Account roles used by automatic postings.

    A role left as None is a configuration gap: invoice posting or receipt
    creation that needs it is skipped with a warning.
    """

    receivable_account_code: str | None = None
    income_account_code: str | None = None
    cash_account_code: str | None = None
    auto_create_customer_accounts: bool = False
    customer_account_prefix: str = "AR-"


@dataclass(frozen=True)
class NumberingRule:
    """Document number format for one document type."""

    prefix: str
    suffix: str = ""
    width: int = 6
    zero_pad: bool = True
    starting_number: int = 1


def _default_numbering() -> dict[str, NumberingRule]:
    return {
        "invoice": NumberingRule(prefix="INV-"),
        "receipt": NumberingRule(prefix="RCT-"),
        "journal": NumberingRule(prefix="JV-"),
    }


@dataclass(frozen=True)
class BillingSettings:
    default_payment_terms: str = "net_30"


@dataclass(frozen=True)
class PeriodSettings:
    # Runaway guard for works whose start date is far in the past.
    max_catch_up_periods: int = 24


@dataclass(frozen=True)
class SchedulerSettings:
    interval_seconds: float = 3600.0


@dataclass(frozen=True)
class PracticeConfig:
    """
    The complete tenant configuration.

    Obtained only through ``practice_config.get_active_config()``.
    """

    config_id: str = "default"
    version: int = 1
    ledger: LedgerMapping = field(default_factory=LedgerMapping)
    numbering: dict[str, NumberingRule] = field(default_factory=_default_numbering)
    billing: BillingSettings = field(default_factory=BillingSettings)
    periods: PeriodSettings = field(default_factory=PeriodSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    system_actor_id: UUID = DEFAULT_SYSTEM_ACTOR_ID
    checksum: str = ""
