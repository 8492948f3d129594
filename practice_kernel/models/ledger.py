"""
Module: practice_kernel.models.ledger
Responsibility: ORM persistence for the chart of accounts, the ledger
    entries posted against it, and the counter rows behind document numbers.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Account.code is unique (uq_accounts_code).
    - A ledger entry has exactly one non-zero side, and neither side is
      negative (ck_ledger_entries_one_side).
    - source_key is a first-class, indexed column.  Every reversal filters
      on it exclusively; narration is display text and is never matched on.
    - Entries are written and removed in groups sharing a posting_id; for
      any source_key the sum of debits equals the sum of credits.

Failure modes:
    - IntegrityError on a duplicate account code or a one-sided violation.

Audit relevance:
    source_type + source_key tie every entry to the invoice, receipt
    voucher, or journal voucher that caused it.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice_kernel.db.base import Base, TrackedBase, UUIDString


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class SourceType(str, Enum):
    """Kind of document a ledger entry was posted from."""

    INVOICE = "invoice"
    RECEIPT = "receipt"
    JOURNAL = "journal"


class Account(TrackedBase):
    """
    Chart of Accounts entry.

    Guarantees:
        - opening_balance is signed in debit terms (positive = debit).
        - Inactive accounts are rejected by the posting service.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_accounts_code"),
        Index("idx_accounts_type", "account_type"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)
    opening_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"


class LedgerEntry(TrackedBase):
    """
    One side of a posting.

    Contract:
        Created only by the ledger posting service, always together with
        its counterpart(s) under the same posting_id and source_key.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0)",
            name="ck_ledger_entries_one_side",
        ),
        Index("idx_ledger_entries_source_key", "source_key"),
        Index("idx_ledger_entries_account", "account_id"),
        Index("idx_ledger_entries_posting", "posting_id"),
        Index("idx_ledger_entries_date", "transaction_date"),
    )

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id"), nullable=False
    )
    debit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    credit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    transaction_date: Mapped[date] = mapped_column(nullable=False)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    source_key: Mapped[str] = mapped_column(String(100), nullable=False)
    posting_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    narration: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    account: Mapped[Account] = relationship("Account")

    def __repr__(self) -> str:
        side = f"Dr {self.debit}" if self.debit else f"Cr {self.credit}"
        return f"<LedgerEntry {self.source_key} {side}>"


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
