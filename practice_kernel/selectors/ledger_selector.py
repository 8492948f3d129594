"""
Module: practice_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: running balance per account,
    the trial balance, whole-ledger debit/credit totals, and the entries
    behind one source key.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - No stored balances.  Every balance is opening_balance plus the
      signed sum of ledger entries at query time.
    - total_debits_credits() is the read-side check that the ledger is
      balanced: the two totals must be equal.

Failure modes:
    - Zero balances and empty lists when nothing has been posted.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from practice_kernel.db.types import ZERO
from practice_kernel.models.ledger import Account, LedgerEntry
from practice_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountBalance:
    """Balance for a single account, in debit terms."""

    account_id: UUID
    account_code: str
    opening_balance: Decimal
    debit_total: Decimal
    credit_total: Decimal
    entry_count: int

    @property
    def balance(self) -> Decimal:
        """Opening balance + debits - credits."""
        return self.opening_balance + self.debit_total - self.credit_total


@dataclass(frozen=True)
class TrialBalanceRow:
    """
    One account in the trial balance.

    The closing balance is shown in exactly one column: positive closing
    balances in ``debit``, negative ones (as a positive number) in ``credit``.
    """

    account_id: UUID
    account_code: str
    account_name: str
    closing_balance: Decimal

    @property
    def debit(self) -> Decimal:
        return self.closing_balance if self.closing_balance > 0 else ZERO

    @property
    def credit(self) -> Decimal:
        return -self.closing_balance if self.closing_balance < 0 else ZERO


@dataclass(frozen=True)
class LedgerLine:
    """A single ledger entry as shown on a source document."""

    entry_id: UUID
    account_code: str
    debit: Decimal
    credit: Decimal
    transaction_date: date
    source_type: str
    source_key: str
    narration: str | None


class LedgerSelector(BaseSelector):
    """
    Selector for ledger queries.

    Contract:
        Balances are always derived from ledger_entries; an optional
        ``as_of_date`` cuts entries off by transaction date.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _sums(self, as_of_date: date | None):
        debit_sum = func.coalesce(func.sum(LedgerEntry.debit), 0).label("debit_total")
        credit_sum = func.coalesce(func.sum(LedgerEntry.credit), 0).label("credit_total")
        entry_count = func.count(LedgerEntry.id).label("entry_count")
        query = select(LedgerEntry.account_id, debit_sum, credit_sum, entry_count)
        if as_of_date is not None:
            query = query.where(LedgerEntry.transaction_date <= as_of_date)
        return query.group_by(LedgerEntry.account_id)

    def account_balance(
        self, account_id: UUID, as_of_date: date | None = None
    ) -> AccountBalance | None:
        """
        Running balance for one account.

        Returns None if the account does not exist.
        """
        account = self.session.get(Account, account_id)
        if account is None:
            return None

        sums = self._sums(as_of_date).where(LedgerEntry.account_id == account_id)
        row = self.session.execute(sums).one_or_none()

        return AccountBalance(
            account_id=account.id,
            account_code=account.code,
            opening_balance=Decimal(account.opening_balance or 0),
            debit_total=Decimal(row.debit_total) if row else ZERO,
            credit_total=Decimal(row.credit_total) if row else ZERO,
            entry_count=row.entry_count if row else 0,
        )

    def account_balance_by_code(
        self, code: str, as_of_date: date | None = None
    ) -> AccountBalance | None:
        account_id = self.session.execute(
            select(Account.id).where(Account.code == code)
        ).scalar_one_or_none()
        if account_id is None:
            return None
        return self.account_balance(account_id, as_of_date)

    def trial_balance(self, as_of_date: date | None = None) -> list[TrialBalanceRow]:
        """
        Closing balance of every account with an opening balance or entries,
        ordered by account code.
        """
        sums = self._sums(as_of_date).subquery()
        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.opening_balance,
                sums.c.debit_total,
                sums.c.credit_total,
            )
            .outerjoin(sums, sums.c.account_id == Account.id)
            .order_by(Account.code)
        )

        rows = []
        for row in self.session.execute(query).all():
            opening = Decimal(row.opening_balance or 0)
            debits = Decimal(row.debit_total or 0)
            credits = Decimal(row.credit_total or 0)
            if opening == 0 and debits == 0 and credits == 0:
                continue
            rows.append(
                TrialBalanceRow(
                    account_id=row.id,
                    account_code=row.code,
                    account_name=row.name,
                    closing_balance=opening + debits - credits,
                )
            )
        return rows

    def total_debits_credits(self, as_of_date: date | None = None) -> tuple[Decimal, Decimal]:
        """(total debits, total credits) across the whole ledger."""
        query = select(
            func.coalesce(func.sum(LedgerEntry.debit), 0),
            func.coalesce(func.sum(LedgerEntry.credit), 0),
        )
        if as_of_date is not None:
            query = query.where(LedgerEntry.transaction_date <= as_of_date)
        debits, credits = self.session.execute(query).one()
        return Decimal(debits), Decimal(credits)

    def entries_for_key(self, source_key: str) -> list[LedgerLine]:
        query = (
            select(LedgerEntry, Account.code)
            .join(Account, LedgerEntry.account_id == Account.id)
            .where(LedgerEntry.source_key == source_key)
            .order_by(LedgerEntry.debit.desc(), Account.code)
        )
        return [
            LedgerLine(
                entry_id=entry.id,
                account_code=code,
                debit=entry.debit,
                credit=entry.credit,
                transaction_date=entry.transaction_date,
                source_type=entry.source_type,
                source_key=entry.source_key,
                narration=entry.narration,
            )
            for entry, code in self.session.execute(query).all()
        ]
