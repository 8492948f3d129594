"""
LedgerPostingService -- keyed, idempotent double-entry postings.

Responsibility:
    Append and remove balanced groups of ledger entries tied one-to-one to
    a source document (invoice number, receipt voucher number, or journal
    voucher number).  The source key is the only thing reversal ever
    filters on.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the invoice lifecycle
    controller and by PracticeBillingService for manual journal vouchers.

Invariants enforced:
    - Idempotent posting: if any entry exists for the source key, ``post``
      is a reported no-op (PostingStatus.ALREADY_POSTED).
    - Complete reversal: ``unpost`` deletes every entry for the key,
      whatever the amounts, in one statement.
    - Balance: every group written has sum(debit) == sum(credit).  Before
      deleting, ``unpost`` verifies the group it is about to remove still
      balances; an unbalanced group is left untouched and reported.
    - Each entry has exactly one positive side.

Failure modes:
    - InvalidPostingAmountError: amount <= 0.
    - AccountNotFoundError / AccountInactiveError: bad target account.
    - UnbalancedEntryError / InvalidLedgerLineError: malformed journal.
    - LedgerImbalanceError: stored group under a key does not balance.

Audit relevance:
    Every post and unpost is logged with source key, posting id, and
    amounts.  Entries carry created_by_id of the acting user or the system
    actor.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select

from practice_kernel.db.types import ZERO, round_money
from practice_kernel.domain.dtos import (
    JournalLine,
    PostingResult,
    PostingStatus,
    UnpostResult,
)
from practice_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    InvalidLedgerLineError,
    InvalidPostingAmountError,
    LedgerImbalanceError,
    UnbalancedEntryError,
)
from practice_kernel.logging_config import get_logger
from practice_kernel.models.ledger import Account, LedgerEntry, SourceType
from practice_kernel.services.base import BaseService

logger = get_logger("services.ledger_posting")


class LedgerPostingService(BaseService):
    """
    Appends and removes matched debit/credit groups keyed by source document.

    Contract:
        Callers pass account ids (automatic postings) or account codes
        (manual journals).  The service flushes; it never commits.

    Non-goals:
        - Role resolution (see AccountResolver).
        - Period locking or multi-currency.
    """

    def has_entries(self, source_key: str) -> bool:
        return self.session.execute(
            select(LedgerEntry.id).where(LedgerEntry.source_key == source_key).limit(1)
        ).first() is not None

    def entries_for(self, source_key: str) -> list[LedgerEntry]:
        return list(
            self.session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.source_key == source_key)
                .order_by(LedgerEntry.debit.desc())
            ).scalars()
        )

    def post(
        self,
        *,
        source_key: str,
        source_type: SourceType,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: Decimal,
        transaction_date: date,
        actor_id: UUID,
        narration: str | None = None,
    ) -> PostingResult:
        """
        Post one matched pair: Dr debit_account / Cr credit_account.

        Postconditions:
            - Exactly two entries exist for ``source_key`` (POSTED), or the
              key already had entries and nothing changed (ALREADY_POSTED).
        """
        amount = round_money(Decimal(amount))
        if amount <= 0:
            raise InvalidPostingAmountError(source_key, str(amount))

        if self.has_entries(source_key):
            logger.info(
                "ledger_post_skipped_already_posted",
                extra={"source_key": source_key},
            )
            return PostingResult(status=PostingStatus.ALREADY_POSTED, source_key=source_key)

        self._require_postable(debit_account_id)
        self._require_postable(credit_account_id)

        posting_id = uuid4()
        debit_entry = LedgerEntry(
            account_id=debit_account_id,
            debit=amount,
            credit=ZERO,
            transaction_date=transaction_date,
            source_type=SourceType(source_type).value,
            source_key=source_key,
            posting_id=posting_id,
            narration=narration,
            created_by_id=actor_id,
        )
        credit_entry = LedgerEntry(
            account_id=credit_account_id,
            debit=ZERO,
            credit=amount,
            transaction_date=transaction_date,
            source_type=SourceType(source_type).value,
            source_key=source_key,
            posting_id=posting_id,
            narration=narration,
            created_by_id=actor_id,
        )
        self.session.add_all([debit_entry, credit_entry])
        self.session.flush()

        logger.info(
            "ledger_posted",
            extra={
                "source_key": source_key,
                "source_type": SourceType(source_type).value,
                "posting_id": str(posting_id),
                "amount": str(amount),
            },
        )
        return PostingResult(
            status=PostingStatus.POSTED,
            source_key=source_key,
            posting_id=posting_id,
            entry_ids=(debit_entry.id, credit_entry.id),
        )

    def post_journal(
        self,
        *,
        voucher_number: str,
        lines: Sequence[JournalLine],
        transaction_date: date,
        actor_id: UUID,
    ) -> PostingResult:
        """
        Post a manual multi-line journal voucher.

        Raises:
            InvalidLedgerLineError: fewer than two lines, or a line without
                exactly one positive side.
            UnbalancedEntryError: total debits != total credits.
        """
        if len(lines) < 2:
            raise InvalidLedgerLineError(len(lines), "a journal needs at least two lines")

        debits = ZERO
        credits = ZERO
        normalized: list[tuple[Account, Decimal, Decimal, str | None]] = []
        for index, line in enumerate(lines):
            debit = round_money(Decimal(line.debit))
            credit = round_money(Decimal(line.credit))
            if debit < 0 or credit < 0:
                raise InvalidLedgerLineError(index, "amounts must not be negative")
            if (debit > 0) == (credit > 0):
                raise InvalidLedgerLineError(
                    index, "exactly one of debit or credit must be non-zero"
                )
            account = self._account_by_code(line.account_code)
            normalized.append((account, debit, credit, line.narration))
            debits += debit
            credits += credit

        if debits != credits:
            raise UnbalancedEntryError(str(debits), str(credits))

        if self.has_entries(voucher_number):
            return PostingResult(status=PostingStatus.ALREADY_POSTED, source_key=voucher_number)

        posting_id = uuid4()
        entries = [
            LedgerEntry(
                account_id=account.id,
                debit=debit,
                credit=credit,
                transaction_date=transaction_date,
                source_type=SourceType.JOURNAL.value,
                source_key=voucher_number,
                posting_id=posting_id,
                narration=narration,
                created_by_id=actor_id,
            )
            for account, debit, credit, narration in normalized
        ]
        self.session.add_all(entries)
        self.session.flush()

        logger.info(
            "journal_voucher_posted",
            extra={
                "source_key": voucher_number,
                "posting_id": str(posting_id),
                "line_count": len(entries),
                "total": str(debits),
            },
        )
        return PostingResult(
            status=PostingStatus.POSTED,
            source_key=voucher_number,
            posting_id=posting_id,
            entry_ids=tuple(entry.id for entry in entries),
        )

    def unpost(self, source_key: str) -> UnpostResult:
        """
        Remove every entry for ``source_key``.

        A key with no entries is a no-op (removed_count == 0).

        Raises:
            LedgerImbalanceError: the stored group does not balance; nothing
                is deleted.
        """
        debits, credits, count = self.session.execute(
            select(
                func.coalesce(func.sum(LedgerEntry.debit), 0),
                func.coalesce(func.sum(LedgerEntry.credit), 0),
                func.count(LedgerEntry.id),
            ).where(LedgerEntry.source_key == source_key)
        ).one()
        debits = round_money(Decimal(debits))
        credits = round_money(Decimal(credits))

        if count == 0:
            return UnpostResult(source_key=source_key, removed_count=0)

        if debits != credits:
            logger.error(
                "ledger_unpost_refused_imbalance",
                extra={
                    "source_key": source_key,
                    "debits": str(debits),
                    "credits": str(credits),
                },
            )
            raise LedgerImbalanceError(source_key, str(debits), str(credits))

        self.session.execute(
            delete(LedgerEntry)
            .where(LedgerEntry.source_key == source_key)
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()

        logger.info(
            "ledger_unposted",
            extra={
                "source_key": source_key,
                "removed_count": count,
                "amount": str(debits),
            },
        )
        return UnpostResult(
            source_key=source_key,
            removed_count=count,
            debits=debits,
            credits=credits,
        )

    def _account_by_code(self, code: str) -> Account:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(code)
        if not account.is_active:
            raise AccountInactiveError(str(account.id))
        return account

    def _require_postable(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        if not account.is_active:
            raise AccountInactiveError(str(account_id))
        return account
