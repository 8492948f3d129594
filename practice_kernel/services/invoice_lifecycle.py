"""
InvoiceLifecycle -- status edges and their ledger consequences.

Responsibility:
    Apply invoice status changes through the transition table in
    ``domain.invoice_transitions`` and carry out the ledger effects of each
    edge: posting / unposting the receivable-income pair keyed by invoice
    number, and creating / deleting the receipt voucher (with its own
    cash-receivable pair keyed by voucher number).  Deleting an invoice
    tears all of that down and hands the owner back to the billing engine.

Architecture position:
    Kernel > Services.  The only code path that changes Invoice.status or
    creates/deletes ReceiptVoucher rows.

Invariants enforced:
    - Effects are decided by the (from, to) edge, not the target status.
    - Posting is idempotent per key; reversal deletes by key only.
    - A status change and all of its effects run in one SAVEPOINT: a
      failure part-way leaves the invoice, the ledger, and the receipt
      exactly as they were.
    - paid_amount / balance_due track the receipt voucher.

Failure modes:
    - InvoiceNotFoundError, InvalidInvoiceTransitionError.
    - InvoiceSourceMissingError when the billed work/period is gone.
    - LedgerImbalanceError from unposting a corrupted key.
    - Missing receivable/income/cash mapping is NOT an error: the ledger
      effect is skipped, the status still changes, and a warning is
      returned and logged.

Audit relevance:
    ``invoice_status_changed`` records from/to, effects, voucher number,
    and warnings for every applied edge.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from practice_kernel.db.types import ZERO
from practice_kernel.domain.clock import Clock
from practice_kernel.domain.dtos import InvoiceRemoval, InvoiceTransitionResult
from practice_kernel.domain.invoice_transitions import (
    InvoiceStatus,
    is_allowed,
    plan_transition,
)
from practice_kernel.domain.settings import KernelSettings
from practice_kernel.exceptions import (
    InvalidInvoiceTransitionError,
    InvoiceNotFoundError,
)
from practice_kernel.logging_config import get_logger
from practice_kernel.models.directory import Customer
from practice_kernel.models.invoice import Invoice, ReceiptVoucher
from practice_kernel.models.ledger import Account, SourceType
from practice_kernel.services.account_resolver import INCOME, AccountResolver
from practice_kernel.services.base import BaseService
from practice_kernel.services.billing_engine import BillingEngine
from practice_kernel.services.ledger_posting import LedgerPostingService
from practice_kernel.services.numbering_service import NumberingService

logger = get_logger("services.invoice_lifecycle")

MISSING_RECEIVABLE = "missing receivable account"
MISSING_INCOME = "missing income account"
MISSING_CASH = "missing cash/bank account"


class InvoiceLifecycle(BaseService):
    """
    Invoice state machine driver.

    Contract:
        ``change_status`` raises on an illegal edge and otherwise returns
        what it did.  Callers that need a non-raising surface wrap it (see
        PracticeBillingService.set_invoice_status).
    """

    def __init__(self, session: Session, clock: Clock, settings: KernelSettings):
        super().__init__(session)
        self._clock = clock
        self._settings = settings
        self._ledger = LedgerPostingService(session)
        self._accounts = AccountResolver(session, settings)
        self._numbering = NumberingService(session, settings)
        self._billing = BillingEngine(session, clock, settings)

    def get_invoice(self, invoice_id: UUID, lock: bool = True) -> Invoice:
        stmt = select(Invoice).where(Invoice.id == invoice_id)
        if lock:
            stmt = stmt.with_for_update()
        invoice = self.session.execute(stmt).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def current_status(self, invoice_id: UUID) -> str | None:
        return self.session.execute(
            select(Invoice.status).where(Invoice.id == invoice_id)
        ).scalar_one_or_none()

    def receipt_for(self, invoice_id: UUID) -> ReceiptVoucher | None:
        return self.session.execute(
            select(ReceiptVoucher).where(ReceiptVoucher.invoice_id == invoice_id)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    def change_status(
        self,
        invoice_id: UUID,
        new_status: InvoiceStatus | str,
        actor_id: UUID | None = None,
    ) -> InvoiceTransitionResult:
        """
        Move an invoice along one edge and apply that edge's effects.

        Raises:
            InvalidInvoiceTransitionError: edge not in the table.
        """
        actor_id = actor_id or self._settings.system_actor_id
        invoice = self.get_invoice(invoice_id)
        from_status = InvoiceStatus(invoice.status)
        try:
            to_status = InvoiceStatus(new_status)
        except ValueError:
            raise InvalidInvoiceTransitionError(
                str(invoice.id), from_status.value, str(new_status)
            ) from None

        if from_status == to_status:
            return InvoiceTransitionResult(
                invoice_id=invoice.id,
                from_status=from_status,
                to_status=to_status,
                applied=False,
            )

        if not is_allowed(from_status, to_status):
            raise InvalidInvoiceTransitionError(
                str(invoice.id), from_status.value, to_status.value
            )

        self._billing.verify_source(invoice)
        effects = plan_transition(from_status, to_status)
        warnings: list[str] = []
        voucher_number: str | None = None

        with self.session.begin_nested():
            if effects.remove_receipt:
                self._remove_receipt(invoice)
            if effects.unpost_invoice:
                self._ledger.unpost(invoice.invoice_number)
            if effects.post_invoice:
                warnings.extend(self._post_invoice(invoice, actor_id))
            if effects.create_receipt:
                voucher_number, receipt_warnings = self._create_receipt(invoice, actor_id)
                warnings.extend(receipt_warnings)

            invoice.status = to_status.value
            invoice.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "from_status": from_status.value,
                "to_status": to_status.value,
                "post_invoice": effects.post_invoice,
                "unpost_invoice": effects.unpost_invoice,
                "create_receipt": effects.create_receipt,
                "remove_receipt": effects.remove_receipt,
                "receipt_voucher_number": voucher_number,
                "warnings": warnings,
            },
        )
        return InvoiceTransitionResult(
            invoice_id=invoice.id,
            from_status=from_status,
            to_status=to_status,
            applied=True,
            effects=effects,
            receipt_voucher_number=voucher_number,
            warnings=tuple(warnings),
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_invoice(self, invoice_id: UUID) -> InvoiceRemoval:
        """
        Delete an invoice with its receipt and every ledger entry keyed to
        either, and reset the billed flag on its owner.
        """
        invoice = self.get_invoice(invoice_id)
        self._billing.verify_source(invoice)

        with self.session.begin_nested():
            receipt_removed = self._remove_receipt(invoice)
            unposted = self._ledger.unpost(invoice.invoice_number)
            owner = self._billing.on_invoice_removed(invoice)
            number = invoice.invoice_number
            self.session.delete(invoice)
            self.session.flush()

        logger.info(
            "invoice_deleted",
            extra={
                "invoice_id": str(invoice_id),
                "invoice_number": number,
                "ledger_entries_removed": unposted.removed_count,
                "receipt_voucher_removed": receipt_removed,
            },
        )
        return InvoiceRemoval(
            invoice_id=invoice_id,
            invoice_number=number,
            ledger_entries_removed=unposted.removed_count,
            receipt_voucher_removed=receipt_removed,
            owner=owner,
        )

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def _receivable_account(self, invoice: Invoice) -> Account | None:
        if invoice.receivable_account_id is not None:
            return self.session.get(Account, invoice.receivable_account_id)
        customer = self.session.get(Customer, invoice.customer_id)
        account = self._accounts.receivable_for(customer) if customer else None
        if account is not None:
            invoice.receivable_account_id = account.id
        return account

    def _income_account(self, invoice: Invoice) -> Account | None:
        if invoice.income_account_id is not None:
            return self.session.get(Account, invoice.income_account_id)
        service = invoice.lines[0].service if invoice.lines else None
        if service is not None:
            account = self._accounts.income_for(service)
        else:
            account = self._accounts.tenant_account(INCOME)
        if account is not None:
            invoice.income_account_id = account.id
        return account

    def _post_invoice(self, invoice: Invoice, actor_id: UUID) -> list[str]:
        """Dr receivable / Cr income for the invoice total, keyed by number."""
        if self._ledger.has_entries(invoice.invoice_number):
            return []

        receivable = self._receivable_account(invoice)
        income = self._income_account(invoice)
        warnings = []
        if receivable is None:
            warnings.append(MISSING_RECEIVABLE)
        if income is None:
            warnings.append(MISSING_INCOME)
        if warnings:
            logger.warning(
                "invoice_posting_skipped",
                extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "reasons": warnings,
                },
            )
            return warnings

        self._ledger.post(
            source_key=invoice.invoice_number,
            source_type=SourceType.INVOICE,
            debit_account_id=receivable.id,
            credit_account_id=income.id,
            amount=invoice.total_amount,
            transaction_date=invoice.invoice_date,
            actor_id=actor_id,
            narration=f"Invoice {invoice.invoice_number}",
        )
        return []

    def _create_receipt(
        self, invoice: Invoice, actor_id: UUID
    ) -> tuple[str | None, list[str]]:
        """Receipt voucher for the full invoice total: Dr cash / Cr receivable."""
        existing = self.receipt_for(invoice.id)
        if existing is not None:
            return existing.voucher_number, []

        cash = self._accounts.cash()
        receivable = self._receivable_account(invoice)
        warnings = []
        if cash is None:
            warnings.append(MISSING_CASH)
        if receivable is None:
            warnings.append(MISSING_RECEIVABLE)
        if warnings:
            logger.warning(
                "receipt_voucher_skipped",
                extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "reasons": warnings,
                },
            )
            return None, warnings

        voucher = ReceiptVoucher(
            voucher_number=self._numbering.next_receipt_number(),
            invoice_id=invoice.id,
            customer_id=invoice.customer_id,
            receipt_date=self._clock.today(),
            amount=invoice.total_amount,
            cash_account_id=cash.id,
            receivable_account_id=receivable.id,
            status="posted",
            created_by_id=actor_id,
        )
        self.session.add(voucher)
        self.session.flush()

        self._ledger.post(
            source_key=voucher.voucher_number,
            source_type=SourceType.RECEIPT,
            debit_account_id=cash.id,
            credit_account_id=receivable.id,
            amount=voucher.amount,
            transaction_date=voucher.receipt_date,
            actor_id=actor_id,
            narration=f"Receipt against {invoice.invoice_number}",
        )

        invoice.paid_amount = invoice.total_amount
        invoice.balance_due = ZERO
        self.session.flush()

        logger.info(
            "receipt_voucher_created",
            extra={
                "invoice_id": str(invoice.id),
                "voucher_number": voucher.voucher_number,
                "amount": str(voucher.amount),
            },
        )
        return voucher.voucher_number, []

    def _remove_receipt(self, invoice: Invoice) -> bool:
        voucher = self.receipt_for(invoice.id)
        if voucher is None:
            return False

        self._ledger.unpost(voucher.voucher_number)
        self.session.delete(voucher)
        invoice.paid_amount = Decimal("0")
        invoice.balance_due = invoice.total_amount
        self.session.flush()

        logger.info(
            "receipt_voucher_removed",
            extra={
                "invoice_id": str(invoice.id),
                "voucher_number": voucher.voucher_number,
            },
        )
        return True
