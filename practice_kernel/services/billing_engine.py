"""
BillingEngine -- exactly-once invoice emission per billing owner.

Responsibility:
    React to an owner (period or one-off work) reaching completion by
    deciding whether to invoice it, computing the amounts, creating the
    draft invoice, and recording the owner's ``is_billed`` / ``invoice_id``
    linkage.  React to an invoice being removed by resetting that linkage
    so the owner can be billed again.

Architecture position:
    Kernel > Services.  Invoked by PracticeBillingService after a
    TaskTracker recount reports ``became_complete``, or after explicit
    period completion.  The only writer of the owner billing columns.

Invariants enforced:
    - Exactly once: an owner with is_billed set is never invoiced again
      until ``on_invoice_removed`` clears the flag.  The flag, not the
      existence of some invoice row, is the billed check.
    - Atomic linkage: invoice creation and flag update share a SAVEPOINT;
      either both persist or neither does.
    - Guards, in order: not complete, already billed, auto-bill off, no
      positive price.  Each is a logged no-op, never an exception.
    - Amounts from billing_policy: price precedence, tax rounding,
      total = subtotal + tax, due date from payment terms.

Failure modes:
    - InvoiceSourceMissingError from ``verify_source`` when an invoice's
      work or period has vanished.
    - Database errors inside the SAVEPOINT propagate after rollback of the
      savepoint; the owner stays unbilled.

Audit relevance:
    ``invoice_emitted`` and every skip reason are logged with owner id;
    configuration gaps additionally record ``billing_block_reason`` on the
    owner so they surface as "not billed - missing price".
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from practice_kernel.domain.billing_policy import (
    PriceCandidates,
    compute_amounts,
    due_date_for,
    parse_payment_terms,
    resolve_price,
)
from practice_kernel.domain.clock import Clock
from practice_kernel.domain.dtos import (
    BillingDecision,
    BillingOutcome,
    OwnerKind,
    OwnerRef,
)
from practice_kernel.domain.invoice_transitions import InvoiceStatus
from practice_kernel.domain.settings import KernelSettings
from practice_kernel.exceptions import InvoiceSourceMissingError
from practice_kernel.logging_config import get_logger
from practice_kernel.models.directory import CustomerServicePrice
from practice_kernel.models.invoice import Invoice, InvoiceLine
from practice_kernel.models.period import Period
from practice_kernel.models.work import OwnerStatus, Work
from practice_kernel.services.account_resolver import AccountResolver
from practice_kernel.services.base import BaseService
from practice_kernel.services.numbering_service import NumberingService
from practice_kernel.services.task_tracker import TaskTracker

logger = get_logger("services.billing_engine")

MISSING_PRICE = "missing price"


class BillingEngine(BaseService):
    """
    Billing decisions for periods and one-off works.

    Contract:
        ``on_completion_reached`` is safe to call any number of times for
        the same owner; only the first call after completion (or after an
        invoice removal) creates an invoice.

    Non-goals:
        - Multi-line or multi-currency invoices.
        - Posting to the ledger (invoices start as draft).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        settings: KernelSettings,
    ):
        super().__init__(session)
        self._clock = clock
        self._settings = settings
        self._numbering = NumberingService(session, settings)
        self._accounts = AccountResolver(session, settings)
        self._tracker = TaskTracker(session, clock)

    def on_completion_reached(
        self, owner: OwnerRef, actor_id: UUID | None = None
    ) -> BillingDecision:
        """
        Evaluate billing for an owner that has just become complete.

        Postconditions:
            - outcome INVOICED: a draft invoice exists, the owner has
              is_billed=True and invoice_id pointing to it.
            - any other outcome: nothing was created.
        """
        actor_id = actor_id or self._settings.system_actor_id
        row = self._tracker.load_owner(owner)

        if row.status != OwnerStatus.COMPLETED.value:
            return self._skip(owner, BillingOutcome.NOT_COMPLETE)

        if row.is_billed:
            return BillingDecision(
                outcome=BillingOutcome.ALREADY_BILLED,
                owner=owner,
                invoice_id=row.invoice_id,
                reason="owner already billed",
            )

        period = row if owner.kind == OwnerKind.PERIOD else None
        work = row.work if period is not None else row
        service = work.service
        customer = work.customer

        if not work.auto_bill:
            return self._skip(owner, BillingOutcome.AUTO_BILL_DISABLED)

        price = resolve_price(
            PriceCandidates(
                customer_override=self._customer_price(customer.id, service.id),
                period_amount=period.billing_amount if period is not None else None,
                work_amount=work.billing_amount,
                service_default=service.default_price,
            )
        )
        if not price.is_billable:
            row.billing_block_reason = MISSING_PRICE
            self.session.flush()
            logger.warning(
                "billing_skipped_missing_price",
                extra={
                    "owner_kind": owner.kind.value,
                    "owner_id": str(owner.owner_id),
                    "work_id": str(work.id),
                    "price_source": price.source.value,
                },
            )
            return BillingDecision(
                outcome=BillingOutcome.NO_PRICE,
                owner=owner,
                reason=MISSING_PRICE,
            )

        amounts = compute_amounts(price.amount, service.tax_rate)
        terms = parse_payment_terms(
            service.payment_terms, self._settings.default_payment_terms
        )
        invoice_date = self._clock.today()
        label = period.name if period is not None else work.title
        receivable = self._accounts.receivable_for(customer)
        income = self._accounts.income_for(service)

        with self.session.begin_nested():
            invoice = Invoice(
                invoice_number=self._numbering.next_invoice_number(),
                customer_id=customer.id,
                work_id=work.id,
                period_id=period.id if period is not None else None,
                invoice_date=invoice_date,
                due_date=due_date_for(invoice_date, terms),
                subtotal=amounts.subtotal,
                tax_amount=amounts.tax_amount,
                total_amount=amounts.total,
                paid_amount=0,
                balance_due=amounts.total,
                status=InvoiceStatus.DRAFT.value,
                receivable_account_id=receivable.id if receivable else None,
                income_account_id=income.id if income else None,
                created_by_id=actor_id,
            )
            invoice.lines.append(
                InvoiceLine(
                    line_number=1,
                    service_id=service.id,
                    description=f"{service.name} - {label}",
                    quantity=1,
                    unit_price=amounts.subtotal,
                    tax_rate=amounts.tax_rate,
                    amount=amounts.subtotal,
                    created_by_id=actor_id,
                )
            )
            self.session.add(invoice)
            self.session.flush()

            row.is_billed = True
            row.invoice_id = invoice.id
            row.billing_block_reason = None
            self.session.flush()

        logger.info(
            "invoice_emitted",
            extra={
                "owner_kind": owner.kind.value,
                "owner_id": str(owner.owner_id),
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "subtotal": str(amounts.subtotal),
                "tax_amount": str(amounts.tax_amount),
                "total": str(amounts.total),
                "price_source": price.source.value,
                "payment_terms": terms.value,
            },
        )
        return BillingDecision(
            outcome=BillingOutcome.INVOICED,
            owner=owner,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            subtotal=amounts.subtotal,
            tax_amount=amounts.tax_amount,
            total=amounts.total,
        )

    def on_invoice_removed(self, invoice: Invoice) -> OwnerRef | None:
        """
        Reset billing linkage of every owner that points at ``invoice``.

        Returns the owner that was reset, or None for an invoice that was
        never auto-billed.
        """
        reset: OwnerRef | None = None

        periods = self.session.execute(
            select(Period).where(Period.invoice_id == invoice.id).with_for_update()
        ).scalars().all()
        for period in periods:
            period.is_billed = False
            period.invoice_id = None
            reset = OwnerRef(OwnerKind.PERIOD, period.id)

        works = self.session.execute(
            select(Work).where(Work.invoice_id == invoice.id).with_for_update()
        ).scalars().all()
        for work in works:
            work.is_billed = False
            work.invoice_id = None
            reset = OwnerRef(OwnerKind.WORK, work.id)

        self.session.flush()
        if reset is not None:
            logger.info(
                "owner_billing_reset",
                extra={
                    "owner_kind": reset.kind.value,
                    "owner_id": str(reset.owner_id),
                    "invoice_id": str(invoice.id),
                },
            )
        return reset

    def verify_source(self, invoice: Invoice) -> None:
        """
        Raise if the work or period this invoice was billed from is gone.

        Invoices created outside the engine (no work, no period) pass.
        """
        missing = (
            invoice.work_id is not None
            and self.session.get(Work, invoice.work_id) is None
        ) or (
            invoice.period_id is not None
            and self.session.get(Period, invoice.period_id) is None
        )
        if missing:
            raise InvoiceSourceMissingError(
                str(invoice.id),
                str(invoice.work_id) if invoice.work_id else None,
                str(invoice.period_id) if invoice.period_id else None,
            )

    def _customer_price(self, customer_id: UUID, service_id: UUID):
        return self.session.execute(
            select(CustomerServicePrice.price).where(
                CustomerServicePrice.customer_id == customer_id,
                CustomerServicePrice.service_id == service_id,
            )
        ).scalar_one_or_none()

    def _skip(self, owner: OwnerRef, outcome: BillingOutcome) -> BillingDecision:
        logger.info(
            "billing_skipped",
            extra={
                "owner_kind": owner.kind.value,
                "owner_id": str(owner.owner_id),
                "outcome": outcome.value,
            },
        )
        return BillingDecision(outcome=outcome, owner=owner, reason=outcome.value)
