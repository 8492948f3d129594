"""
Tests for BillingEngine -- exactly-once invoice emission.

Scenario: a monthly bookkeeping period priced at 1000 is completed on
13 Oct 2025 and billed once; later triggers are no-ops until the invoice
is removed.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from practice_kernel.domain.dtos import BillingOutcome, OwnerKind, OwnerRef
from practice_kernel.exceptions import InvoiceSourceMissingError, WorkIsRecurringError
from practice_kernel.models.directory import CustomerServicePrice
from practice_kernel.models.invoice import Invoice
from practice_kernel.models.ledger import Account
from practice_kernel.services.billing_engine import MISSING_PRICE, BillingEngine


@pytest.fixture
def engine_(session, clock, settings):
    clock.set_date(date(2025, 10, 13))
    return BillingEngine(session, clock, settings)


@pytest.fixture
def completed_period(make_period, complete_all):
    """Factory: first period of a fresh work with every task completed."""

    def _make(**work_fields):
        period = make_period(**work_fields)
        complete_all(period)
        return period

    return _make


def owner(period):
    return OwnerRef(OwnerKind.PERIOD, period.id)


def invoice_count(session):
    return session.execute(select(func.count(Invoice.id))).scalar_one()


class TestInvoiceEmission:
    def test_completed_period_is_invoiced(self, session, engine_, completed_period, test_actor_id):
        period = completed_period()

        decision = engine_.on_completion_reached(owner(period), test_actor_id)

        assert decision.outcome == BillingOutcome.INVOICED
        assert decision.invoice_number == "INV-000001"
        assert decision.total == Decimal("1000.00")

        invoice = session.get(Invoice, decision.invoice_id)
        assert invoice.status == "draft"
        assert invoice.invoice_date == date(2025, 10, 13)
        assert invoice.due_date == date(2025, 11, 12)
        assert invoice.period_id == period.id
        assert invoice.work_id == period.work_id
        assert invoice.balance_due == invoice.total_amount
        assert [line.description for line in invoice.lines] == ["Bookkeeping - October 2025"]

        assert period.is_billed is True
        assert period.invoice_id == invoice.id

    def test_second_trigger_is_already_billed(self, session, engine_, completed_period):
        period = completed_period()
        first = engine_.on_completion_reached(owner(period))

        second = engine_.on_completion_reached(owner(period))

        assert second.outcome == BillingOutcome.ALREADY_BILLED
        assert second.invoice_id == first.invoice_id
        assert invoice_count(session) == 1

    def test_incomplete_period_not_invoiced(self, session, engine_, make_period):
        period = make_period()

        decision = engine_.on_completion_reached(owner(period))

        assert decision.outcome == BillingOutcome.NOT_COMPLETE
        assert invoice_count(session) == 0

    def test_auto_bill_disabled(self, session, engine_, completed_period):
        period = completed_period(auto_bill=False)

        decision = engine_.on_completion_reached(owner(period))

        assert decision.outcome == BillingOutcome.AUTO_BILL_DISABLED
        assert period.is_billed is False
        assert invoice_count(session) == 0

    def test_missing_price_recorded_on_owner(self, session, engine_, completed_period, captured_logs):
        period = completed_period(billing_amount=None)

        decision = engine_.on_completion_reached(owner(period))

        assert decision.outcome == BillingOutcome.NO_PRICE
        assert period.billing_block_reason == MISSING_PRICE
        assert period.is_billed is False
        assert invoice_count(session) == 0
        warnings = [r for r in captured_logs() if r["message"] == "billing_skipped_missing_price"]
        assert warnings and warnings[0]["level"] == "WARNING"

    def test_zero_task_period_invoiced_after_explicit_completion(
        self, engine_, tracker, make_period, tasks_of, test_actor_id
    ):
        period = make_period()
        for task in tasks_of(period):
            tracker.delete_task(task.id)
        assert engine_.on_completion_reached(owner(period)).outcome == BillingOutcome.NOT_COMPLETE

        tracker.complete_owner(owner(period), test_actor_id)
        decision = engine_.on_completion_reached(owner(period), test_actor_id)

        assert decision.invoiced

    def test_one_off_work_is_its_own_owner(self, session, engine_, tracker, make_work, test_actor_id):
        work = make_work(is_recurring=False, title="Annual audit", billing_amount=Decimal("2500"))
        work_owner = OwnerRef(OwnerKind.WORK, work.id)
        task, _ = tracker.add_task(work_owner, "Fieldwork", test_actor_id)
        tracker.set_status(task.id, "completed", test_actor_id)

        decision = engine_.on_completion_reached(work_owner, test_actor_id)

        invoice = session.get(Invoice, decision.invoice_id)
        assert invoice.period_id is None
        assert invoice.total_amount == Decimal("2500.00")
        assert invoice.lines[0].description == "Bookkeeping - Annual audit"
        assert work.is_billed is True

    def test_recurring_work_cannot_be_billed_directly(self, session, engine_, make_work, test_actor_id):
        work = make_work()
        work.status = "completed"
        session.flush()

        with pytest.raises(WorkIsRecurringError):
            engine_.on_completion_reached(OwnerRef(OwnerKind.WORK, work.id), test_actor_id)

        assert session.execute(select(func.count(Invoice.id))).scalar_one() == 0
        assert work.is_billed is False


class TestPricing:
    def test_customer_override_wins(self, session, engine_, customer, service, completed_period, test_actor_id):
        session.add(
            CustomerServicePrice(
                customer_id=customer.id,
                service_id=service.id,
                price=Decimal("750"),
                created_by_id=test_actor_id,
            )
        )
        period = completed_period()

        decision = engine_.on_completion_reached(owner(period))

        assert decision.subtotal == Decimal("750.00")

    def test_period_amount_beats_work_amount(self, engine_, completed_period):
        period = completed_period()
        period.billing_amount = Decimal("900")

        decision = engine_.on_completion_reached(owner(period))

        assert decision.subtotal == Decimal("900.00")

    def test_service_default_when_work_unpriced(self, engine_, service, completed_period):
        service.default_price = Decimal("1200")
        period = completed_period(billing_amount=None)

        decision = engine_.on_completion_reached(owner(period))

        assert decision.subtotal == Decimal("1200.00")

    def test_tax_at_service_rate(self, session, engine_, service, completed_period):
        service.tax_rate = Decimal("18")
        period = completed_period()

        decision = engine_.on_completion_reached(owner(period))

        assert decision.tax_amount == Decimal("180.00")
        assert decision.total == Decimal("1180.00")
        invoice = session.get(Invoice, decision.invoice_id)
        assert invoice.lines[0].tax_rate == Decimal("18")

    def test_service_payment_terms(self, session, engine_, service, completed_period):
        service.payment_terms = "net_15"
        period = completed_period()

        decision = engine_.on_completion_reached(owner(period))

        assert session.get(Invoice, decision.invoice_id).due_date == date(2025, 10, 28)


class TestAccounts:
    def test_customer_receivable_created_on_first_need(self, session, engine_, customer, completed_period):
        period = completed_period()

        decision = engine_.on_completion_reached(owner(period))

        account = session.get(Account, customer.receivable_account_id)
        assert account.code == "AR-ACME"
        assert session.get(Invoice, decision.invoice_id).receivable_account_id == account.id

    def test_income_account_from_tenant_mapping(self, session, engine_, accounts, completed_period):
        period = completed_period()

        decision = engine_.on_completion_reached(owner(period))

        assert session.get(Invoice, decision.invoice_id).income_account_id == accounts["income"].id


class TestInvoiceRemoval:
    def test_owner_reset_allows_rebilling(self, session, engine_, completed_period):
        period = completed_period()
        first = engine_.on_completion_reached(owner(period))
        invoice = session.get(Invoice, first.invoice_id)

        reset = engine_.on_invoice_removed(invoice)
        session.delete(invoice)
        session.flush()

        assert reset == owner(period)
        assert period.is_billed is False
        assert period.invoice_id is None

        second = engine_.on_completion_reached(owner(period))
        assert second.invoiced
        assert second.invoice_number == "INV-000002"

    def test_unlinked_invoice_resets_nothing(self, session, engine_, completed_period):
        period = completed_period()
        decision = engine_.on_completion_reached(owner(period))
        invoice = session.get(Invoice, decision.invoice_id)
        period.invoice_id = None
        period.is_billed = False
        session.flush()

        assert engine_.on_invoice_removed(invoice) is None

    def test_verify_source_detects_deleted_period(self, session, engine_, generator, completed_period):
        period = completed_period()
        decision = engine_.on_completion_reached(owner(period))
        invoice = session.get(Invoice, decision.invoice_id)

        generator.remove_period(period)

        with pytest.raises(InvoiceSourceMissingError) as exc_info:
            engine_.verify_source(invoice)
        assert exc_info.value.period_id == str(invoice.period_id)
