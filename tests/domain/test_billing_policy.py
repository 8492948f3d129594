"""
Tests for practice_kernel.domain.billing_policy.

Price precedence, tax rounding, and payment-term resolution.
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from practice_kernel.domain.billing_policy import (
    PaymentTerms,
    PriceCandidates,
    PriceSource,
    compute_amounts,
    due_date_for,
    parse_payment_terms,
    resolve_price,
)


class TestResolvePrice:
    """First non-null candidate wins, in fixed precedence."""

    def test_customer_override_beats_everything(self):
        price = resolve_price(
            PriceCandidates(
                customer_override=Decimal("750"),
                period_amount=Decimal("900"),
                work_amount=Decimal("1000"),
                service_default=Decimal("1200"),
            )
        )
        assert price.amount == Decimal("750.00")
        assert price.source == PriceSource.CUSTOMER_OVERRIDE

    def test_period_amount_beats_work_amount(self):
        price = resolve_price(
            PriceCandidates(period_amount=Decimal("900"), work_amount=Decimal("1000"))
        )
        assert price.source == PriceSource.PERIOD

    def test_work_amount_beats_service_default(self):
        price = resolve_price(
            PriceCandidates(work_amount=Decimal("1000"), service_default=Decimal("1200"))
        )
        assert price.amount == Decimal("1000.00")
        assert price.source == PriceSource.WORK

    def test_service_default_used_last(self):
        price = resolve_price(PriceCandidates(service_default=Decimal("1200")))
        assert price.source == PriceSource.SERVICE_DEFAULT

    def test_explicit_zero_still_wins(self):
        price = resolve_price(
            PriceCandidates(work_amount=Decimal("0"), service_default=Decimal("1200"))
        )
        assert price.amount == Decimal("0")
        assert price.source == PriceSource.WORK
        assert not price.is_billable

    def test_nothing_set_is_zero(self):
        price = resolve_price(PriceCandidates())
        assert price.amount == Decimal("0")
        assert price.source == PriceSource.NONE
        assert not price.is_billable


class TestComputeAmounts:
    """tax = round(subtotal * rate / 100); total = subtotal + tax."""

    def test_zero_rate(self):
        amounts = compute_amounts(Decimal("1000"), Decimal("0"))
        assert amounts.tax_amount == Decimal("0")
        assert amounts.total == Decimal("1000")

    def test_null_rate_is_zero(self):
        amounts = compute_amounts(Decimal("1000"), None)
        assert amounts.tax_rate == Decimal("0")
        assert amounts.total == Decimal("1000")

    def test_eighteen_percent(self):
        amounts = compute_amounts(Decimal("1000"), Decimal("18"))
        assert amounts.tax_amount == Decimal("180.00")
        assert amounts.total == Decimal("1180.00")

    def test_tax_rounds_half_up_to_cents(self):
        amounts = compute_amounts(Decimal("10.05"), Decimal("5"))
        # 0.5025 -> 0.50
        assert amounts.tax_amount == Decimal("0.50")
        assert amounts.total == Decimal("10.55")

    @given(
        subtotal=st.decimals(min_value=0, max_value=10**9, places=2),
        rate=st.decimals(min_value=0, max_value=100, places=2),
    )
    def test_total_is_subtotal_plus_tax(self, subtotal, rate):
        amounts = compute_amounts(subtotal, rate)
        assert amounts.total == amounts.subtotal + amounts.tax_amount
        assert amounts.tax_amount >= 0


class TestPaymentTerms:
    """Terms resolve to a due date; unknowns fall back to the default."""

    @pytest.mark.parametrize(
        "raw, days",
        [
            ("due_on_receipt", 0),
            ("net_15", 15),
            ("net-30", 30),
            ("NET_45", 45),
            ("net_60", 60),
        ],
    )
    def test_known_terms(self, raw, days):
        terms = parse_payment_terms(raw, PaymentTerms.NET_30)
        assert terms.days == days

    def test_unknown_terms_use_default(self):
        assert parse_payment_terms("net_90", PaymentTerms.NET_15) == PaymentTerms.NET_15

    def test_missing_terms_use_default(self):
        assert parse_payment_terms(None, PaymentTerms.NET_30) == PaymentTerms.NET_30
        assert parse_payment_terms("", PaymentTerms.NET_30) == PaymentTerms.NET_30

    def test_due_date(self):
        assert due_date_for(date(2025, 10, 13), PaymentTerms.NET_30) == date(2025, 11, 12)
        assert due_date_for(date(2025, 10, 13), PaymentTerms.DUE_ON_RECEIPT) == date(2025, 10, 13)
