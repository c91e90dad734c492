"""
Tests for the reconciliation difference and status classifier.

Covers:
- Status order: Settled, Outstanding, AdvancePaid / Overpaid
- Tolerance boundaries
- Difference formula
- Front-desk labels
- build_result assembly
"""

from datetime import date
from decimal import Decimal

import pytest

from billing_engines.payments import PaymentTotals
from billing_engines.reconciliation import (
    ReconciliationStatus,
    build_result,
    classify,
    compute_difference,
)
from billing_engines.revenue import SalesTotals
from billing_kernel.domain.scope import ScopeKey
from billing_kernel.domain.values import Money
from tests.conftest import CLIENT_ID, DEC_END, DEC_START, HOTEL_ID, JPY

ONE = Decimal("1")


def _classify(sales, payments, check_in=date(2025, 12, 10)):
    return classify(
        cumulative_sales=Decimal(sales),
        cumulative_payments=Decimal(payments),
        representative_check_in=check_in,
        period_end=DEC_END,
        tolerance=ONE,
    )


class TestClassify:

    def test_balanced_is_settled(self):
        assert _classify("10000", "10000") is ReconciliationStatus.SETTLED

    def test_within_tolerance_is_settled(self):
        assert _classify("10000", "9999") is ReconciliationStatus.SETTLED
        assert _classify("10000", "10001") is ReconciliationStatus.SETTLED

    def test_underpaid_is_outstanding(self):
        assert _classify("10000", "9998") is ReconciliationStatus.OUTSTANDING

    def test_overpaid_with_past_check_in(self):
        assert _classify("10000", "12000") is ReconciliationStatus.OVERPAID

    def test_overpaid_with_check_in_on_period_end(self):
        assert _classify("0", "5000", check_in=DEC_END) is ReconciliationStatus.OVERPAID

    def test_paid_ahead_of_future_stay_is_advance_paid(self):
        assert (
            _classify("0", "10000", check_in=date(2026, 1, 5))
            is ReconciliationStatus.ADVANCE_PAID
        )

    def test_settled_beats_future_check_in(self):
        assert (
            _classify("0", "0", check_in=date(2026, 1, 5))
            is ReconciliationStatus.SETTLED
        )

    def test_no_check_in_is_overpaid(self):
        assert _classify("0", "5000", check_in=None) is ReconciliationStatus.OVERPAID

    def test_outstanding_ignores_check_in(self):
        assert (
            _classify("10000", "0", check_in=date(2026, 1, 5))
            is ReconciliationStatus.OUTSTANDING
        )


class TestLabels:

    @pytest.mark.parametrize(
        "status, label",
        [
            (ReconciliationStatus.SETTLED, "精算済"),
            (ReconciliationStatus.OUTSTANDING, "未収あり"),
            (ReconciliationStatus.ADVANCE_PAID, "事前払い"),
            (ReconciliationStatus.OVERPAID, "過入金"),
        ],
    )
    def test_label(self, status, label):
        assert status.label == label


class TestComputeDifference:

    def test_zero_when_cumulative_within_tolerance(self):
        diff = compute_difference(
            cumulative_sales=Decimal("10000"),
            cumulative_payments=Decimal("10001"),
            settlement_payments=Decimal("0"),
            period_sales=Decimal("10000"),
            tolerance=ONE,
        )

        assert diff == Decimal("0")

    def test_settlement_minus_period_sales(self):
        diff = compute_difference(
            cumulative_sales=Decimal("15000"),
            cumulative_payments=Decimal("12000"),
            settlement_payments=Decimal("7000"),
            period_sales=Decimal("10000"),
            tolerance=ONE,
        )

        assert diff == Decimal("-3000")


class TestBuildResult:

    def test_assembles_money_fields(self):
        sales = SalesTotals(
            period_sales=Decimal("10000"),
            cumulative_sales=Decimal("10000"),
            period_line_count=2,
            period_by_rate={Decimal("0.08"): Decimal("3000"), Decimal("0.10"): Decimal("7000")},
        )
        payments = PaymentTotals(
            period_payments=Decimal("12000"),
            settlement_payments=Decimal("12000"),
            cumulative_payments=Decimal("12000"),
            period_line_count=1,
        )

        result = build_result(
            scope=ScopeKey.client(HOTEL_ID, CLIENT_ID),
            period_start=DEC_START,
            period_end=DEC_END,
            sales=sales,
            payments=payments,
            representative_check_in=date(2025, 12, 10),
            currency=JPY,
            tolerance=ONE,
        )

        assert result.status is ReconciliationStatus.OVERPAID
        assert result.difference == Money.of("2000", JPY)
        assert result.cumulative_difference == Money.of("2000", JPY)
        assert result.period_balance == Money.of("2000", JPY)
        assert result.touched
        assert result.sales_by_rate == (
            (Decimal("0.10"), Money.of("7000", JPY)),
            (Decimal("0.08"), Money.of("3000", JPY)),
        )

    def test_empty_totals_are_settled_and_untouched(self):
        result = build_result(
            scope=ScopeKey.portfolio(),
            period_start=DEC_START,
            period_end=DEC_END,
            sales=SalesTotals(),
            payments=PaymentTotals(),
            representative_check_in=None,
            currency=JPY,
            tolerance=ONE,
        )

        assert result.status is ReconciliationStatus.SETTLED
        assert result.period_sales.is_zero
        assert not result.touched
