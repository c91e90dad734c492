"""
Module: billing_engines.reconciliation
Responsibility:
    Combine sales and payment totals for one scope key into a difference,
    a cumulative difference and a reconciliation status.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``classify`` is a pure function of (cumulative sales, cumulative
      payments, representative check-in, period end, tolerance).  No hidden
      state, no persisted transitions: every status is re-derivable from the
      raw fact streams.
    - Status order: Settled, Outstanding, then AdvancePaid / Overpaid.
    - With the check-in fixed on or before period end, moving the cumulative
      difference from negative to positive passes Outstanding -> Settled ->
      Overpaid exactly once each.

Usage:
    status = classify(
        cumulative_sales=Decimal("10000"),
        cumulative_payments=Decimal("10000"),
        representative_check_in=date(2025, 12, 10),
        period_end=date(2025, 12, 31),
        tolerance=Decimal("1"),
    )
    assert status is ReconciliationStatus.SETTLED
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from billing_engines.payments import PaymentTotals
from billing_engines.revenue import SalesTotals
from billing_kernel.domain.scope import ScopeKey
from billing_kernel.domain.values import Currency, Money


class ReconciliationStatus(str, Enum):
    SETTLED = "settled"
    OUTSTANDING = "outstanding"
    ADVANCE_PAID = "advance_paid"
    OVERPAID = "overpaid"

    @property
    def label(self) -> str:
        """Front-desk label."""
        return _LABELS[self]


_LABELS = {
    ReconciliationStatus.SETTLED: "精算済",
    ReconciliationStatus.OUTSTANDING: "未収あり",
    ReconciliationStatus.ADVANCE_PAID: "事前払い",
    ReconciliationStatus.OVERPAID: "過入金",
}


def compute_difference(
    cumulative_sales: Decimal,
    cumulative_payments: Decimal,
    settlement_payments: Decimal,
    period_sales: Decimal,
    tolerance: Decimal,
) -> Decimal:
    """Zero when the cumulative balance is within tolerance, else settlement minus period sales."""
    if abs(cumulative_payments - cumulative_sales) <= tolerance:
        return Decimal("0")
    return settlement_payments - period_sales


def classify(
    cumulative_sales: Decimal,
    cumulative_payments: Decimal,
    representative_check_in: date | None,
    period_end: date,
    tolerance: Decimal,
) -> ReconciliationStatus:
    cumulative_difference = cumulative_payments - cumulative_sales
    if abs(cumulative_difference) <= tolerance:
        return ReconciliationStatus.SETTLED
    if cumulative_difference < -tolerance:
        return ReconciliationStatus.OUTSTANDING
    if representative_check_in is not None and representative_check_in > period_end:
        return ReconciliationStatus.ADVANCE_PAID
    return ReconciliationStatus.OVERPAID


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Reconciliation figures for one scope key and period.

    Derived, never persisted.  ``touched`` is True when the key had an
    admitted charge or a payment dated inside the period.
    """

    scope: ScopeKey
    period_start: date
    period_end: date
    period_sales: Money
    cumulative_sales: Money
    period_payments: Money
    advance_payments: Money
    settlement_payments: Money
    cumulative_payments: Money
    difference: Money
    cumulative_difference: Money
    status: ReconciliationStatus
    representative_check_in: date | None = None
    touched: bool = False
    sales_by_rate: tuple[tuple[Decimal, Money], ...] = ()

    @property
    def period_balance(self) -> Money:
        """Period payments minus period sales."""
        return self.period_payments - self.period_sales


def build_result(
    scope: ScopeKey,
    period_start: date,
    period_end: date,
    sales: SalesTotals,
    payments: PaymentTotals,
    representative_check_in: date | None,
    currency: Currency,
    tolerance: Decimal,
) -> ReconciliationResult:
    """Assemble a ReconciliationResult from one key's running totals."""
    difference = compute_difference(
        cumulative_sales=sales.cumulative_sales,
        cumulative_payments=payments.cumulative_payments,
        settlement_payments=payments.settlement_payments,
        period_sales=sales.period_sales,
        tolerance=tolerance,
    )
    status = classify(
        cumulative_sales=sales.cumulative_sales,
        cumulative_payments=payments.cumulative_payments,
        representative_check_in=representative_check_in,
        period_end=period_end,
        tolerance=tolerance,
    )

    def money(amount: Decimal) -> Money:
        return Money(amount=amount, currency=currency)

    return ReconciliationResult(
        scope=scope,
        period_start=period_start,
        period_end=period_end,
        period_sales=money(sales.period_sales),
        cumulative_sales=money(sales.cumulative_sales),
        period_payments=money(payments.period_payments),
        advance_payments=money(payments.advance_payments),
        settlement_payments=money(payments.settlement_payments),
        cumulative_payments=money(payments.cumulative_payments),
        difference=money(difference),
        cumulative_difference=money(
            payments.cumulative_payments - sales.cumulative_sales
        ),
        status=status,
        representative_check_in=representative_check_in,
        touched=sales.touched or payments.touched,
        sales_by_rate=tuple(
            (rate, money(amount))
            for rate, amount in sorted(sales.period_by_rate.items(), reverse=True)
        ),
    )
