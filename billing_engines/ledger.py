"""
Module: billing_engines.ledger
Responsibility:
    Turn per-date sales and payment accumulations into ledger rows for the
    downstream accounting export.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - One row per (date, hotel, client, tax rate) for sales and one row per
      (date, hotel, client) for payments (tax rate None).
    - Row order is total and deterministic: date, hotel, client id, then
      tax rate descending with the payment row last.  The same fact snapshot
      always yields the same row sequence.
    - A sales or payment group whose amount sums to zero yields no row.
    - ``tax_amount`` is the tax contained in a tax-inclusive sales amount:
      ``amount * rate / (1 + rate)``, floored to the currency's minor unit.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from uuid import UUID

from billing_engines.tracer import traced_engine
from billing_kernel.domain.values import Currency

ZERO = Decimal("0")


@dataclass(frozen=True)
class LedgerRow:
    date: date
    hotel_id: int
    client_id: UUID
    tax_rate: Decimal | None
    sales_amount: Decimal
    tax_amount: Decimal
    payment_amount: Decimal

    def sort_key(self) -> tuple:
        return (
            self.date,
            self.hotel_id,
            str(self.client_id),
            self.tax_rate is None,
            -(self.tax_rate or ZERO),
        )


def included_tax(amount: Decimal, tax_rate: Decimal, currency: Currency) -> Decimal:
    """Tax contained in a tax-inclusive amount."""
    return currency.quantize(amount * tax_rate / (1 + tax_rate), rounding=ROUND_FLOOR)


@traced_engine("ledger", "1.0")
def build_ledger_rows(
    daily_sales: Mapping[tuple[date, int, UUID, Decimal], Decimal],
    daily_payments: Mapping[tuple[date, int, UUID], Decimal],
    currency: Currency,
) -> list[LedgerRow]:
    rows = [
        LedgerRow(
            date=on_date,
            hotel_id=hotel_id,
            client_id=client_id,
            tax_rate=tax_rate,
            sales_amount=currency.quantize(amount),
            tax_amount=included_tax(amount, tax_rate, currency),
            payment_amount=ZERO,
        )
        for (on_date, hotel_id, client_id, tax_rate), amount in daily_sales.items()
        if amount != ZERO
    ]
    rows.extend(
        LedgerRow(
            date=on_date,
            hotel_id=hotel_id,
            client_id=client_id,
            tax_rate=None,
            sales_amount=ZERO,
            tax_amount=ZERO,
            payment_amount=currency.quantize(value),
        )
        for (on_date, hotel_id, client_id), value in daily_payments.items()
        if value != ZERO
    )
    rows.sort(key=LedgerRow.sort_key)
    return rows
