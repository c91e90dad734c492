"""
Module: billing_engines.payments
Responsibility:
    Classify payments as advance or settlement and accumulate period and
    cumulative payment sums per scope key.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - period_payments     = payments dated in [period_start, period_end]
    - advance_payments    = period payments whose stay checks in after period_end
    - settlement_payments = period payments whose stay checks in on or before
      period_end
    - period_payments == advance_payments + settlement_payments, exactly.
      Each period payment lands in exactly one of the two.
    - cumulative_payments = payments dated on or before period_end
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.scope import ScopeKey, ScopeLevel

ZERO = Decimal("0")


class PaymentKind(str, Enum):
    ADVANCE = "advance"
    SETTLEMENT = "settlement"


def classify_payment(check_in: date, period_end: date) -> PaymentKind:
    """Advance if the stay begins after the period, settlement otherwise."""
    if check_in > period_end:
        return PaymentKind.ADVANCE
    return PaymentKind.SETTLEMENT


@dataclass
class PaymentTotals:
    """Running payment sums for one scope key."""

    period_payments: Decimal = ZERO
    advance_payments: Decimal = ZERO
    settlement_payments: Decimal = ZERO
    cumulative_payments: Decimal = ZERO
    period_line_count: int = 0

    @property
    def touched(self) -> bool:
        return self.period_line_count > 0


DailyKey = tuple[date, int, UUID]


class PaymentAggregator:
    """Group-by-key (and optionally group-by-date) payment accumulator."""

    def __init__(
        self,
        period_start: date,
        period_end: date,
        levels: Iterable[ScopeLevel],
        track_daily: bool = False,
    ):
        self.period_start = period_start
        self.period_end = period_end
        self.levels = tuple(levels)
        self.track_daily = track_daily
        self._totals: dict[ScopeKey, PaymentTotals] = {}
        self._daily: dict[DailyKey, Decimal] = defaultdict(lambda: ZERO)

    def add(
        self,
        hotel_id: int,
        client_id: UUID,
        on_date: date,
        check_in: date,
        value: Decimal,
    ) -> None:
        if on_date > self.period_end:
            return
        in_period = self.period_start <= on_date
        kind = classify_payment(check_in, self.period_end)

        for level in self.levels:
            key = level.key_for(hotel_id, client_id)
            totals = self._totals.get(key)
            if totals is None:
                totals = self._totals[key] = PaymentTotals()
            totals.cumulative_payments += value
            if in_period:
                totals.period_payments += value
                totals.period_line_count += 1
                if kind is PaymentKind.ADVANCE:
                    totals.advance_payments += value
                else:
                    totals.settlement_payments += value

        if in_period and self.track_daily:
            self._daily[(on_date, hotel_id, client_id)] += value

    def totals(self, key: ScopeKey) -> PaymentTotals:
        return self._totals.get(key) or PaymentTotals()

    def keys(self) -> Iterator[ScopeKey]:
        return iter(self._totals)

    def daily(self) -> dict[DailyKey, Decimal]:
        """Per (date, hotel, client) period payments."""
        return dict(self._daily)
