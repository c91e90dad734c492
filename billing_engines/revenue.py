"""
Module: billing_engines.revenue
Responsibility:
    Accumulate admitted sales amounts (allocated nightly buckets and add-on
    amounts) per scope key into period and cumulative sums.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - period_sales(key)     = sum of amounts dated in [period_start, period_end]
    - cumulative_sales(key) = sum of amounts dated on or before period_end
    - Keys are produced only by ``ScopeLevel.key_for``; one ``add`` call feeds
      every requested level, so the client, hotel and portfolio views see
      the same amounts.
    - Accumulation is incremental: lines are folded in one at a time and
      never retained, so callers can stream facts of any length.

Non-goals:
    - Inclusion filtering.  Callers pass only amounts already admitted by
      ``billing_engines.inclusion.InclusionPolicy``.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from billing_kernel.domain.scope import ScopeKey, ScopeLevel

ZERO = Decimal("0")


@dataclass
class SalesTotals:
    """Running sales sums for one scope key."""

    period_sales: Decimal = ZERO
    cumulative_sales: Decimal = ZERO
    period_line_count: int = 0
    period_by_rate: dict[Decimal, Decimal] = field(default_factory=dict)

    @property
    def touched(self) -> bool:
        return self.period_line_count > 0


DailyKey = tuple[date, int, UUID, Decimal]


class RevenueAggregator:
    """
    Group-by-key (and optionally group-by-date) sales accumulator.

    Usage:
        revenue = RevenueAggregator(start, end, levels=(ScopeLevel.CLIENT,))
        revenue.add(hotel_id, client_id, night, Decimal("0.10"), Decimal("7000"))
        revenue.totals(ScopeKey.client(hotel_id, client_id)).period_sales
    """

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
        self._totals: dict[ScopeKey, SalesTotals] = {}
        self._daily: dict[DailyKey, Decimal] = defaultdict(lambda: ZERO)

    def in_period(self, on_date: date) -> bool:
        return self.period_start <= on_date <= self.period_end

    def add(
        self,
        hotel_id: int,
        client_id: UUID,
        on_date: date,
        tax_rate: Decimal,
        amount: Decimal,
    ) -> None:
        """Fold one admitted amount into every level's key."""
        if on_date > self.period_end:
            return
        in_period = self.in_period(on_date)

        for level in self.levels:
            key = level.key_for(hotel_id, client_id)
            totals = self._totals.get(key)
            if totals is None:
                totals = self._totals[key] = SalesTotals()
            totals.cumulative_sales += amount
            if in_period:
                totals.period_sales += amount
                totals.period_line_count += 1
                totals.period_by_rate[tax_rate] = (
                    totals.period_by_rate.get(tax_rate, ZERO) + amount
                )

        if in_period and self.track_daily:
            self._daily[(on_date, hotel_id, client_id, tax_rate)] += amount

    def totals(self, key: ScopeKey) -> SalesTotals:
        return self._totals.get(key) or SalesTotals()

    def keys(self) -> Iterator[ScopeKey]:
        return iter(self._totals)

    def daily(self) -> dict[DailyKey, Decimal]:
        """Per (date, hotel, client, tax rate) period sales."""
        return dict(self._daily)
