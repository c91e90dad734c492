"""
Module: billing_engines.pipeline
Responsibility:
    Wire the inclusion policy, rate allocator, revenue and payment
    aggregators and the reconciliation classifier into one pass over the
    raw fact streams.  Every caller (client/hotel/portfolio reconcile, the
    hotel overview, the per-reservation drill-down and the ledger export)
    goes through ``ReconciliationPipeline.run``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Facts arrive as iterables
    of DTOs; the pipeline consumes each stream exactly once.

Invariants enforced:
    - One pass, many levels: each admitted amount is folded into every
      requested scope level by the same ``add`` call, so rollups hold.
    - Orphan lines (reservation missing, or owned by a different hotel) and
      lines whose allocation violates conservation are excluded from every
      scope, logged, and reported in ``ReconciliationReport.exclusions``.
      They never abort the computation.
    - Representative check-in per key is the earliest check-in among
      reservations that contributed an admitted charge or a payment.

Failure modes:
    - InvalidPeriodError when period_start > period_end.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from billing_engines.inclusion import InclusionPolicy
from billing_engines.ledger import LedgerRow, build_ledger_rows
from billing_engines.payments import PaymentAggregator, PaymentTotals
from billing_engines.rate_allocation import RateAllocator
from billing_engines.reconciliation import (
    ReconciliationResult,
    ReconciliationStatus,
    build_result,
)
from billing_engines.revenue import RevenueAggregator, SalesTotals
from billing_engines.tracer import traced_engine
from billing_kernel.domain.facts import (
    AddonChargeLine,
    NightlyChargeLine,
    PaymentLine,
    RateOverrideLine,
    ReservationFact,
)
from billing_kernel.domain.scope import ScopeKey, ScopeLevel
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import (
    AllocationInvariantError,
    BillingKernelError,
    InvalidPeriodError,
    MissingReferenceError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.pipeline")


@dataclass(frozen=True)
class ExcludedLine:
    """A fact line dropped from every scope because it failed a check."""

    line_type: str
    line_id: str
    reservation_id: str
    code: str
    message: str


@dataclass(frozen=True)
class ReconciliationReport:
    """Results per scope key for one period, plus the excluded lines."""

    period_start: date
    period_end: date
    levels: tuple[ScopeLevel, ...]
    results: Mapping[ScopeKey, ReconciliationResult]
    exclusions: tuple[ExcludedLine, ...] = ()
    ledger_rows: tuple[LedgerRow, ...] = ()

    def for_level(self, level: ScopeLevel) -> list[ReconciliationResult]:
        """Results of one level in deterministic key order."""
        return sorted(
            (r for r in self.results.values() if r.scope.level is level),
            key=lambda r: r.scope.sort_key(),
        )

    def get(self, key: ScopeKey) -> ReconciliationResult | None:
        return self.results.get(key)


@dataclass(frozen=True)
class ReservationBreakdown:
    """Drill-down figures for a single reservation."""

    reservation: ReservationFact
    period_start: date
    period_end: date
    period_sales: Money
    cumulative_sales: Money
    period_payments: Money
    advance_payments: Money
    settlement_payments: Money
    cumulative_payments: Money
    brought_forward_balance: Money
    difference: Money
    cumulative_difference: Money
    status: ReconciliationStatus
    sales_by_rate: tuple[tuple[Decimal, Money], ...] = ()
    exclusions: tuple[ExcludedLine, ...] = ()


class ReconciliationPipeline:
    """
    Pure reconciliation over fact iterables.

    Contract:
        Deterministic: identical fact sets yield equal reports regardless of
        the order the lines arrive in.
    Non-goals:
        - Does not load facts; see ``billing_kernel.selectors.FactSelector``.
        - Does not check rollups; see ``billing_engines.rollup``.
    """

    def __init__(
        self,
        policy: InclusionPolicy,
        allocator: RateAllocator,
        tolerance: Decimal,
    ):
        self.policy = policy
        self.allocator = allocator
        self.tolerance = tolerance

    @property
    def currency(self) -> Currency:
        return self.allocator.currency

    @traced_engine(
        "reconciliation",
        "1.0",
        fingerprint_fields=("levels", "period_start", "period_end"),
    )
    def run(
        self,
        *,
        levels: Sequence[ScopeLevel],
        period_start: date,
        period_end: date,
        reservations: Mapping[UUID, ReservationFact],
        charges: Iterable[tuple[NightlyChargeLine, Sequence[RateOverrideLine]]],
        addons: Iterable[AddonChargeLine] = (),
        payments: Iterable[PaymentLine] = (),
        build_ledger: bool = False,
    ) -> ReconciliationReport:
        if period_start > period_end:
            raise InvalidPeriodError(str(period_start), str(period_end))

        levels = tuple(levels)
        revenue = RevenueAggregator(
            period_start, period_end, levels, track_daily=build_ledger,
        )
        collected = PaymentAggregator(
            period_start, period_end, levels, track_daily=build_ledger,
        )
        check_ins: dict[ScopeKey, date] = {}
        exclusions: list[ExcludedLine] = []

        def observe_check_in(reservation: ReservationFact) -> None:
            for level in levels:
                key = level.key_for(reservation.hotel_id, reservation.client_id)
                current = check_ins.get(key)
                if current is None or reservation.check_in < current:
                    check_ins[key] = reservation.check_in

        for line, overrides in charges:
            try:
                reservation = self._resolve("nightly_charge", line, reservations)
                if not self.policy.admits_charge(line, reservation, period_end):
                    continue
                allocation = self.allocator.allocate(line, overrides)
            except (MissingReferenceError, AllocationInvariantError) as exc:
                exclusions.append(self._exclude("nightly_charge", line, exc))
                continue

            for bucket in allocation.buckets:
                revenue.add(
                    reservation.hotel_id,
                    reservation.client_id,
                    line.date,
                    bucket.tax_rate,
                    bucket.amount,
                )
            observe_check_in(reservation)

        for addon in addons:
            try:
                reservation = self._resolve("addon", addon, reservations)
            except MissingReferenceError as exc:
                exclusions.append(self._exclude("addon", addon, exc))
                continue
            if not self.policy.admits_addon(addon, reservation, period_end):
                continue
            revenue.add(
                reservation.hotel_id,
                reservation.client_id,
                addon.date,
                self.allocator.effective_rate(addon.tax_rate),
                self.currency.quantize(addon.amount),
            )
            observe_check_in(reservation)

        for payment in payments:
            try:
                reservation = self._resolve("payment", payment, reservations)
            except MissingReferenceError as exc:
                exclusions.append(self._exclude("payment", payment, exc))
                continue
            if payment.date > period_end:
                continue
            check_in = payment.check_in or reservation.check_in
            collected.add(
                reservation.hotel_id,
                reservation.client_id,
                payment.date,
                check_in,
                payment.value,
            )
            observe_check_in(reservation)

        keys = set(revenue.keys()) | set(collected.keys())
        if ScopeLevel.PORTFOLIO in levels:
            keys.add(ScopeKey.portfolio())

        results = {
            key: build_result(
                scope=key,
                period_start=period_start,
                period_end=period_end,
                sales=revenue.totals(key),
                payments=collected.totals(key),
                representative_check_in=check_ins.get(key),
                currency=self.currency,
                tolerance=self.tolerance,
            )
            for key in sorted(keys, key=ScopeKey.sort_key)
        }

        ledger_rows: tuple[LedgerRow, ...] = ()
        if build_ledger:
            ledger_rows = tuple(build_ledger_rows(
                revenue.daily(), collected.daily(), self.currency,
            ))

        logger.info("reconciliation_computed", extra={
            "levels": [level.value for level in levels],
            "period_start": period_start,
            "period_end": period_end,
            "result_count": len(results),
            "exclusion_count": len(exclusions),
        })

        return ReconciliationReport(
            period_start=period_start,
            period_end=period_end,
            levels=levels,
            results=results,
            exclusions=tuple(sorted(
                exclusions, key=lambda e: (e.line_type, e.line_id),
            )),
            ledger_rows=ledger_rows,
        )

    def empty_result(
        self, key: ScopeKey, period_start: date, period_end: date,
    ) -> ReconciliationResult:
        """Result for a key with no facts at all."""
        if period_start > period_end:
            raise InvalidPeriodError(str(period_start), str(period_end))
        return build_result(
            scope=key,
            period_start=period_start,
            period_end=period_end,
            sales=SalesTotals(),
            payments=PaymentTotals(),
            representative_check_in=None,
            currency=self.currency,
            tolerance=self.tolerance,
        )

    def breakdown(
        self,
        *,
        reservation: ReservationFact,
        period_start: date,
        period_end: date,
        charges: Iterable[tuple[NightlyChargeLine, Sequence[RateOverrideLine]]],
        addons: Iterable[AddonChargeLine] = (),
        payments: Iterable[PaymentLine] = (),
    ) -> ReservationBreakdown:
        """
        Drill-down for one reservation.

        ``brought_forward_balance`` is payments minus sales dated strictly
        before ``period_start``.  Status uses the reservation's own check-in.
        """
        report = self.run(
            levels=(ScopeLevel.CLIENT,),
            period_start=period_start,
            period_end=period_end,
            reservations={reservation.id: reservation},
            charges=charges,
            addons=addons,
            payments=payments,
        )
        key = ScopeKey.client(reservation.hotel_id, reservation.client_id)
        result = report.get(key) or self.empty_result(key, period_start, period_end)

        prior_payments = result.cumulative_payments - result.period_payments
        prior_sales = result.cumulative_sales - result.period_sales

        return ReservationBreakdown(
            reservation=reservation,
            period_start=period_start,
            period_end=period_end,
            period_sales=result.period_sales,
            cumulative_sales=result.cumulative_sales,
            period_payments=result.period_payments,
            advance_payments=result.advance_payments,
            settlement_payments=result.settlement_payments,
            cumulative_payments=result.cumulative_payments,
            brought_forward_balance=prior_payments - prior_sales,
            difference=result.difference,
            cumulative_difference=result.cumulative_difference,
            status=result.status,
            sales_by_rate=result.sales_by_rate,
            exclusions=report.exclusions,
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    @staticmethod
    def _resolve(
        fact_type: str,
        line: NightlyChargeLine | AddonChargeLine | PaymentLine,
        reservations: Mapping[UUID, ReservationFact],
    ) -> ReservationFact:
        reservation = reservations.get(line.reservation_id)
        if reservation is None:
            raise MissingReferenceError(
                fact_type=fact_type,
                fact_id=str(line.id),
                reference_type="reservation",
                reference_id=str(line.reservation_id),
            )
        if reservation.hotel_id != line.hotel_id:
            raise MissingReferenceError(
                fact_type=fact_type,
                fact_id=str(line.id),
                reference_type="hotel",
                reference_id=str(line.hotel_id),
            )
        return reservation

    @staticmethod
    def _exclude(
        fact_type: str,
        line: NightlyChargeLine | AddonChargeLine | PaymentLine,
        exc: BillingKernelError,
    ) -> ExcludedLine:
        logger.warning("fact_line_excluded", extra={
            "line_type": fact_type,
            "line_id": str(line.id),
            "reservation_id": str(line.reservation_id),
            "line_hotel_id": line.hotel_id,
            "line_date": line.date,
            "error_code": exc.code,
            "error_message": str(exc),
        })
        return ExcludedLine(
            line_type=fact_type,
            line_id=str(line.id),
            reservation_id=str(line.reservation_id),
            code=exc.code,
            message=str(exc),
        )
