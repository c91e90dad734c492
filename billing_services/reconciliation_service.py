"""
billing_services.reconciliation_service -- Reconcile sales against payments at any scope.

Responsibility:
    Load the raw fact streams through ``FactSelector`` (optionally via a
    ``FactSnapshotCache``) and run them through the pure
    ``ReconciliationPipeline``.  Exposes the operations collaborators call:

    - ``reconcile``              results for every key of one scope level
    - ``reconcile_scope``        the result for one scope key
    - ``reconcile_reservation``  the per-reservation drill-down
    - ``hotel_overview``         hotel results with their touched clients

Architecture position:
    Services -- orchestration over engines + kernel selectors.
    Reads through the caller's Session; never writes, never commits.

Invariants enforced:
    - One inclusion policy, one allocator and one pipeline per service, so
      every operation admits the same facts.
    - When ``validate_rollups`` is configured, every reconcile computes the
      client, hotel and portfolio levels together and checks the rollup
      before returning.  A mismatch propagates.

Failure modes:
    - InvalidPeriodError: period_start after period_end.
    - ReservationNotFoundError: drill-down on an unknown reservation.
    - ScopeRollupMismatchError: cross-scope sums diverge.

Usage:
    with session_scope() as session:
        service = ReconciliationService(session, get_active_config())
        report = service.reconcile(
            ScopeLevel.CLIENT, date(2025, 12, 1), date(2025, 12, 31),
            hotel_ids=[1],
        )
        for result in report.for_level(ScopeLevel.CLIENT):
            print(result.scope, result.status.label, result.difference)
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from billing_config.schema import BillingConfig
from billing_engines.inclusion import InclusionPolicy
from billing_engines.pipeline import (
    ReconciliationPipeline,
    ReconciliationReport,
    ReservationBreakdown,
)
from billing_engines.rate_allocation import RateAllocator
from billing_engines.reconciliation import ReconciliationResult
from billing_engines.rollup import ScopeRollupValidator
from billing_kernel.domain.scope import ScopeKey, ScopeLevel
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import InvalidPeriodError, ReservationNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.selectors.fact_selector import FactFilter, FactSelector
from billing_services.fact_cache import FactSnapshotCache

logger = get_logger("services.reconciliation")

ALL_LEVELS = (ScopeLevel.CLIENT, ScopeLevel.HOTEL, ScopeLevel.PORTFOLIO)


@dataclass(frozen=True)
class HotelOverview:
    """
    One hotel's reconciliation with its touched clients.

    ``net_client_difference`` is the sum of the per-client differences,
    which can differ from ``result.difference`` because each client applies
    the tolerance rule to its own balance.
    """

    hotel_id: int
    result: ReconciliationResult
    clients: tuple[ReconciliationResult, ...]
    net_client_difference: Money


def build_pipeline(config: BillingConfig) -> ReconciliationPipeline:
    """Pipeline wired from configuration."""
    return ReconciliationPipeline(
        policy=InclusionPolicy.from_lists(
            config.inclusion.excluded_statuses,
            config.inclusion.excluded_types,
        ),
        allocator=RateAllocator(
            currency=config.currency_obj,
            default_tax_rate=config.default_tax_rate,
        ),
        tolerance=config.tolerance,
    )


class ReconciliationService:
    """
    Reconciliation entry points over the fact store.

    Contract:
        Every figure is recomputed from raw facts on each call.  Calling any
        operation twice with the same inputs and unchanged facts yields
        equal results.

        With ``cache_facts`` configured and no ``cache`` passed, the service
        owns a private ``FactSnapshotCache`` for its lifetime.
    Non-goals:
        - Incremental updates or persisted running totals.
    """

    def __init__(
        self,
        session: Session,
        config: BillingConfig | None = None,
        cache: FactSnapshotCache | None = None,
    ):
        self.config = config or BillingConfig()
        self.selector = FactSelector(session, batch_size=self.config.fetch_batch_size)
        self.pipeline = build_pipeline(self.config)
        self.validator = ScopeRollupValidator(self.config.tolerance)
        if cache is None and self.config.cache_facts:
            cache = FactSnapshotCache()
        self.cache = cache

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def reconcile(
        self,
        level: ScopeLevel,
        period_start: date,
        period_end: date,
        hotel_ids: Sequence[int] | None = None,
        client_ids: Sequence[UUID] | None = None,
    ) -> ReconciliationReport:
        """Results for every key of ``level`` with facts up to period end."""
        _check_period(period_start, period_end)
        facts = FactFilter.of(hotel_ids=hotel_ids, client_ids=client_ids)

        logger.info("reconcile_requested", extra={
            "level": level.value,
            "period_start": period_start,
            "period_end": period_end,
            "hotel_count": len(facts.hotel_ids) if facts.hotel_ids is not None else None,
            "client_count": len(facts.client_ids) if facts.client_ids is not None else None,
        })

        levels = ALL_LEVELS if self.config.validate_rollups else (level,)
        report = self.run_pipeline(levels, facts, period_start, period_end)
        if self.config.validate_rollups:
            self.validator.validate_results(report.results)

        if report.levels == (level,):
            return report
        return dataclasses.replace(
            report,
            levels=(level,),
            results={
                key: result
                for key, result in report.results.items()
                if key.level is level
            },
        )

    def reconcile_scope(
        self,
        scope: ScopeKey,
        period_start: date,
        period_end: date,
    ) -> ReconciliationResult:
        """The result for a single scope key (zeros if it has no facts)."""
        if scope.level is ScopeLevel.CLIENT:
            report = self.reconcile(
                scope.level, period_start, period_end,
                hotel_ids=[scope.hotel_id], client_ids=[scope.client_id],
            )
        elif scope.level is ScopeLevel.HOTEL:
            report = self.reconcile(
                scope.level, period_start, period_end, hotel_ids=[scope.hotel_id],
            )
        else:
            report = self.reconcile(scope.level, period_start, period_end)

        result = report.get(scope)
        if result is None:
            return self.pipeline.empty_result(scope, period_start, period_end)
        return result

    def reconcile_reservation(
        self,
        reservation_id: UUID,
        period_start: date,
        period_end: date,
    ) -> ReservationBreakdown:
        """
        Drill-down for one reservation, including the balance brought
        forward from before ``period_start``.

        Raises:
            ReservationNotFoundError: no reservation with that id.
        """
        _check_period(period_start, period_end)
        reservation = self.selector.get_reservation(reservation_id)
        if reservation is None:
            logger.warning("reservation_not_found", extra={
                "reservation_id": str(reservation_id),
            })
            raise ReservationNotFoundError(str(reservation_id))

        facts = FactFilter.of(reservation_ids=[reservation_id])
        return self.pipeline.breakdown(
            reservation=reservation,
            period_start=period_start,
            period_end=period_end,
            charges=self.selector.iter_charges(facts, period_end),
            addons=self.selector.iter_addons(facts, period_end),
            payments=self.selector.iter_payments(facts, period_end),
        )

    def hotel_overview(
        self,
        hotel_ids: Sequence[int],
        period_start: date,
        period_end: date,
    ) -> list[HotelOverview]:
        """
        Per hotel: the hotel result, its clients touched in the period
        ordered by |period payments - period sales| descending, and the sum
        of the client differences.
        """
        _check_period(period_start, period_end)
        facts = FactFilter.of(hotel_ids=hotel_ids)
        report = self.run_pipeline(
            (ScopeLevel.CLIENT, ScopeLevel.HOTEL), facts, period_start, period_end,
        )
        if self.config.validate_rollups:
            self.validator.validate_results(report.results)

        clients_by_hotel: dict[int, list[ReconciliationResult]] = {}
        for result in report.for_level(ScopeLevel.CLIENT):
            clients_by_hotel.setdefault(result.scope.hotel_id, []).append(result)

        currency = self.pipeline.currency
        overviews = []
        for hotel_id in sorted(set(hotel_ids)):
            key = ScopeKey.hotel(hotel_id)
            hotel_result = report.get(key) or self.pipeline.empty_result(
                key, period_start, period_end,
            )
            clients = [
                r for r in clients_by_hotel.get(hotel_id, []) if r.touched
            ]
            clients.sort(
                key=lambda r: (-abs(r.period_balance), r.scope.sort_key()),
            )
            net = Money.zero(currency)
            for client in clients_by_hotel.get(hotel_id, []):
                net = net + client.difference
            overviews.append(
                HotelOverview(
                    hotel_id=hotel_id,
                    result=hotel_result,
                    clients=tuple(clients),
                    net_client_difference=net,
                )
            )

        logger.info("hotel_overview_computed", extra={
            "hotel_count": len(overviews),
            "period_start": period_start,
            "period_end": period_end,
        })
        return overviews

    def run_pipeline(
        self,
        levels: Sequence[ScopeLevel],
        facts: FactFilter,
        period_start: date,
        period_end: date,
        build_ledger: bool = False,
    ) -> ReconciliationReport:
        """Load facts for ``facts`` up to period end and run the pipeline."""
        if self.cache is not None:
            snapshot = self.cache.get_or_load(
                self.selector, facts, period_start, period_end,
            )
            reservations = snapshot.reservations
            charges, addons, payments = (
                snapshot.charges, snapshot.addons, snapshot.payments,
            )
        else:
            reservations = self.selector.reservations(facts)
            charges = self.selector.iter_charges(facts, period_end)
            addons = self.selector.iter_addons(facts, period_end)
            payments = self.selector.iter_payments(facts, period_end)

        return self.pipeline.run(
            levels=tuple(levels),
            period_start=period_start,
            period_end=period_end,
            reservations=reservations,
            charges=charges,
            addons=addons,
            payments=payments,
            build_ledger=build_ledger,
        )


def _check_period(period_start: date, period_end: date) -> None:
    if period_start > period_end:
        raise InvalidPeriodError(str(period_start), str(period_end))
