"""
Module: billing_engines.rollup
Responsibility:
    Cross-scope consistency check: the per-client results of a hotel must
    sum to the hotel result, and the per-hotel results must sum to the
    portfolio result, for the same period and filters.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - For each of period_sales, cumulative_sales, period_payments,
      advance_payments, settlement_payments and cumulative_payments:
      ``|sum(parts) - whole| <= tolerance * len(parts)``.

Failure modes:
    - ScopeRollupMismatchError on the first field that diverges.  Never
      swallowed: a divergence means two code paths admitted different facts.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from billing_engines.reconciliation import ReconciliationResult
from billing_engines.tracer import traced_engine
from billing_kernel.domain.scope import ScopeKey, ScopeLevel
from billing_kernel.exceptions import ScopeRollupMismatchError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.rollup")

ROLLUP_FIELDS = (
    "period_sales",
    "cumulative_sales",
    "period_payments",
    "advance_payments",
    "settlement_payments",
    "cumulative_payments",
)


class ScopeRollupValidator:
    """Asserts that part-scope results sum to the whole-scope result."""

    def __init__(self, tolerance: Decimal):
        self.tolerance = tolerance

    @traced_engine("scope_rollup", "1.0", fingerprint_fields=("whole",))
    def validate(
        self,
        parts: Sequence[ReconciliationResult],
        whole: ReconciliationResult,
    ) -> None:
        """
        Raises:
            ScopeRollupMismatchError: a field's part sum diverges from the
                whole beyond ``tolerance * len(parts)``.
        """
        allowed = self.tolerance * max(len(parts), 1)
        for field in ROLLUP_FIELDS:
            expected = getattr(whole, field).amount
            actual = sum(
                (getattr(part, field).amount for part in parts), Decimal("0")
            )
            if abs(actual - expected) > allowed:
                logger.error("scope_rollup_mismatch", extra={
                    "field": field,
                    "scope": str(whole.scope),
                    "expected": str(expected),
                    "actual": str(actual),
                    "part_count": len(parts),
                })
                raise ScopeRollupMismatchError(
                    field=field,
                    scope=str(whole.scope),
                    expected=str(expected),
                    actual=str(actual),
                    tolerance=str(allowed),
                    part_count=len(parts),
                )

        logger.debug("scope_rollup_validated", extra={
            "scope": str(whole.scope),
            "part_count": len(parts),
        })

    def validate_results(
        self, results: Mapping[ScopeKey, ReconciliationResult],
    ) -> int:
        """
        Check every client->hotel and hotel->portfolio pair present in
        ``results``.  Returns the number of wholes checked.
        """
        by_level: dict[ScopeLevel, list[ReconciliationResult]] = defaultdict(list)
        for result in results.values():
            by_level[result.scope.level].append(result)

        checked = 0
        if by_level[ScopeLevel.HOTEL] and by_level[ScopeLevel.CLIENT]:
            clients_by_hotel = _group(
                by_level[ScopeLevel.CLIENT], lambda r: r.scope.hotel_id,
            )
            for hotel in by_level[ScopeLevel.HOTEL]:
                self.validate(
                    clients_by_hotel.get(hotel.scope.hotel_id, []), whole=hotel,
                )
                checked += 1

        if by_level[ScopeLevel.PORTFOLIO] and by_level[ScopeLevel.HOTEL]:
            for portfolio in by_level[ScopeLevel.PORTFOLIO]:
                self.validate(by_level[ScopeLevel.HOTEL], whole=portfolio)
                checked += 1

        return checked


def _group(
    results: Iterable[ReconciliationResult], key,
) -> dict[object, list[ReconciliationResult]]:
    grouped: dict[object, list[ReconciliationResult]] = defaultdict(list)
    for result in results:
        grouped[key(result)].append(result)
    return grouped
