"""
Module: billing_engines.rate_allocation
Responsibility:
    Distribute one nightly charge's total across its tax-rate override lines,
    producing (tax rate, amount) buckets that sum exactly to the total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel/domain and billing_kernel/exceptions.

Invariants enforced:
    - Conservation: the bucket amounts sum exactly to the parent total,
      rounded to the currency's minor unit.  No money is created or lost.
    - Range: every bucket lies between zero and the parent total inclusive.
    - Deterministic remainder: overrides are ordered by descending effective
      tax rate, then descending override id with absent ids last.  The first
      override in that order absorbs ``parent_total - allocated_sum``.
    - Zero overrides is an explicit case: one synthetic bucket at the default
      tax rate carrying the full total.  A line never disappears because it
      has no override rows.
    - A zero total still yields one zero-amount bucket.

Failure modes:
    - AllocationInvariantError when the buckets do not conserve the total or
      a bucket leaves the allowed range (e.g. overrides summing far above the
      parent total push the remainder bucket negative).  The caller excludes
      the line's contribution.

Usage:
    from billing_engines.rate_allocation import RateAllocator

    allocator = RateAllocator(currency=Currency("JPY"))
    result = allocator.allocate(line, overrides)
    for bucket in result.buckets:
        print(bucket.tax_rate, bucket.amount)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from billing_kernel.domain.facts import NightlyChargeLine, RateOverrideLine
from billing_kernel.domain.values import Currency
from billing_kernel.exceptions import AllocationInvariantError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.rate_allocation")

DEFAULT_TAX_RATE = Decimal("0.10")


@dataclass(frozen=True)
class AllocationBucket:
    """One tax-rate slice of a nightly charge."""

    tax_rate: Decimal
    amount: Decimal
    override_id: int | None = None
    absorbed_remainder: bool = False


@dataclass(frozen=True)
class AllocationResult:
    """
    Buckets for one nightly charge line.

    Guarantees:
        - ``sum(b.amount for b in buckets) == parent_total``.
        - At least one bucket.
    """

    nightly_charge_id: int
    parent_total: Decimal
    buckets: tuple[AllocationBucket, ...]
    remainder: Decimal = Decimal("0")  # parent_total - sum of override prices
    synthetic: bool = False

    @property
    def allocated_total(self) -> Decimal:
        return sum((b.amount for b in self.buckets), Decimal("0"))


class RateAllocator:
    """
    Allocate nightly charge totals to tax-rate buckets.

    Contract:
        Pure and deterministic.  ``allocate`` is a function of the line and
        its override set; the order the overrides arrive in does not matter.
    Non-goals:
        - Add-on lines are never split; they carry their own single rate.
    """

    def __init__(
        self,
        currency: Currency,
        default_tax_rate: Decimal = DEFAULT_TAX_RATE,
    ):
        self.currency = currency
        self.default_tax_rate = default_tax_rate

    def effective_rate(self, tax_rate: Decimal | None) -> Decimal:
        return self.default_tax_rate if tax_rate is None else tax_rate

    def order_overrides(
        self, overrides: Sequence[RateOverrideLine],
    ) -> list[RateOverrideLine]:
        """Tie-break order: rate desc, then id desc, absent ids last."""
        return sorted(
            overrides,
            key=lambda o: (
                -self.effective_rate(o.tax_rate),
                o.id is None,
                -o.id if o.id is not None else 0,
            ),
        )

    def allocate(
        self,
        line: NightlyChargeLine,
        overrides: Sequence[RateOverrideLine] = (),
    ) -> AllocationResult:
        """
        Allocate ``line.total_price`` across ``overrides``.

        Raises:
            AllocationInvariantError: buckets do not conserve the total or a
                bucket leaves ``[min(0, total), max(0, total)]``.
        """
        parent_total = self.currency.quantize(line.total_price)

        if not overrides:
            result = AllocationResult(
                nightly_charge_id=line.id,
                parent_total=parent_total,
                buckets=(
                    AllocationBucket(
                        tax_rate=self.default_tax_rate,
                        amount=parent_total,
                        absorbed_remainder=True,
                    ),
                ),
                synthetic=True,
            )
            logger.debug("allocation_synthetic_bucket", extra={
                "nightly_charge_id": line.id,
                "parent_total": str(parent_total),
            })
            return result

        ordered = self.order_overrides(overrides)
        prices = [self.currency.quantize(o.bucket_price(line)) for o in ordered]
        allocated_sum = sum(prices, Decimal("0"))
        remainder = parent_total - allocated_sum

        buckets = []
        for index, (override, price) in enumerate(zip(ordered, prices)):
            first = index == 0
            buckets.append(
                AllocationBucket(
                    tax_rate=self.effective_rate(override.tax_rate),
                    amount=price + remainder if first else price,
                    override_id=override.id,
                    absorbed_remainder=first,
                )
            )

        result = AllocationResult(
            nightly_charge_id=line.id,
            parent_total=parent_total,
            buckets=tuple(buckets),
            remainder=remainder,
        )
        self._check(result)

        if remainder:
            logger.debug("allocation_remainder_absorbed", extra={
                "nightly_charge_id": line.id,
                "parent_total": str(parent_total),
                "allocated_sum": str(allocated_sum),
                "remainder": str(remainder),
                "override_count": len(ordered),
            })
        return result

    def _check(self, result: AllocationResult) -> None:
        total = result.parent_total
        allocated = result.allocated_total
        reason = None
        if allocated != total:
            reason = "bucket sum differs from parent total"
        else:
            low, high = min(Decimal("0"), total), max(Decimal("0"), total)
            if any(not (low <= b.amount <= high) for b in result.buckets):
                reason = "bucket outside the range of the parent total"

        if reason is not None:
            raise AllocationInvariantError(
                nightly_charge_id=str(result.nightly_charge_id),
                parent_total=str(total),
                allocated_total=str(allocated),
                buckets=tuple(
                    (str(b.tax_rate), str(b.amount)) for b in result.buckets
                ),
                reason=reason,
            )
