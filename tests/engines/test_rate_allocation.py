"""
Tests for the tax-rate allocator.

Covers:
- Remainder absorption by the highest-rate override
- Synthetic default-rate bucket for lines without overrides
- Pricing modes (per_room, per_person)
- Tie-break ordering (rate desc, id desc, absent ids last)
- Conservation and range violations
"""

from decimal import Decimal

import pytest

from billing_engines.rate_allocation import DEFAULT_TAX_RATE, RateAllocator
from billing_kernel.domain.values import Currency
from billing_kernel.exceptions import AllocationInvariantError
from tests.conftest import JPY, make_charge, make_override, make_reservation


class TestRemainderAbsorption:
    """The first override in tie-break order absorbs total minus allocated."""

    def setup_method(self):
        self.allocator = RateAllocator(currency=JPY)
        self.line = make_charge(make_reservation(), price="10000")

    def test_highest_rate_absorbs_remainder(self):
        overrides = [
            make_override(self.line, "0.08", "3000", id=1),
            make_override(self.line, "0.10", "6500", id=2),
        ]

        result = self.allocator.allocate(self.line, overrides)

        assert [(b.tax_rate, b.amount) for b in result.buckets] == [
            (Decimal("0.10"), Decimal("7000")),
            (Decimal("0.08"), Decimal("3000")),
        ]
        assert result.remainder == Decimal("500")
        assert result.buckets[0].absorbed_remainder
        assert not result.buckets[1].absorbed_remainder
        assert result.allocated_total == result.parent_total == Decimal("10000")

    def test_exact_overrides_leave_no_remainder(self):
        overrides = [
            make_override(self.line, "0.10", "7000", id=1),
            make_override(self.line, "0.08", "3000", id=2),
        ]

        result = self.allocator.allocate(self.line, overrides)

        assert result.remainder == Decimal("0")
        assert [b.amount for b in result.buckets] == [Decimal("7000"), Decimal("3000")]

    def test_negative_remainder_reduces_first_bucket(self):
        overrides = [
            make_override(self.line, "0.10", "8000", id=1),
            make_override(self.line, "0.08", "3000", id=2),
        ]

        result = self.allocator.allocate(self.line, overrides)

        assert result.remainder == Decimal("-1000")
        assert result.buckets[0].amount == Decimal("7000")
        assert result.allocated_total == Decimal("10000")

    def test_override_order_does_not_matter(self):
        overrides = [
            make_override(self.line, "0.08", "3000", id=1),
            make_override(self.line, "0.10", "6500", id=2),
        ]

        forward = self.allocator.allocate(self.line, overrides)
        backward = self.allocator.allocate(self.line, list(reversed(overrides)))

        assert forward == backward


class TestSyntheticBucket:
    """A line without overrides is one bucket at the default rate."""

    def test_zero_overrides_yield_default_rate_bucket(self):
        allocator = RateAllocator(currency=JPY)
        line = make_charge(make_reservation(), price="12000")

        result = allocator.allocate(line, ())

        assert result.synthetic
        assert len(result.buckets) == 1
        assert result.buckets[0].tax_rate == DEFAULT_TAX_RATE
        assert result.buckets[0].amount == Decimal("12000")
        assert result.buckets[0].override_id is None

    def test_configured_default_rate_is_used(self):
        allocator = RateAllocator(currency=JPY, default_tax_rate=Decimal("0.08"))
        line = make_charge(make_reservation(), price="5000")

        result = allocator.allocate(line)

        assert result.buckets[0].tax_rate == Decimal("0.08")

    def test_zero_total_still_yields_a_bucket(self):
        allocator = RateAllocator(currency=JPY)
        line = make_charge(make_reservation(), price="0")

        result = allocator.allocate(line)

        assert len(result.buckets) == 1
        assert result.buckets[0].amount == Decimal("0")

    def test_override_without_rate_uses_default(self):
        allocator = RateAllocator(currency=JPY)
        line = make_charge(make_reservation(), price="10000")

        result = allocator.allocate(line, [make_override(line, None, "10000", id=4)])

        assert result.buckets[0].tax_rate == DEFAULT_TAX_RATE
        assert not result.synthetic


class TestPricingModes:

    def setup_method(self):
        self.allocator = RateAllocator(currency=JPY)

    def test_per_person_multiplies_line_and_overrides(self):
        line = make_charge(
            make_reservation(), price="5000", pricing_mode="per_person", occupants=2,
        )
        overrides = [
            make_override(line, "0.10", "3000", id=1),
            make_override(line, "0.08", "2000", id=2),
        ]

        result = self.allocator.allocate(line, overrides)

        assert result.parent_total == Decimal("10000")
        assert [b.amount for b in result.buckets] == [Decimal("6000"), Decimal("4000")]
        assert result.remainder == Decimal("0")

    def test_per_room_ignores_occupants(self):
        line = make_charge(
            make_reservation(), price="10000", pricing_mode="per_room", occupants=3,
        )

        result = self.allocator.allocate(line)

        assert result.parent_total == Decimal("10000")

    def test_parent_total_rounded_to_currency(self):
        allocator = RateAllocator(currency=Currency("USD"))
        line = make_charge(
            make_reservation(), price="33.335", pricing_mode="per_person", occupants=3,
        )

        result = allocator.allocate(line)

        # 100.005 rounds half up
        assert result.parent_total == Decimal("100.01")
        assert result.buckets[0].amount == Decimal("100.01")


class TestTieBreak:

    def setup_method(self):
        self.allocator = RateAllocator(currency=JPY)
        self.line = make_charge(make_reservation(), price="10000")

    def test_same_rate_higher_id_first(self):
        overrides = [
            make_override(self.line, "0.10", "4000", id=3),
            make_override(self.line, "0.10", "5000", id=7),
        ]

        result = self.allocator.allocate(self.line, overrides)

        assert result.buckets[0].override_id == 7
        assert result.buckets[0].amount == Decimal("6000")
        assert result.buckets[1].amount == Decimal("4000")

    def test_absent_id_sorts_after_present_ids(self):
        overrides = [
            make_override(self.line, "0.10", "4000", id=None),
            make_override(self.line, "0.10", "5000", id=2),
        ]

        ordered = self.allocator.order_overrides(overrides)

        assert [o.id for o in ordered] == [2, None]

    def test_rate_dominates_id(self):
        overrides = [
            make_override(self.line, "0.08", "4000", id=99),
            make_override(self.line, "0.10", "5000", id=1),
        ]

        ordered = self.allocator.order_overrides(overrides)

        assert [o.id for o in ordered] == [1, 99]


class TestInvariantViolations:

    def setup_method(self):
        self.allocator = RateAllocator(currency=JPY)
        self.line = make_charge(make_reservation(), price="10000")

    def test_bucket_above_total_raises(self):
        overrides = [
            make_override(self.line, "0.10", "1000", id=1),
            make_override(self.line, "0.08", "15000", id=2),
        ]

        with pytest.raises(AllocationInvariantError) as exc_info:
            self.allocator.allocate(self.line, overrides)

        assert exc_info.value.code == "ALLOCATION_INVARIANT_VIOLATED"
        assert exc_info.value.parent_total == "10000"
        assert exc_info.value.reason == "bucket outside the range of the parent total"

    def test_error_carries_buckets(self):
        overrides = [
            make_override(self.line, "0.10", "500", id=1),
            make_override(self.line, "0.08", "20000", id=2),
        ]

        with pytest.raises(AllocationInvariantError) as exc_info:
            self.allocator.allocate(self.line, overrides)

        assert ("0.08", "20000") in exc_info.value.buckets

    def test_negative_total_allows_negative_buckets(self):
        line = make_charge(make_reservation(), price="-3000")

        result = self.allocator.allocate(
            line, [make_override(line, "0.10", "-3000", id=1)],
        )

        assert result.buckets[0].amount == Decimal("-3000")
