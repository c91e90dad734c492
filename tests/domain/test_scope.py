"""
Tests for scope keys and the pricing-mode rule.

Covers:
- ScopeKey shape validation per level
- ScopeLevel.key_for maps one fact to each level
- Deterministic sort order and string form
- per_room vs per_person line totals
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from billing_kernel.domain.facts import NightlyChargeLine, RateOverrideLine, apply_pricing_mode
from billing_kernel.domain.scope import ScopeKey, ScopeLevel

CLIENT = UUID("00000000-0000-0000-0000-00000000000a")


class TestScopeKey:

    def test_key_for_each_level(self):
        assert ScopeLevel.CLIENT.key_for(3, CLIENT) == ScopeKey.client(3, CLIENT)
        assert ScopeLevel.HOTEL.key_for(3, CLIENT) == ScopeKey.hotel(3)
        assert ScopeLevel.PORTFOLIO.key_for(3, CLIENT) == ScopeKey.portfolio()

    @pytest.mark.parametrize(
        "level, hotel_id, client_id",
        [
            (ScopeLevel.CLIENT, 1, None),
            (ScopeLevel.CLIENT, None, CLIENT),
            (ScopeLevel.HOTEL, None, None),
            (ScopeLevel.HOTEL, 1, CLIENT),
            (ScopeLevel.PORTFOLIO, 1, None),
        ],
    )
    def test_invalid_shapes(self, level, hotel_id, client_id):
        with pytest.raises(ValueError):
            ScopeKey(level, hotel_id, client_id)

    def test_sort_order(self):
        keys = [
            ScopeKey.portfolio(),
            ScopeKey.hotel(2),
            ScopeKey.client(2, CLIENT),
            ScopeKey.hotel(1),
            ScopeKey.client(1, CLIENT),
        ]

        assert sorted(keys, key=ScopeKey.sort_key) == [
            ScopeKey.client(1, CLIENT),
            ScopeKey.client(2, CLIENT),
            ScopeKey.hotel(1),
            ScopeKey.hotel(2),
            ScopeKey.portfolio(),
        ]

    def test_str(self):
        assert str(ScopeKey.client(1, CLIENT)) == f"client:1:{CLIENT}"
        assert str(ScopeKey.hotel(1)) == "hotel:1"
        assert str(ScopeKey.portfolio()) == "portfolio"


class TestPricingMode:

    def test_per_room_ignores_occupants(self):
        assert apply_pricing_mode(Decimal("10000"), "per_room", 3) == Decimal("10000")

    def test_per_person_multiplies(self):
        assert apply_pricing_mode(Decimal("6000"), "per_person", 2) == Decimal("12000")

    def test_override_follows_parent_mode(self):
        night = NightlyChargeLine(
            id=1,
            reservation_id=CLIENT,
            hotel_id=1,
            date=date(2025, 12, 5),
            price=Decimal("6000"),
            pricing_mode="per_person",
            occupants=2,
            billable=True,
        )
        override = RateOverrideLine(
            id=7, nightly_charge_id=1, tax_rate=Decimal("0.08"), price=Decimal("1000"),
        )

        assert night.total_price == Decimal("12000")
        assert override.bucket_price(night) == Decimal("2000")
