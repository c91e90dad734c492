"""
Facts -- Immutable DTOs for the raw billing fact streams.

Responsibility:
    The Fact Loader (``billing_kernel.selectors.fact_selector``) turns ORM
    rows into these frozen dataclasses; every engine consumes only these.
    No computation happens here beyond the pricing-mode rule, which is part
    of what a charge line *means*.

Architecture position:
    Kernel > Domain -- pure, zero I/O, no SQLAlchemy imports.

Invariants enforced:
    - Amounts are ``Decimal``.
    - ``total_price`` applies the same pricing-mode rule everywhere:
      ``per_room`` charges the price once, anything else multiplies by the
      occupant count.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PricingMode(str, Enum):
    """How a nightly price is turned into a line total."""

    PER_ROOM = "per_room"
    PER_PERSON = "per_person"


class ReservationStatus(str, Enum):
    HOLD = "hold"
    BLOCK = "block"
    PROVISORY = "provisory"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class ReservationType(str, Enum):
    DEFAULT = "default"
    EMPLOYEE = "employee"
    OTA = "ota"
    WEB = "web"


def apply_pricing_mode(price: Decimal, pricing_mode: str, occupants: int) -> Decimal:
    """Line total for a price under a pricing mode."""
    if pricing_mode == PricingMode.PER_ROOM.value:
        return price
    return price * occupants


@dataclass(frozen=True)
class ReservationFact:
    """Reservation header as seen by billing."""

    id: UUID
    hotel_id: int
    client_id: UUID
    check_in: date
    check_out: date
    status: str
    type: str


@dataclass(frozen=True)
class NightlyChargeLine:
    """
    One night's room charge for one reservation.

    ``cancelled`` is the soft-delete marker.  A cancelled night that is
    still billable carries a cancellation charge.
    """

    id: int
    reservation_id: UUID
    hotel_id: int
    date: date
    price: Decimal
    pricing_mode: str
    occupants: int
    billable: bool
    cancelled: bool = False

    @property
    def total_price(self) -> Decimal:
        return apply_pricing_mode(self.price, self.pricing_mode, self.occupants)


@dataclass(frozen=True)
class RateOverrideLine:
    """
    A tax-rate-specific slice of a nightly charge's price.

    ``tax_rate`` is None when the source row has no rate; the allocator
    substitutes the configured default.
    """

    id: int | None
    nightly_charge_id: int
    tax_rate: Decimal | None
    price: Decimal

    def bucket_price(self, parent: NightlyChargeLine) -> Decimal:
        """Override price under the parent line's pricing-mode rule."""
        return apply_pricing_mode(self.price, parent.pricing_mode, parent.occupants)


@dataclass(frozen=True)
class AddonChargeLine:
    """
    Add-on charge attached to a nightly charge.

    ``date``, ``billable`` and ``parent_cancelled`` are denormalised from the
    parent night by the loader so the inclusion predicate needs no join.
    """

    id: int
    nightly_charge_id: int
    reservation_id: UUID
    hotel_id: int
    date: date
    price: Decimal
    quantity: int
    tax_rate: Decimal | None
    billable: bool
    parent_cancelled: bool = False

    @property
    def amount(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class PaymentLine:
    """A captured payment against a reservation."""

    id: int
    reservation_id: UUID
    hotel_id: int
    date: date
    value: Decimal
    check_in: date | None = None
