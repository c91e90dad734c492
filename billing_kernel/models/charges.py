"""
Module: billing_kernel.models.charges
Responsibility: ORM persistence for nightly room charges
    (``reservation_details``), their tax-rate slices (``reservation_rates``)
    and add-on charges (``reservation_addons``).
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants (upheld by the writers, relied upon by billing):
    - A detail row is never mutated after invoicing; cancellation sets the
      ``cancelled`` marker instead of deleting the row.
    - A detail row may have zero rate rows.  Billing must treat that as
      "one bucket at the default rate", never as "no revenue".
    - ``hotel_id`` is repeated on every row and is part of the composite
      foreign key to the parent row, so a child cannot reference another
      hotel's parent.  Rows written with foreign keys unenforced (SQLite
      by default) can still be orphans; the selectors join on both columns
      so an orphan never picks up another hotel's parent.
"""

import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_kernel.db.types import IntKey, Price, ShortCode
from billing_kernel.domain.facts import PricingMode


class ReservationDetail(TrackedBase):
    """One night of one room for one reservation."""

    __tablename__ = "reservation_details"

    __table_args__ = (
        Index("idx_reservation_details_hotel_date", "hotel_id", "date"),
        Index("idx_reservation_details_reservation", "reservation_id"),
        UniqueConstraint("id", "hotel_id", name="uq_reservation_details_id_hotel"),
        ForeignKeyConstraint(
            ["reservation_id", "hotel_id"],
            ["reservations.id", "reservations.hotel_id"],
            name="fk_reservation_details_reservation_hotel",
        ),
    )

    id: Mapped[IntKey] = mapped_column(primary_key=True, autoincrement=True)

    hotel_id: Mapped[int] = mapped_column(ForeignKey("hotels.id"), nullable=False)

    reservation_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    date: Mapped[datetime.date] = mapped_column(nullable=False)

    plan_type: Mapped[ShortCode] = mapped_column(
        default=PricingMode.PER_ROOM.value,
        nullable=False,
    )

    number_of_people: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    price: Mapped[Price] = mapped_column(default=Decimal("0"), nullable=False)

    billable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Cancellation marker (id of the cancelling operation); NULL when active
    cancelled: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<ReservationDetail {self.id} {self.date} {self.price}>"


class ReservationRate(TrackedBase):
    """A tax-rate slice of a nightly charge's price."""

    __tablename__ = "reservation_rates"

    __table_args__ = (
        Index("idx_reservation_rates_detail", "reservation_details_id"),
        ForeignKeyConstraint(
            ["reservation_details_id", "hotel_id"],
            ["reservation_details.id", "reservation_details.hotel_id"],
            name="fk_reservation_rates_detail_hotel",
        ),
    )

    id: Mapped[IntKey] = mapped_column(primary_key=True, autoincrement=True)

    hotel_id: Mapped[int] = mapped_column(ForeignKey("hotels.id"), nullable=False)

    reservation_details_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # NULL means "the default rate"
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)

    price: Mapped[Price] = mapped_column(default=Decimal("0"), nullable=False)

    # Free-form source tag ("base_rate", "flat_fee", ...), informational only
    adjustment_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<ReservationRate {self.id} detail={self.reservation_details_id} {self.tax_rate}:{self.price}>"


class ReservationAddon(TrackedBase):
    """An add-on (meal, parking, amenity) sold against one night."""

    __tablename__ = "reservation_addons"

    __table_args__ = (
        Index("idx_reservation_addons_detail", "reservation_detail_id"),
        ForeignKeyConstraint(
            ["reservation_detail_id", "hotel_id"],
            ["reservation_details.id", "reservation_details.hotel_id"],
            name="fk_reservation_addons_detail_hotel",
        ),
    )

    id: Mapped[IntKey] = mapped_column(primary_key=True, autoincrement=True)

    hotel_id: Mapped[int] = mapped_column(ForeignKey("hotels.id"), nullable=False)

    reservation_detail_id: Mapped[int] = mapped_column(Integer, nullable=False)

    addon_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    price: Mapped[Price] = mapped_column(default=Decimal("0"), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)

    def __repr__(self) -> str:
        return f"<ReservationAddon {self.id} detail={self.reservation_detail_id} {self.price}x{self.quantity}>"
