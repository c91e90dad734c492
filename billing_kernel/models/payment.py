"""
Module: billing_kernel.models.payment
Responsibility: ORM persistence for captured payments.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Payments are append-only: a refund is a new row with a negative value.
"""

import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, ForeignKeyConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_kernel.db.types import IntKey, Price


class ReservationPayment(TrackedBase):
    """A payment against a reservation."""

    __tablename__ = "reservation_payments"

    __table_args__ = (
        Index("idx_reservation_payments_hotel_date", "hotel_id", "date"),
        Index("idx_reservation_payments_reservation", "reservation_id"),
        ForeignKeyConstraint(
            ["reservation_id", "hotel_id"],
            ["reservations.id", "reservations.hotel_id"],
            name="fk_reservation_payments_reservation_hotel",
        ),
    )

    id: Mapped[IntKey] = mapped_column(primary_key=True, autoincrement=True)

    hotel_id: Mapped[int] = mapped_column(ForeignKey("hotels.id"), nullable=False)

    reservation_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    date: Mapped[datetime.date] = mapped_column(nullable=False)

    value: Mapped[Price] = mapped_column(default=Decimal("0"), nullable=False)

    payment_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<ReservationPayment {self.id} {self.date} {self.value}>"
