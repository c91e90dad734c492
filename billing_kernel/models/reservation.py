"""
Module: billing_kernel.models.reservation
Responsibility: ORM persistence for reservation headers.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Billing reads only: hotel, client, check-in/check-out, status and type.
Status and type drive the shared inclusion predicate
(``billing_engines.inclusion``): ``hold``/``block`` reservations and
``employee`` stays never produce sales.
"""

from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_kernel.db.types import ShortCode
from billing_kernel.domain.facts import ReservationStatus, ReservationType


class Reservation(TrackedBase):
    """Reservation header."""

    __tablename__ = "reservations"

    __table_args__ = (
        Index("idx_reservations_hotel_client", "hotel_id", "reservation_client_id"),
        Index("idx_reservations_check_in", "hotel_id", "check_in"),
        UniqueConstraint("id", "hotel_id", name="uq_reservations_id_hotel"),
    )

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)

    hotel_id: Mapped[int] = mapped_column(ForeignKey("hotels.id"), nullable=False)

    reservation_client_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=False,
    )

    check_in: Mapped[date] = mapped_column(nullable=False)

    check_out: Mapped[date] = mapped_column(nullable=False)

    status: Mapped[ShortCode] = mapped_column(
        default=ReservationStatus.CONFIRMED.value,
        nullable=False,
    )

    type: Mapped[ShortCode] = mapped_column(
        default=ReservationType.DEFAULT.value,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Reservation {self.id} hotel={self.hotel_id} {self.check_in}..{self.check_out}>"
