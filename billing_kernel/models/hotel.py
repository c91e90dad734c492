"""
Module: billing_kernel.models.hotel
Responsibility: ORM persistence for properties (hotels) and the clients
    that book them.
Architecture position: Kernel > Models.  May import from db/ and domain/.
"""

from uuid import UUID, uuid4

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_kernel.db.types import IntKey, Name


class Hotel(TrackedBase):
    """A property in the chain.  Hotel ids partition every fact table."""

    __tablename__ = "hotels"

    id: Mapped[IntKey] = mapped_column(primary_key=True)

    name: Mapped[Name] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Hotel {self.id}: {self.name}>"


class Client(TrackedBase):
    """
    Booking party: a guest or a corporate account.

    Reconciliation at client scope groups by (hotel, client).
    """

    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_clients_customer_id", "customer_id"),
    )

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)

    name: Mapped[Name] = mapped_column(nullable=False)

    name_kana: Mapped[str | None] = mapped_column(String(255), nullable=True)

    name_kanji: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # External accounting code; billing keys clients by id and never reads it
    customer_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    @property
    def display_name(self) -> str:
        return self.name_kanji or self.name_kana or self.name

    def __repr__(self) -> str:
        return f"<Client {self.id}: {self.display_name}>"
