"""
Scope -- aggregation granularity for reconciliation results.

Every aggregation in the engines is indexed by ``ScopeKey``.  A fact is mapped
to its key only through ``ScopeLevel.key_for`` so that the client, hotel and
portfolio views are computed by the same code with a different key function.
That is what makes the rollup invariant hold.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class ScopeLevel(str, Enum):
    CLIENT = "client"
    HOTEL = "hotel"
    PORTFOLIO = "portfolio"

    def key_for(self, hotel_id: int, client_id: UUID) -> ScopeKey:
        """Map a fact's owning hotel and client to this level's key."""
        if self is ScopeLevel.CLIENT:
            return ScopeKey.client(hotel_id, client_id)
        if self is ScopeLevel.HOTEL:
            return ScopeKey.hotel(hotel_id)
        return ScopeKey.portfolio()


@dataclass(frozen=True)
class ScopeKey:
    """(hotel, client) pair, a hotel singleton, or the portfolio singleton."""

    level: ScopeLevel
    hotel_id: int | None = None
    client_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.level is ScopeLevel.CLIENT:
            if self.hotel_id is None or self.client_id is None:
                raise ValueError("Client scope requires hotel_id and client_id")
        elif self.level is ScopeLevel.HOTEL:
            if self.hotel_id is None or self.client_id is not None:
                raise ValueError("Hotel scope requires hotel_id only")
        elif self.hotel_id is not None or self.client_id is not None:
            raise ValueError("Portfolio scope takes no hotel_id or client_id")

    @classmethod
    def client(cls, hotel_id: int, client_id: UUID) -> ScopeKey:
        return cls(ScopeLevel.CLIENT, hotel_id, client_id)

    @classmethod
    def hotel(cls, hotel_id: int) -> ScopeKey:
        return cls(ScopeLevel.HOTEL, hotel_id)

    @classmethod
    def portfolio(cls) -> ScopeKey:
        return cls(ScopeLevel.PORTFOLIO)

    def sort_key(self) -> tuple[str, int, str]:
        """Deterministic ordering for reports and exports."""
        return (
            self.level.value,
            self.hotel_id if self.hotel_id is not None else -1,
            str(self.client_id) if self.client_id is not None else "",
        )

    def __str__(self) -> str:
        if self.level is ScopeLevel.CLIENT:
            return f"client:{self.hotel_id}:{self.client_id}"
        if self.level is ScopeLevel.HOTEL:
            return f"hotel:{self.hotel_id}"
        return "portfolio"
