"""
Fact selector -- the Fact Loader.

Reads the raw billing fact streams for a hotel set / client set / date
horizon and returns frozen DTOs from ``billing_kernel.domain.facts``:

- reservation headers
- nightly charge lines, each with its rate override lines
- add-on charge lines (parent night's date and flags denormalised)
- payment lines (reservation check-in attached)

Key design decisions:
- Pure data access.  No inclusion filtering by status, type or billable
  flag happens here; that is the job of the single shared predicate in
  ``billing_engines.inclusion``.  The only filters are the caller's
  hotel/client/reservation selection and the date horizon.
- Charge lines are read with an explicit outer relationship to their rate
  rows: overrides are fetched per batch by detail id, so a line with zero
  rate rows is still yielded (with an empty override tuple).
- Streaming: rows are fetched with ``yield_per`` and handed out in
  partitions so multi-year cumulative queries never hold every line in
  memory at once.
- Uses the caller's Session; never commits.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import Select, and_, select
from sqlalchemy.orm import Session

from billing_kernel.domain.facts import (
    AddonChargeLine,
    NightlyChargeLine,
    PaymentLine,
    RateOverrideLine,
    ReservationFact,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.charges import (
    ReservationAddon,
    ReservationDetail,
    ReservationRate,
)
from billing_kernel.models.payment import ReservationPayment
from billing_kernel.models.reservation import Reservation
from billing_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.facts")

DEFAULT_BATCH_SIZE = 1000


@dataclass(frozen=True)
class FactFilter:
    """
    Which facts to read.  ``None`` means "no restriction" for that field.

    The filter is hashable so it can be part of a cache key.
    """

    hotel_ids: frozenset[int] | None = None
    client_ids: frozenset[UUID] | None = None
    reservation_ids: frozenset[UUID] | None = None

    @classmethod
    def of(
        cls,
        hotel_ids: Sequence[int] | None = None,
        client_ids: Sequence[UUID] | None = None,
        reservation_ids: Sequence[UUID] | None = None,
    ) -> FactFilter:
        return cls(
            hotel_ids=frozenset(hotel_ids) if hotel_ids is not None else None,
            client_ids=frozenset(client_ids) if client_ids is not None else None,
            reservation_ids=(
                frozenset(reservation_ids) if reservation_ids is not None else None
            ),
        )

    @property
    def needs_reservation_join(self) -> bool:
        return self.client_ids is not None


ChargeWithOverrides = tuple[NightlyChargeLine, tuple[RateOverrideLine, ...]]


class FactSelector(BaseSelector):
    """
    Selector for the raw billing facts.

    Returns DTOs rather than ORM models.  Every ``iter_*`` method is a
    generator; iterate it inside the caller's session scope.
    """

    def __init__(self, session: Session, batch_size: int = DEFAULT_BATCH_SIZE):
        super().__init__(session)
        self.batch_size = batch_size

    # -------------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------------

    def reservations(self, facts: FactFilter) -> dict[UUID, ReservationFact]:
        """Reservation headers matching the filter, keyed by id."""
        stmt = select(
            Reservation.id,
            Reservation.hotel_id,
            Reservation.reservation_client_id,
            Reservation.check_in,
            Reservation.check_out,
            Reservation.status,
            Reservation.type,
        )
        if facts.hotel_ids is not None:
            stmt = stmt.where(Reservation.hotel_id.in_(facts.hotel_ids))
        if facts.client_ids is not None:
            stmt = stmt.where(Reservation.reservation_client_id.in_(facts.client_ids))
        if facts.reservation_ids is not None:
            stmt = stmt.where(Reservation.id.in_(facts.reservation_ids))

        result: dict[UUID, ReservationFact] = {}
        for row in self.session.execute(stmt):
            result[row.id] = ReservationFact(
                id=row.id,
                hotel_id=row.hotel_id,
                client_id=row.reservation_client_id,
                check_in=row.check_in,
                check_out=row.check_out,
                status=row.status,
                type=row.type,
            )

        logger.debug("reservations_loaded", extra={"count": len(result)})
        return result

    def get_reservation(self, reservation_id: UUID) -> ReservationFact | None:
        found = self.reservations(FactFilter.of(reservation_ids=[reservation_id]))
        return found.get(reservation_id)

    # -------------------------------------------------------------------------
    # Nightly charges + rate overrides
    # -------------------------------------------------------------------------

    def iter_charges(
        self,
        facts: FactFilter,
        through_date: date | None,
    ) -> Iterator[ChargeWithOverrides]:
        """
        Yield every nightly charge line dated on or before ``through_date``
        (all dates when None), each paired with its override lines.
        """
        stmt = select(
            ReservationDetail.id,
            ReservationDetail.reservation_id,
            ReservationDetail.hotel_id,
            ReservationDetail.date,
            ReservationDetail.price,
            ReservationDetail.plan_type,
            ReservationDetail.number_of_people,
            ReservationDetail.billable,
            ReservationDetail.cancelled,
        )
        stmt = self._restrict(stmt, ReservationDetail, facts)
        if through_date is not None:
            stmt = stmt.where(ReservationDetail.date <= through_date)
        stmt = stmt.order_by(ReservationDetail.date, ReservationDetail.id)

        line_count = 0
        result = self.session.execute(
            stmt, execution_options={"yield_per": self.batch_size}
        )
        for partition in result.partitions():
            lines = [
                NightlyChargeLine(
                    id=row.id,
                    reservation_id=row.reservation_id,
                    hotel_id=row.hotel_id,
                    date=row.date,
                    price=row.price,
                    pricing_mode=row.plan_type,
                    occupants=row.number_of_people,
                    billable=row.billable,
                    cancelled=row.cancelled is not None,
                )
                for row in partition
            ]
            overrides = self._overrides_for(lines)
            for line in lines:
                yield line, overrides.get(line.id, ())
            line_count += len(lines)

        logger.debug(
            "charges_streamed",
            extra={"line_count": line_count, "through_date": through_date},
        )

    def _overrides_for(
        self, lines: Sequence[NightlyChargeLine],
    ) -> dict[int, tuple[RateOverrideLine, ...]]:
        """Override lines for one partition of charge lines, grouped by line id."""
        if not lines:
            return {}
        hotel_by_line = {line.id: line.hotel_id for line in lines}
        stmt = select(
            ReservationRate.id,
            ReservationRate.hotel_id,
            ReservationRate.reservation_details_id,
            ReservationRate.tax_rate,
            ReservationRate.price,
        ).where(ReservationRate.reservation_details_id.in_(hotel_by_line.keys()))

        grouped: dict[int, list[RateOverrideLine]] = defaultdict(list)
        for row in self.session.execute(stmt):
            # Rate rows are keyed by (detail, hotel)
            if hotel_by_line[row.reservation_details_id] != row.hotel_id:
                continue
            grouped[row.reservation_details_id].append(
                RateOverrideLine(
                    id=row.id,
                    nightly_charge_id=row.reservation_details_id,
                    tax_rate=row.tax_rate,
                    price=row.price,
                )
            )
        return {line_id: tuple(rows) for line_id, rows in grouped.items()}

    # -------------------------------------------------------------------------
    # Add-ons
    # -------------------------------------------------------------------------

    def iter_addons(
        self,
        facts: FactFilter,
        through_date: date | None,
    ) -> Iterator[AddonChargeLine]:
        """Yield add-on lines whose parent night is on or before ``through_date``."""
        stmt = (
            select(
                ReservationAddon.id,
                ReservationAddon.reservation_detail_id,
                ReservationAddon.price,
                ReservationAddon.quantity,
                ReservationAddon.tax_rate,
                ReservationDetail.reservation_id,
                ReservationDetail.hotel_id,
                ReservationDetail.date,
                ReservationDetail.billable,
                ReservationDetail.cancelled,
            )
            .join(
                ReservationDetail,
                and_(
                    ReservationAddon.reservation_detail_id == ReservationDetail.id,
                    ReservationAddon.hotel_id == ReservationDetail.hotel_id,
                ),
            )
        )
        stmt = self._restrict(stmt, ReservationDetail, facts)
        if through_date is not None:
            stmt = stmt.where(ReservationDetail.date <= through_date)
        stmt = stmt.order_by(ReservationDetail.date, ReservationAddon.id)

        result = self.session.execute(
            stmt, execution_options={"yield_per": self.batch_size}
        )
        for partition in result.partitions():
            for row in partition:
                yield AddonChargeLine(
                    id=row.id,
                    nightly_charge_id=row.reservation_detail_id,
                    reservation_id=row.reservation_id,
                    hotel_id=row.hotel_id,
                    date=row.date,
                    price=row.price,
                    quantity=row.quantity,
                    tax_rate=row.tax_rate,
                    billable=row.billable,
                    parent_cancelled=row.cancelled is not None,
                )

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def iter_payments(
        self,
        facts: FactFilter,
        through_date: date | None,
    ) -> Iterator[PaymentLine]:
        """Yield payments dated on or before ``through_date`` with check-in attached."""
        stmt = (
            select(
                ReservationPayment.id,
                ReservationPayment.reservation_id,
                ReservationPayment.hotel_id,
                ReservationPayment.date,
                ReservationPayment.value,
                Reservation.check_in,
            )
            .outerjoin(
                Reservation,
                and_(
                    ReservationPayment.reservation_id == Reservation.id,
                    ReservationPayment.hotel_id == Reservation.hotel_id,
                ),
            )
        )
        if facts.hotel_ids is not None:
            stmt = stmt.where(ReservationPayment.hotel_id.in_(facts.hotel_ids))
        if facts.client_ids is not None:
            stmt = stmt.where(Reservation.reservation_client_id.in_(facts.client_ids))
        if facts.reservation_ids is not None:
            stmt = stmt.where(ReservationPayment.reservation_id.in_(facts.reservation_ids))
        if through_date is not None:
            stmt = stmt.where(ReservationPayment.date <= through_date)
        stmt = stmt.order_by(ReservationPayment.date, ReservationPayment.id)

        result = self.session.execute(
            stmt, execution_options={"yield_per": self.batch_size}
        )
        for partition in result.partitions():
            for row in partition:
                yield PaymentLine(
                    id=row.id,
                    reservation_id=row.reservation_id,
                    hotel_id=row.hotel_id,
                    date=row.date,
                    value=row.value,
                    check_in=row.check_in,
                )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    @staticmethod
    def _restrict(stmt: Select, line_model: type, facts: FactFilter) -> Select:
        """Apply hotel / client / reservation selection to a line query."""
        if facts.hotel_ids is not None:
            stmt = stmt.where(line_model.hotel_id.in_(facts.hotel_ids))
        if facts.reservation_ids is not None:
            stmt = stmt.where(line_model.reservation_id.in_(facts.reservation_ids))
        if facts.needs_reservation_join:
            stmt = stmt.join(
                Reservation, line_model.reservation_id == Reservation.id,
            ).where(Reservation.reservation_client_id.in_(facts.client_ids))
        return stmt
