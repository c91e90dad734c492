"""
Inclusion policy -- the single shared predicate deciding which charge lines
count as sales.

Every aggregation entry point (client, hotel and portfolio scope, the
per-reservation breakdown and the ledger export) admits facts through one
``InclusionPolicy`` instance.  The predicate is never re-expressed per scope:
summing per-client results can only equal the hotel result if both saw the
same lines.

A charge line is admitted when all of the following hold:

- the line is billable
- the owning reservation's status is not an excluded (holding/blocking) status
- the owning reservation's type is not an excluded (internal/employee) type
- the line is dated on or before the period end

An add-on line is admitted under the same rule applied to its parent night,
and additionally only when the parent night is not cancelled.  A cancelled
but billable night still bills its room charge as a cancellation fee.

Payments are not subject to this predicate.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from billing_kernel.domain.facts import (
    AddonChargeLine,
    NightlyChargeLine,
    ReservationFact,
    ReservationStatus,
    ReservationType,
)

DEFAULT_EXCLUDED_STATUSES = frozenset(
    {ReservationStatus.HOLD.value, ReservationStatus.BLOCK.value}
)
DEFAULT_EXCLUDED_TYPES = frozenset({ReservationType.EMPLOYEE.value})


@dataclass(frozen=True)
class InclusionPolicy:
    """Which reservation statuses and types never contribute sales."""

    excluded_statuses: frozenset[str] = DEFAULT_EXCLUDED_STATUSES
    excluded_types: frozenset[str] = DEFAULT_EXCLUDED_TYPES

    @classmethod
    def from_lists(
        cls,
        excluded_statuses: Iterable[str],
        excluded_types: Iterable[str],
    ) -> InclusionPolicy:
        return cls(
            excluded_statuses=frozenset(excluded_statuses),
            excluded_types=frozenset(excluded_types),
        )

    def admits_reservation(self, reservation: ReservationFact) -> bool:
        return (
            reservation.status not in self.excluded_statuses
            and reservation.type not in self.excluded_types
        )

    def admits_charge(
        self,
        line: NightlyChargeLine,
        reservation: ReservationFact,
        period_end: date,
    ) -> bool:
        return (
            line.billable
            and line.date <= period_end
            and self.admits_reservation(reservation)
        )

    def admits_addon(
        self,
        addon: AddonChargeLine,
        reservation: ReservationFact,
        period_end: date,
    ) -> bool:
        return (
            addon.billable
            and not addon.parent_cancelled
            and addon.date <= period_end
            and self.admits_reservation(reservation)
        )
