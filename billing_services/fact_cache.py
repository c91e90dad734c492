"""
billing_services.fact_cache -- Optional snapshot cache in front of the Fact Loader.

Responsibility:
    Hold materialised fact snapshots keyed by (hotel set, client set,
    reservation set, period start, period end).  Entries are never
    authoritative: a miss recomputes from the store, and any write to the
    fact tables must call ``invalidate()``, which clears every entry.

Invariants enforced:
    - The key includes the full selection and the exact date range.  Two
      requests that differ in any of them never share an entry.
    - All access goes through one lock; snapshots themselves are immutable.

Non-goals:
    - Partial invalidation.
    - Eviction by size or age.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from billing_kernel.domain.facts import (
    AddonChargeLine,
    PaymentLine,
    ReservationFact,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.selectors.fact_selector import (
    ChargeWithOverrides,
    FactFilter,
    FactSelector,
)

logger = get_logger("services.fact_cache")

CacheKey = tuple[FactFilter, date, date]


@dataclass(frozen=True)
class FactSnapshot:
    """Every fact needed to reconcile one selection up to ``period_end``."""

    reservations: dict[UUID, ReservationFact]
    charges: tuple[ChargeWithOverrides, ...]
    addons: tuple[AddonChargeLine, ...]
    payments: tuple[PaymentLine, ...]

    @classmethod
    def load(
        cls, selector: FactSelector, facts: FactFilter, period_end: date,
    ) -> FactSnapshot:
        return cls(
            reservations=selector.reservations(facts),
            charges=tuple(selector.iter_charges(facts, period_end)),
            addons=tuple(selector.iter_addons(facts, period_end)),
            payments=tuple(selector.iter_payments(facts, period_end)),
        )


class FactSnapshotCache:
    """Thread-safe map from selection + period to ``FactSnapshot``."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, FactSnapshot] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_load(
        self,
        selector: FactSelector,
        facts: FactFilter,
        period_start: date,
        period_end: date,
    ) -> FactSnapshot:
        key = (facts, period_start, period_end)
        with self._lock:
            snapshot = self._entries.get(key)
            if snapshot is not None:
                self.hits += 1
                return snapshot
            self.misses += 1

        snapshot = FactSnapshot.load(selector, facts, period_end)
        with self._lock:
            self._entries.setdefault(key, snapshot)
            logger.debug("fact_snapshot_cached", extra={
                "period_start": period_start,
                "period_end": period_end,
                "charge_count": len(snapshot.charges),
                "payment_count": len(snapshot.payments),
            })
            return self._entries[key]

    def invalidate(self) -> None:
        """Drop every entry.  Call after any write to the fact tables."""
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        logger.info("fact_cache_invalidated", extra={"dropped": dropped})

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
