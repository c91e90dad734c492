"""
Configuration schema -- frozen dataclasses for billing configuration.

    YAML file  --(loader)-->  BillingConfig  --(services, batch)-->  runtime

Every section is immutable once loaded.  Amounts and rates are ``Decimal``;
YAML numbers are read through ``str`` so ``0.10`` stays ``Decimal("0.10")``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from decimal import Decimal

from billing_kernel.domain.values import Currency


@dataclass(frozen=True)
class InclusionConfig:
    """Reservation statuses and types that never contribute sales."""

    excluded_statuses: tuple[str, ...] = ("hold", "block")
    excluded_types: tuple[str, ...] = ("employee",)


@dataclass(frozen=True)
class IntervalWindowDef:
    """From ``starts_at`` until the next window, run every ``interval_seconds``."""

    starts_at: time
    interval_seconds: int


@dataclass(frozen=True)
class ScheduledJobDef:
    name: str
    enabled: bool = True


@dataclass(frozen=True)
class SchedulerConfig:
    enabled: bool = True
    tick_interval_seconds: int = 30
    windows: tuple[IntervalWindowDef, ...] = ()
    jobs: tuple[ScheduledJobDef, ...] = ()

    @property
    def enabled_jobs(self) -> tuple[str, ...]:
        return tuple(job.name for job in self.jobs if job.enabled)


@dataclass(frozen=True)
class BillingConfig:
    """
    Root configuration object.

    ``rounding_tolerance`` is None unless set explicitly; use
    ``tolerance`` for the effective value (one minor unit of the currency
    by default).
    """

    currency: str = "JPY"
    default_tax_rate: Decimal = Decimal("0.10")
    rounding_tolerance: Decimal | None = None
    inclusion: InclusionConfig = field(default_factory=InclusionConfig)
    fetch_batch_size: int = 1000
    validate_rollups: bool = False
    cache_facts: bool = False
    database_url: str = "sqlite:///billing.db"
    export_directory: str = "exports"
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    checksum: str = ""

    @property
    def currency_obj(self) -> Currency:
        return Currency(self.currency)

    @property
    def tolerance(self) -> Decimal:
        if self.rounding_tolerance is not None:
            return self.rounding_tolerance
        return self.currency_obj.rounding_tolerance
