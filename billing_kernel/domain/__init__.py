"""
Pure domain layer.

Immutable value objects and fact DTOs with NO dependencies on the ORM,
the database, the clock or any I/O.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from billing_kernel.domain.facts import (
    AddonChargeLine,
    NightlyChargeLine,
    PaymentLine,
    PricingMode,
    RateOverrideLine,
    ReservationFact,
    ReservationStatus,
    ReservationType,
    apply_pricing_mode,
)
from billing_kernel.domain.scope import ScopeKey, ScopeLevel
from billing_kernel.domain.values import Currency, Money

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Currency",
    "Money",
    "AddonChargeLine",
    "NightlyChargeLine",
    "PaymentLine",
    "PricingMode",
    "RateOverrideLine",
    "ReservationFact",
    "ReservationStatus",
    "ReservationType",
    "apply_pricing_mode",
    "ScopeKey",
    "ScopeLevel",
]
