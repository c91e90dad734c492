"""
Module: billing_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines used by
    billing_services: inclusion predicate, rate allocator, revenue and
    payment aggregators, reconciliation classifier, rollup validator, ledger
    row builder and the pipeline that wires them together.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel (domain, exceptions, logging_config).
    MUST NOT import billing_services or billing_batch.

Invariants enforced:
    - Purity: engines never call ``datetime.now()`` or ``date.today()``.
      Periods are passed in explicitly by callers.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.
"""

from billing_kernel.logging_config import get_logger

logger = get_logger("engines")

from billing_engines.inclusion import InclusionPolicy
from billing_engines.ledger import LedgerRow, build_ledger_rows, included_tax
from billing_engines.payments import (
    PaymentAggregator,
    PaymentKind,
    PaymentTotals,
    classify_payment,
)
from billing_engines.pipeline import (
    ExcludedLine,
    ReconciliationPipeline,
    ReconciliationReport,
    ReservationBreakdown,
)
from billing_engines.rate_allocation import (
    DEFAULT_TAX_RATE,
    AllocationBucket,
    AllocationResult,
    RateAllocator,
)
from billing_engines.reconciliation import (
    ReconciliationResult,
    ReconciliationStatus,
    build_result,
    classify,
    compute_difference,
)
from billing_engines.revenue import RevenueAggregator, SalesTotals
from billing_engines.rollup import ROLLUP_FIELDS, ScopeRollupValidator
from billing_engines.tracer import traced_engine

__all__ = [
    "AllocationBucket",
    "AllocationResult",
    "DEFAULT_TAX_RATE",
    "ExcludedLine",
    "InclusionPolicy",
    "LedgerRow",
    "PaymentAggregator",
    "PaymentKind",
    "PaymentTotals",
    "ROLLUP_FIELDS",
    "RateAllocator",
    "ReconciliationPipeline",
    "ReconciliationReport",
    "ReconciliationResult",
    "ReconciliationStatus",
    "ReservationBreakdown",
    "RevenueAggregator",
    "SalesTotals",
    "ScopeRollupValidator",
    "build_ledger_rows",
    "build_result",
    "classify",
    "classify_payment",
    "compute_difference",
    "included_tax",
    "traced_engine",
]
