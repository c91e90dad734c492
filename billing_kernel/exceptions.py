"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Reconciliation numbers are shown to front-desk staff and exported to the
accounting system.  When a fact cannot be used, the caller has to know *which*
fact and *why* without parsing message strings.  Every exception here:

  1. Has a typed class (catch by type, not message)
  2. Has a ``code`` attribute (machine-readable, API-safe)
  3. Carries structured data (ids, amounts) as attributes

Example:
    try:
        breakdown = service.reconcile_reservation(reservation_id, start, end)
    except ReservationNotFoundError as e:
        api_response(code=e.code, reservation=e.reservation_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- FactError
    |   +-- MissingReferenceError
    |   +-- ReservationNotFoundError
    |
    +-- AllocationError
    |   +-- AllocationInvariantError
    |
    +-- ReconciliationError
    |   +-- ScopeRollupMismatchError
    |   +-- InvalidPeriodError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|--------------------------------------
Fact            | MISSING_REFERENCE             | Line references an unknown or
                |                               | foreign-hotel reservation
                | RESERVATION_NOT_FOUND         | Drill-down on unknown reservation
----------------|-------------------------------|--------------------------------------
Allocation      | ALLOCATION_INVARIANT_VIOLATED | Buckets do not conserve the line total
----------------|-------------------------------|--------------------------------------
Reconciliation  | SCOPE_ROLLUP_MISMATCH         | Sum of parts != whole beyond tolerance
                | INVALID_PERIOD                | period_start > period_end
----------------|-------------------------------|--------------------------------------
Config          | INVALID_CONFIGURATION         | Malformed configuration value

===============================================================================
HANDLING
===============================================================================

    - MissingReferenceError / AllocationInvariantError: caught per line by
      the reconciliation pipeline; the line is excluded from its scope,
      logged, and reported in ``ReconciliationReport.exclusions``.
    - ScopeRollupMismatchError: never swallowed.  Always reaches the caller.
    - Everything else propagates.
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Fact-related exceptions


class FactError(BillingKernelError):
    """Base exception for raw fact problems."""

    code: str = "FACT_ERROR"


class MissingReferenceError(FactError):
    """A fact line references a reservation (or hotel) that does not exist."""

    code: str = "MISSING_REFERENCE"

    def __init__(
        self,
        fact_type: str,
        fact_id: str,
        reference_type: str,
        reference_id: str,
    ):
        self.fact_type = fact_type
        self.fact_id = fact_id
        self.reference_type = reference_type
        self.reference_id = reference_id
        super().__init__(
            f"{fact_type} {fact_id} references unknown {reference_type} {reference_id}"
        )


class ReservationNotFoundError(FactError):
    """Reservation requested for a drill-down does not exist."""

    code: str = "RESERVATION_NOT_FOUND"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(f"Reservation not found: {reservation_id}")


# Allocation-related exceptions


class AllocationError(BillingKernelError):
    """Base exception for tax-rate allocation errors."""

    code: str = "ALLOCATION_ERROR"


class AllocationInvariantError(AllocationError):
    """
    Allocated buckets for a nightly charge do not conserve its total.

    Raised when the buckets do not sum to the parent total, or when a single
    bucket falls outside the range between zero and the parent total.  The
    line's contribution is excluded rather than silently distorted.
    """

    code: str = "ALLOCATION_INVARIANT_VIOLATED"

    def __init__(
        self,
        nightly_charge_id: str,
        parent_total: str,
        allocated_total: str,
        buckets: tuple[tuple[str, str], ...],
        reason: str,
    ):
        self.nightly_charge_id = nightly_charge_id
        self.parent_total = parent_total
        self.allocated_total = allocated_total
        self.buckets = buckets
        self.reason = reason
        super().__init__(
            f"Allocation for nightly charge {nightly_charge_id} violates "
            f"conservation ({reason}): total {parent_total}, "
            f"allocated {allocated_total}, buckets {list(buckets)}"
        )


# Reconciliation-related exceptions


class ReconciliationError(BillingKernelError):
    """Base exception for reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"


class ScopeRollupMismatchError(ReconciliationError):
    """
    Sum of the per-part results does not equal the whole-scope result.

    Indicates that two aggregation paths included or excluded different
    facts.  Never swallowed.
    """

    code: str = "SCOPE_ROLLUP_MISMATCH"

    def __init__(
        self,
        field: str,
        scope: str,
        expected: str,
        actual: str,
        tolerance: str,
        part_count: int,
    ):
        self.field = field
        self.scope = scope
        self.expected = expected
        self.actual = actual
        self.tolerance = tolerance
        self.part_count = part_count
        super().__init__(
            f"Scope rollup mismatch on {field} for {scope}: "
            f"whole={expected}, sum of {part_count} parts={actual} "
            f"(tolerance {tolerance})"
        )


class InvalidPeriodError(ReconciliationError):
    """Period start is after period end."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period_start: str, period_end: str):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Invalid period: start {period_start} is after end {period_end}"
        )


# Configuration exceptions


class ConfigurationError(BillingKernelError):
    """A configuration value is present but malformed."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, key: str, value: str, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}={value!r}: {reason}")
