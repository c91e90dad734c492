"""
Billing Kernel

Read-only foundation of the hotel billing reconciliation engine:
- Typed exceptions and structured JSON logging
- Money values and fact DTOs
- ORM models for reservations, nightly charges, rate overrides,
  add-ons and payments
- Selectors that stream those facts out of the database
"""

__version__ = "0.1.0"
