"""
billing_services -- Package init and public API.

Responsibility:
    Orchestration services that compose the pure engines (billing_engines/)
    with the fact selectors and a caller-supplied SQLAlchemy Session.

Architecture position:
    Services -- orchestration over engines + kernel.

    Dependency direction:
        billing_services/ -> billing_engines/  (allowed)
        billing_services/ -> billing_kernel/   (allowed)
        billing_engines/  -> billing_services/ (FORBIDDEN)
        billing_kernel/   -> billing_services/ (FORBIDDEN)
"""

from billing_kernel.logging_config import get_logger

logger = get_logger("services")

from billing_services.fact_cache import FactSnapshot, FactSnapshotCache
from billing_services.ledger_export_service import (
    LEDGER_COLUMNS,
    LedgerExport,
    LedgerExportService,
    render_csv,
)
from billing_services.reconciliation_service import (
    HotelOverview,
    ReconciliationService,
    build_pipeline,
)

__all__ = [
    "FactSnapshot",
    "FactSnapshotCache",
    "HotelOverview",
    "LEDGER_COLUMNS",
    "LedgerExport",
    "LedgerExportService",
    "ReconciliationService",
    "build_pipeline",
    "render_csv",
]
