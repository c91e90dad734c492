"""
billing_services.ledger_export_service -- Ledger listing for downstream accounting.

Responsibility:
    Build the ledger-shaped listing (date, hotel, client, tax rate, sales,
    included tax, payments) for a period and write it as CSV.  This is the
    only artifact the reconciliation core persists.

Invariants enforced:
    - Byte-reproducible: the same fact snapshot always produces the same
      bytes.  Row order is fixed by ``LedgerRow.sort_key``; the CSV dialect,
      line terminator, encoding and number formatting are fixed.
    - The SHA-256 digest of the written bytes is returned with every export
      so callers can prove two exports are identical.
    - Rows come from the same pipeline as ``reconcile``: the ledger's sales
      for a period equal the portfolio ``period_sales`` for the same filter.
"""

from __future__ import annotations

import csv
import hashlib
import io
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from billing_engines.ledger import LedgerRow
from billing_kernel.domain.scope import ScopeLevel
from billing_kernel.logging_config import get_logger
from billing_kernel.selectors.fact_selector import FactFilter
from billing_services.reconciliation_service import ReconciliationService

logger = get_logger("services.ledger_export")

LEDGER_COLUMNS = (
    "date",
    "hotel_id",
    "client_id",
    "tax_rate",
    "sales_amount",
    "tax_amount",
    "payment_amount",
)


@dataclass(frozen=True)
class LedgerExport:
    path: Path
    period_start: date
    period_end: date
    row_count: int
    sha256: str


def format_rate(rate: Decimal) -> str:
    """``0.1000`` and ``0.10`` both render as ``0.10``."""
    normalized = rate.normalize()
    if normalized.as_tuple().exponent > -2:
        normalized = normalized.quantize(Decimal("0.01"))
    return format(normalized, "f")


def render_csv(rows: Sequence[LedgerRow]) -> bytes:
    """Serialise ledger rows to UTF-8 CSV bytes."""
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(LEDGER_COLUMNS)
    for row in rows:
        writer.writerow((
            row.date.isoformat(),
            row.hotel_id,
            str(row.client_id),
            "" if row.tax_rate is None else format_rate(row.tax_rate),
            str(row.sales_amount),
            str(row.tax_amount),
            str(row.payment_amount),
        ))
    return buffer.getvalue().encode("utf-8")


class LedgerExportService:
    """Builds and writes ledger exports through a ReconciliationService."""

    def __init__(self, reconciliation: ReconciliationService):
        self.reconciliation = reconciliation

    def build_rows(
        self,
        period_start: date,
        period_end: date,
        hotel_ids: Sequence[int] | None = None,
        client_ids: Sequence[UUID] | None = None,
    ) -> list[LedgerRow]:
        report = self.reconciliation.run_pipeline(
            (ScopeLevel.CLIENT,),
            FactFilter.of(hotel_ids=hotel_ids, client_ids=client_ids),
            period_start,
            period_end,
            build_ledger=True,
        )
        return list(report.ledger_rows)

    def write_csv(self, rows: Sequence[LedgerRow], path: Path) -> str:
        """Write rows to ``path``; returns the SHA-256 hex digest of the bytes."""
        payload = render_csv(rows)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        return hashlib.sha256(payload).hexdigest()

    def export(
        self,
        period_start: date,
        period_end: date,
        path: Path,
        hotel_ids: Sequence[int] | None = None,
    ) -> LedgerExport:
        rows = self.build_rows(period_start, period_end, hotel_ids=hotel_ids)
        digest = self.write_csv(rows, path)
        logger.info("ledger_exported", extra={
            "path": str(path),
            "period_start": period_start,
            "period_end": period_end,
            "row_count": len(rows),
            "sha256": digest,
        })
        return LedgerExport(
            path=path,
            period_start=period_start,
            period_end=period_end,
            row_count=len(rows),
            sha256=digest,
        )
