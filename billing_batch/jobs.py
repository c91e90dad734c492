"""
Reconciliation job triggers.

The scheduler only ever calls into the reconciliation core through these
two jobs:

- ``month_to_date_rollup_check``: reconcile the current month to date at
  client, hotel and portfolio scope and check that the levels roll up.
- ``previous_month_ledger_export``: write the ledger CSV for the previous
  calendar month.

Each job opens its own session from the injected factory and closes it
when done.  Errors propagate to the scheduler, which logs them.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from datetime import date, datetime, timedelta
from pathlib import Path

from sqlalchemy.orm import Session

from billing_batch.schedule import IntervalTable
from billing_batch.scheduler import JobCallable, JobTriggerScheduler
from billing_config.schema import BillingConfig
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import ConfigurationError
from billing_kernel.logging_config import get_logger
from billing_kernel.selectors.fact_selector import FactFilter
from billing_services.ledger_export_service import LedgerExport, LedgerExportService
from billing_services.reconciliation_service import ALL_LEVELS, ReconciliationService

logger = get_logger("batch.jobs")


def month_to_date(today: date) -> tuple[date, date]:
    return today.replace(day=1), today


def previous_month(today: date) -> tuple[date, date]:
    end = today.replace(day=1) - timedelta(days=1)
    return end.replace(day=1), end


class ReconciliationJobs:
    """Job callables bound to a session factory and configuration."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config: BillingConfig,
        export_directory: Path | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._export_directory = export_directory or Path(config.export_directory)

    def month_to_date_rollup_check(self, now: datetime) -> int:
        """Returns the number of hotel and portfolio rollups checked."""
        period_start, period_end = month_to_date(now.date())
        session = self._session_factory()
        try:
            service = ReconciliationService(session, self._config)
            report = service.run_pipeline(
                ALL_LEVELS, FactFilter(), period_start, period_end,
            )
            checked = service.validator.validate_results(report.results)
        finally:
            session.close()

        logger.info("rollup_check_completed", extra={
            "period_start": period_start,
            "period_end": period_end,
            "rollups_checked": checked,
            "exclusion_count": len(report.exclusions),
        })
        return checked

    def previous_month_ledger_export(self, now: datetime) -> LedgerExport:
        period_start, period_end = previous_month(now.date())
        path = self._export_directory / f"ledger_{period_end:%Y%m}.csv"
        session = self._session_factory()
        try:
            service = ReconciliationService(
                session, dataclasses.replace(self._config, validate_rollups=False),
            )
            return LedgerExportService(service).export(period_start, period_end, path)
        finally:
            session.close()

    def job_map(self, names: tuple[str, ...]) -> dict[str, JobCallable]:
        """Callables for the named jobs, in the given order."""
        available: dict[str, JobCallable] = {
            "month_to_date_rollup_check": self.month_to_date_rollup_check,
            "previous_month_ledger_export": self.previous_month_ledger_export,
        }
        unknown = [name for name in names if name not in available]
        if unknown:
            raise ConfigurationError(
                "scheduler.jobs", ",".join(unknown), "unknown job name",
            )
        return {name: available[name] for name in names}


def build_scheduler(
    config: BillingConfig,
    session_factory: Callable[[], Session],
    clock: Clock | None = None,
) -> JobTriggerScheduler | None:
    """Scheduler wired from configuration, or None when scheduling is disabled."""
    if not config.scheduler.enabled:
        logger.info("scheduler_disabled")
        return None

    jobs = ReconciliationJobs(session_factory, config)
    return JobTriggerScheduler(
        table=IntervalTable.from_config(config.scheduler),
        jobs=jobs.job_map(config.scheduler.enabled_jobs),
        clock=clock,
        tick_interval_seconds=config.scheduler.tick_interval_seconds,
    )
