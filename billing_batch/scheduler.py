"""
JobTriggerScheduler -- In-process polling scheduler for reconciliation triggers.

Contract:
    Polls on a fixed tick, fires each job whose next run time has come, and
    computes the job's next run from the injected ``IntervalTable``.

Invariants enforced:
    - All timestamps come from the injected Clock.
    - Next-run computation is pure (``IntervalTable.next_run_after``).
    - No module-level timer state: every handle lives on the instance, so
      two schedulers never interfere.
    - A failing job is logged and rescheduled; it never stops the loop or
      the other jobs.
    - Graceful shutdown: ``stop()`` sets an event checked between jobs.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from billing_batch.schedule import IntervalTable
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.scheduler")

JobCallable = Callable[[datetime], Any]


class JobTriggerScheduler:
    """
    Fires named job callables on a time-of-day interval table.

    Contract:
        - ``tick()`` fires every due job once and returns how many fired.
        - A job that has never run is due on the first tick.
        - ``start()`` / ``stop()`` for background thread operation.
    Non-goals:
        - NOT a distributed scheduler (no leader election).
        - Does not persist run history across restarts.
    """

    def __init__(
        self,
        table: IntervalTable,
        jobs: Mapping[str, JobCallable],
        clock: Clock | None = None,
        tick_interval_seconds: float = 30,
    ):
        self._table = table
        self._jobs = dict(jobs)
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._next_run: dict[str, datetime] = {}
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> int:
        """Fire due jobs (public for testing).  Returns the number fired."""
        now = self._clock.now()
        fired = 0

        for name, job in self._jobs.items():
            if self._stop_event.is_set():
                break
            due_at = self._next_run.get(name)
            if due_at is not None and now < due_at:
                continue

            with LogContext.bind(job_name=name):
                try:
                    job(now)
                    logger.info("job_fired", extra={"job": name, "fired_at": now})
                except Exception:
                    logger.exception("job_failed", extra={"job": name, "fired_at": now})
                finally:
                    self._next_run[name] = self._table.next_run_after(now)
            fired += 1

        return fired

    def next_run(self, name: str) -> datetime | None:
        return self._next_run.get(name)

    @property
    def job_names(self) -> tuple[str, ...]:
        return tuple(self._jobs)

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="billing-job-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={
            "tick_interval": self._tick_interval,
            "jobs": list(self._jobs),
        })

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the loop to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)
