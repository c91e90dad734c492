"""
Tests for JobTriggerScheduler with a DeterministicClock.

Covers:
- First tick fires every job
- Jobs refire only once their interval has elapsed
- Interval follows the time-of-day window
- A failing job is logged and rescheduled without stopping others
- Log records carry the job name
- Background thread start/stop
"""

from datetime import datetime, time, timedelta

from billing_batch.schedule import IntervalTable, IntervalWindow
from billing_batch.scheduler import JobTriggerScheduler
from billing_kernel.domain.clock import DeterministicClock


def _table() -> IntervalTable:
    return IntervalTable([
        IntervalWindow(time(0, 0), timedelta(seconds=1800)),
        IntervalWindow(time(9, 0), timedelta(seconds=310)),
        IntervalWindow(time(19, 0), timedelta(seconds=1800)),
    ])


class Recorder:
    def __init__(self):
        self.calls: list[datetime] = []

    def __call__(self, now: datetime) -> None:
        self.calls.append(now)


class TestTick:

    def setup_method(self):
        self.clock = DeterministicClock(datetime(2025, 12, 1, 10, 0))
        self.rollup = Recorder()
        self.export = Recorder()
        self.scheduler = JobTriggerScheduler(
            table=_table(),
            jobs={"rollup": self.rollup, "export": self.export},
            clock=self.clock,
        )

    def test_first_tick_fires_every_job(self):
        assert self.scheduler.tick() == 2
        assert self.rollup.calls == [datetime(2025, 12, 1, 10, 0)]
        assert self.export.calls == [datetime(2025, 12, 1, 10, 0)]

    def test_not_due_before_interval(self):
        self.scheduler.tick()
        self.clock.advance(309)

        assert self.scheduler.tick() == 0
        assert len(self.rollup.calls) == 1

    def test_due_after_interval(self):
        self.scheduler.tick()
        self.clock.advance(310)

        assert self.scheduler.tick() == 2
        assert len(self.rollup.calls) == 2

    def test_next_run_follows_window(self):
        self.scheduler.tick()
        assert self.scheduler.next_run("rollup") == datetime(2025, 12, 1, 10, 5, 10)

        self.clock.set_time(datetime(2025, 12, 1, 20, 0))
        self.scheduler.tick()
        assert self.scheduler.next_run("rollup") == datetime(2025, 12, 1, 20, 30)

    def test_job_names(self):
        assert self.scheduler.job_names == ("rollup", "export")
        assert self.scheduler.next_run("rollup") is None


class TestFailingJob:

    def test_failure_is_logged_and_rescheduled(self, captured_logs):
        clock = DeterministicClock(datetime(2025, 12, 1, 10, 0))
        healthy = Recorder()

        def broken(now):
            raise RuntimeError("database unavailable")

        scheduler = JobTriggerScheduler(
            table=_table(),
            jobs={"broken": broken, "healthy": healthy},
            clock=clock,
        )

        assert scheduler.tick() == 2
        assert len(healthy.calls) == 1
        assert scheduler.next_run("broken") == datetime(2025, 12, 1, 10, 5, 10)

        [failure] = [r for r in captured_logs() if r["message"] == "job_failed"]
        assert failure["job_name"] == "broken"
        assert failure["exc_type"] == "RuntimeError"

    def test_fired_log_carries_job_name(self, captured_logs):
        scheduler = JobTriggerScheduler(
            table=_table(),
            jobs={"rollup": Recorder()},
            clock=DeterministicClock(datetime(2025, 12, 1, 10, 0)),
        )

        scheduler.tick()

        [fired] = [r for r in captured_logs() if r["message"] == "job_fired"]
        assert fired["job_name"] == "rollup"
        assert fired["fired_at"] == "2025-12-01T10:00:00"


class TestThread:

    def test_start_and_stop(self):
        recorder = Recorder()
        scheduler = JobTriggerScheduler(
            table=_table(),
            jobs={"rollup": recorder},
            clock=DeterministicClock(datetime(2025, 12, 1, 10, 0)),
            tick_interval_seconds=0.01,
        )

        scheduler.start()
        assert scheduler.is_running
        scheduler.stop(timeout=5)

        assert not scheduler.is_running
        assert len(recorder.calls) <= 1
