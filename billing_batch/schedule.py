"""
Pure interval evaluation for the job-trigger scheduler.

Contract:
    ``IntervalTable.interval_at`` and ``next_run_after`` are PURE -- no I/O,
    no clock access.  The scheduler passes in the current time.

The table is keyed by time of day.  Each window applies from its start time
until the next window's start; the last window of the day wraps past
midnight into the first.  With windows at 00:00 / 09:00 / 19:00 the 09:00
window covers 09:00-18:59 and the 19:00 window covers the evening and night
until the 00:00 window takes over.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from billing_config.schema import SchedulerConfig


@dataclass(frozen=True)
class IntervalWindow:
    starts_at: time
    interval: timedelta

    def __post_init__(self) -> None:
        if self.interval <= timedelta(0):
            raise ValueError(f"Interval must be positive: {self.interval}")


class IntervalTable:
    """Immutable time-of-day -> interval lookup."""

    def __init__(self, windows: Iterable[IntervalWindow]):
        ordered = tuple(sorted(windows, key=lambda w: w.starts_at))
        if not ordered:
            raise ValueError("IntervalTable requires at least one window")
        starts = [w.starts_at for w in ordered]
        if len(set(starts)) != len(starts):
            raise ValueError(f"Duplicate window start times: {starts}")
        self._windows = ordered
        self._starts = starts

    @classmethod
    def from_config(cls, config: SchedulerConfig) -> IntervalTable:
        return cls(
            IntervalWindow(
                starts_at=w.starts_at,
                interval=timedelta(seconds=w.interval_seconds),
            )
            for w in config.windows
        )

    @property
    def windows(self) -> tuple[IntervalWindow, ...]:
        return self._windows

    def window_at(self, at: time) -> IntervalWindow:
        index = bisect_right(self._starts, at) - 1
        # Before the first window of the day: still inside the last one
        return self._windows[index]

    def interval_at(self, at: time) -> timedelta:
        return self.window_at(at).interval

    def next_run_after(self, now: datetime) -> datetime:
        """When a job that ran at ``now`` should next run."""
        return now + self.interval_at(now.time().replace(tzinfo=None))
