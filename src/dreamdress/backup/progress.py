"""
Progress reporting for export and import runs.

A run reports percentages on a 0-100 scale through a single sink. Stages
claim a share of that range and report their own sub-progress, which is
mapped into the share, so the sink always sees one non-decreasing stream
that starts at 0 and ends with exactly one call at 100.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

# (percent, total, message)
ProgressCallback = Callable[[int, int, str], None]

TOTAL = 100


class ProgressReporter:
    """
    Monotonic percent/message sink.

    Example:
        progress = ProgressReporter(lambda pct, total, msg: print(pct, msg))
        progress.start("Preparing export...")
        reading = progress.stage(10, 80)
        reading.update(3, 12, "Reading images 3/12...")
        progress.finish("Export complete!")
    """

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self._last = -1
        self._finished = False

    @property
    def percent(self) -> int:
        """Last reported percentage (0 before anything was reported)."""
        return max(self._last, 0)

    @property
    def finished(self) -> bool:
        return self._finished

    def start(self, message: str) -> None:
        self.report(0, message)

    def report(self, percent: float, message: str) -> None:
        """
        Report progress.

        Values are clamped to 0-99 and never drop below the last reported
        value; 100 is reserved for finish().
        """
        if self._finished:
            return
        value = min(max(int(round(percent)), 0), TOTAL - 1)
        value = max(value, self._last)
        self._last = value
        self._emit(value, message)

    def stage(self, start: float, end: float) -> ProgressStage:
        """Claim the [start, end] share of the range for a sub-stage."""
        if end < start:
            raise ValueError(f"Stage end {end} is before start {start}")
        return ProgressStage(self, start, end)

    def finish(self, message: str) -> None:
        """Report 100. Only the first call has an effect."""
        if self._finished:
            return
        self._finished = True
        self._last = TOTAL
        self._emit(TOTAL, message)

    def _emit(self, value: int, message: str) -> None:
        logger.debug(f"[{value:3d}%] {message}")
        if self._callback is not None:
            self._callback(value, TOTAL, message)


class ProgressStage:
    """A share of a ProgressReporter's range."""

    def __init__(self, reporter: ProgressReporter, start: float, end: float) -> None:
        self.reporter = reporter
        self.start = start
        self.end = end

    def advance(self, fraction: float, message: str) -> None:
        """Report a completed fraction (0.0-1.0) of this stage."""
        fraction = min(max(fraction, 0.0), 1.0)
        self.reporter.report(self.start + (self.end - self.start) * fraction, message)

    def update(self, current: int, total: int, message: str) -> None:
        """Report ``current`` of ``total`` items done."""
        self.advance(current / total if total > 0 else 1.0, message)

    def __call__(self, current: int, total: int, message: str) -> None:
        self.update(current, total, message)
