"""
Tests for progress reporting.

Uses Python's unittest module.
"""

from __future__ import annotations

import unittest

from dreamdress.backup.progress import ProgressReporter


class RecordingSink:
    """Collects progress calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, int, str]] = []

    def __call__(self, percent: int, total: int, message: str) -> None:
        self.calls.append((percent, total, message))

    @property
    def percents(self) -> list[int]:
        return [call[0] for call in self.calls]


class TestProgressReporter(unittest.TestCase):
    """Tests for ProgressReporter."""

    def setUp(self) -> None:
        self.sink = RecordingSink()
        self.reporter = ProgressReporter(self.sink)

    def test_start_and_finish(self) -> None:
        """Test a run starts at 0 and ends at 100 with total 100."""
        self.reporter.start("Starting")
        self.reporter.finish("Done")

        self.assertEqual(self.sink.calls, [(0, 100, "Starting"), (100, 100, "Done")])
        self.assertTrue(self.reporter.finished)

    def test_never_decreases(self) -> None:
        """Test lower values are raised to the last reported value."""
        self.reporter.report(40, "a")
        self.reporter.report(20, "b")
        self.reporter.report(60, "c")

        self.assertEqual(self.sink.percents, [40, 40, 60])

    def test_clamps_below_terminal(self) -> None:
        """Test report() cannot reach 100 on its own."""
        self.reporter.report(150, "too far")
        self.reporter.report(-5, "negative")

        self.assertEqual(self.sink.percents, [99, 99])

    def test_finish_only_once(self) -> None:
        """Test finish emits 100 exactly once and silences later reports."""
        self.reporter.finish("Done")
        self.reporter.finish("Done again")
        self.reporter.report(50, "late")

        self.assertEqual(self.sink.percents, [100])

    def test_stage_maps_into_range(self) -> None:
        """Test stage updates land inside the stage's share."""
        stage = self.reporter.stage(10, 80)

        stage.update(0, 4, "0/4")
        stage.update(2, 4, "2/4")
        stage.update(4, 4, "4/4")

        self.assertEqual(self.sink.percents, [10, 45, 80])

    def test_stage_empty_total(self) -> None:
        """Test a stage with nothing to do reports its end."""
        stage = self.reporter.stage(25, 85)

        stage(0, 0, "nothing")

        self.assertEqual(self.sink.percents, [85])

    def test_stage_advance_clamps_fraction(self) -> None:
        """Test fractions outside 0-1 stay inside the stage."""
        stage = self.reporter.stage(50, 90)

        stage.advance(2.0, "over")

        self.assertEqual(self.sink.percents, [90])

    def test_out_of_order_stages_stay_monotonic(self) -> None:
        """Test a later stage reporting low values cannot move backwards."""
        late = self.reporter.stage(60, 90)
        early = self.reporter.stage(10, 50)

        late.advance(0.5, "late half")
        early.advance(1.0, "early done")

        self.assertEqual(self.sink.percents, [75, 75])

    def test_invalid_stage(self) -> None:
        """Test a stage whose end is before its start is rejected."""
        with self.assertRaises(ValueError):
            self.reporter.stage(80, 10)

    def test_without_callback(self) -> None:
        """Test reporting without a sink still tracks percent."""
        reporter = ProgressReporter()
        reporter.report(30, "x")

        self.assertEqual(reporter.percent, 30)
        reporter.finish("done")
        self.assertEqual(reporter.percent, 100)


if __name__ == "__main__":
    unittest.main()
