"""Unit tests for result aggregation and the summary."""

from __future__ import annotations

import io
import tempfile
from pathlib import Path

import yaml

from testrun.history.store import UnitHistoryEntry
from testrun.reporting.aggregator import ResultAggregator
from testrun.reporting.events import Scope, TestCase
from testrun.reporting.failures import TestFailure
from testrun.reporting.writer import IndentedWriter


def _test(name: str, group: str = "G") -> TestCase:
    return TestCase(name, parent=Scope(group))


def _summary(agg: ResultAggregator, duration: float = 0.0) -> str:
    out = io.StringIO()
    agg.write_summary(IndentedWriter(out), duration)
    return out.getvalue()


class TestCounts:
    """Tests for counters and the exit code."""

    def test_initial_state(self):
        """A fresh aggregator has nothing recorded and exits cleanly."""
        agg = ResultAggregator()
        assert agg.finished == 0
        assert agg.unmodified == 0
        assert agg.exit_code() == 0

    def test_unmodified_totals(self):
        """Carried-over entries contribute passed and skipped counts."""
        agg = ResultAggregator()
        agg.add_unmodified(UnitHistoryEntry("a.py", passed_test_count=3, skipped_test_count=1))
        agg.add_unmodified(UnitHistoryEntry("b.py", passed_test_count=2))
        assert agg.unmodified_passed == 5
        assert agg.unmodified_skipped == 1
        assert agg.unmodified == 6
        assert agg.finished == 0

    def test_failure_sets_exit_code(self):
        """Any failed test makes the exit code 1."""
        agg = ResultAggregator()
        agg.record_passed(_test("p"))
        assert agg.exit_code() == 0
        agg.record_failed(_test("f"), TestFailure("G f"))
        assert agg.exit_code() == 1

    def test_unit_error_keeps_exit_code(self):
        """A unit that could not run is reported but does not fail the run."""
        agg = ResultAggregator()
        agg.add_unit_error("broken.py", "no test function")
        assert agg.exit_code() == 0
        assert [e.unit_id for e in agg.unit_errors] == ["broken.py"]

    def test_unit_error_with_failure_exits_1(self):
        """A failed test still fails the run alongside a unit error."""
        agg = ResultAggregator()
        agg.add_unit_error("broken.py", "no test function")
        agg.record_failed(_test("f"), TestFailure("G f"))
        assert agg.exit_code() == 1

    def test_skips_do_not_fail(self):
        """Skipped tests alone exit cleanly."""
        agg = ResultAggregator()
        agg.record_skipped(_test("s"), "later")
        assert agg.exit_code() == 0
        assert agg.skipped_tests[0].full_name == "G s"
        assert agg.skipped_tests[0].reason == "later"


class TestSummaryRows:
    """Tests for the totals table rows."""

    def test_only_duration_when_empty(self):
        """With nothing recorded only the duration row remains."""
        rows = ResultAggregator().summary_rows(0.04)
        assert rows == [("Tests Duration:", "0.0 Seconds")]

    def test_nonzero_rows_only(self):
        """Zero counts are omitted."""
        agg = ResultAggregator()
        agg.record_passed(_test("a"))
        agg.record_passed(_test("b"))
        agg.add_unmodified(UnitHistoryEntry("u.py", passed_test_count=4))
        labels = [label for label, _ in agg.summary_rows(1.26)]
        assert labels == [
            "Unmodified Tests:",
            "Unmodified Passed Tests:",
            "Tests Run:",
            "Tests Passed:",
            "Tests Duration:",
        ]
        assert agg.summary_rows(1.26)[-1] == ("Tests Duration:", "1.3 Seconds")


class TestWriteSummary:
    """Tests for the rendered summary."""

    def test_table_aligned(self):
        """Values line up after the widest label."""
        agg = ResultAggregator()
        agg.record_passed(_test("a"))
        agg.record_failed(_test("b"), TestFailure("G b", message_lines=["boom"]))
        text = _summary(agg, 2.0)
        assert text.endswith(
            "Tests Run:      2\n"
            "Tests Passed:   1\n"
            "Tests Failed:   1\n"
            "Tests Duration: 2.0 Seconds\n"
            "\n"
        )

    def test_skipped_section(self):
        """Skipped tests are listed with their reasons."""
        agg = ResultAggregator()
        agg.record_skipped(_test("s1"), "slow")
        agg.record_skipped(_test("s2"), None)
        text = _summary(agg)
        assert text.startswith(
            "Skipped Tests:\n"
            "  1) G s1: slow\n"
            "  2) G s2\n"
            "\n"
        )

    def test_failures_section(self):
        """Failures are numbered with their message one level deeper."""
        agg = ResultAggregator()
        agg.record_failed(_test("f"), TestFailure("G f", message_lines=["expected 1"]))
        text = _summary(agg)
        assert text.startswith(
            "Test failures:\n"
            "  1) G f\n"
            "      expected 1\n"
            "\n"
        )

    def test_unit_errors_section(self):
        """Units that could not run are listed."""
        agg = ResultAggregator()
        agg.add_unit_error("broken.py", "Failed to import unit broken.py: boom")
        text = _summary(agg)
        assert "Unit errors:\n  1) broken.py: Failed to import unit broken.py: boom\n" in text


class TestReport:
    """Tests for the YAML run report."""

    def test_report_structure(self):
        """The report carries totals, skips and failures."""
        agg = ResultAggregator()
        agg.record_passed(_test("p"))
        agg.record_skipped(_test("s"), "slow")
        agg.record_failed(_test("f"), TestFailure("G f", message_lines=["boom", None]))
        report = agg.to_report(1.5)["report"]
        assert report["summary"]["run"] == 3
        assert report["summary"]["duration_seconds"] == 1.5
        assert report["skipped_tests"] == [{"name": "G s", "reason": "slow"}]
        assert report["failures"] == [{"test": "G f", "message": ["boom"]}]
        assert "unit_errors" not in report

    def test_write_report_yaml(self):
        """The report is written as YAML and reads back."""
        agg = ResultAggregator()
        agg.record_passed(_test("p"))
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "out" / "report.yaml"
            agg.write_report(path, 0.5)
            data = yaml.safe_load(path.read_text())
        assert data["report"]["summary"]["passed"] == 1
        assert data["report"]["summary"]["failed"] == 0
