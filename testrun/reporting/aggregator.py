"""Invocation-wide result aggregation and the final summary.

Collects fresh outcomes from the console reporter and carried-over
("unmodified") counts from units whose cached result was reused, then
renders the closing summary: skipped tests, failures, and a small aligned
table of totals.  The same data can be written as a YAML run report.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from testrun.history.store import UnitHistoryEntry
from testrun.reporting.events import TestCase
from testrun.reporting.failures import TestFailure, write_failure
from testrun.reporting.writer import IndentedWriter


@dataclass
class SkippedTest:
    """A test reported as skipped, with its optional reason."""

    full_name: str
    reason: str | None = None


@dataclass
class UnitError:
    """A unit that could not be executed (for example, it failed to import)."""

    unit_id: str
    message: str


class ResultAggregator:
    """Accumulates counts and descriptors across the whole invocation."""

    def __init__(self) -> None:
        self.passed = 0
        self.failed = 0
        self.skipped = 0
        self.unmodified_passed = 0
        self.unmodified_skipped = 0
        self.skipped_tests: list[SkippedTest] = []
        self.failures: list[TestFailure] = []
        self.unit_errors: list[UnitError] = []

    @property
    def finished(self) -> int:
        return self.passed + self.failed + self.skipped

    @property
    def unmodified(self) -> int:
        return self.unmodified_passed + self.unmodified_skipped

    def record_passed(self, test: TestCase) -> None:
        self.passed += 1

    def record_failed(self, test: TestCase, failure: TestFailure) -> None:
        self.failed += 1
        self.failures.append(failure)

    def record_skipped(self, test: TestCase, reason: str | None) -> None:
        self.skipped += 1
        self.skipped_tests.append(SkippedTest(test.full_name, reason))

    def add_unmodified(self, entry: UnitHistoryEntry) -> None:
        """Add the counts of a unit whose cached result is reused."""
        self.unmodified_passed += entry.passed_test_count
        self.unmodified_skipped += entry.skipped_test_count

    def add_unit_error(self, unit_id: str, message: str) -> None:
        self.unit_errors.append(UnitError(unit_id, message))

    def exit_code(self) -> int:
        """1 if any test failed, else 0.

        Units that could not be executed are listed in the summary but do not
        change the exit code.
        """
        return 1 if self.failed > 0 else 0

    def summary_rows(self, duration_seconds: float) -> list[tuple[str, str]]:
        """Build the label/value rows of the summary table.

        Count rows are included only when nonzero; the duration row is
        always present.
        """
        rows: list[tuple[str, str]] = []
        if self.unmodified > 0:
            rows.append(("Unmodified Tests:", str(self.unmodified)))
            if self.unmodified_passed > 0:
                rows.append(("Unmodified Passed Tests:", str(self.unmodified_passed)))
            if self.unmodified_skipped > 0:
                rows.append(("Unmodified Skipped Tests:", str(self.unmodified_skipped)))

        if self.finished > 0:
            rows.append(("Tests Run:", str(self.finished)))
            if self.passed > 0:
                rows.append(("Tests Passed:", str(self.passed)))
            if self.failed > 0:
                rows.append(("Tests Failed:", str(self.failed)))
            if self.skipped > 0:
                rows.append(("Tests Skipped:", str(self.skipped)))

        rows.append(("Tests Duration:", f"{duration_seconds:.1f} Seconds"))
        return rows

    def write_summary(self, writer: IndentedWriter, duration_seconds: float) -> None:
        """Write skipped tests, failures, unit errors and the totals table."""
        if self.skipped_tests:
            writer.write_line("Skipped Tests:")
            writer.increase_indent()
            for number, skipped in enumerate(self.skipped_tests, start=1):
                suffix = f": {skipped.reason}" if skipped.reason else ""
                writer.write_line(f"{number}) {skipped.full_name}{suffix}")
            writer.decrease_indent()
            writer.write_line()

        if self.failures:
            writer.write_line("Test failures:")
            writer.increase_indent()
            for number, failure in enumerate(self.failures, start=1):
                writer.write_line(f"{number}) {failure.scope_path}")
                writer.increase_indent()
                write_failure(writer, failure)
                writer.decrease_indent()
                writer.write_line()
            writer.decrease_indent()

        if self.unit_errors:
            writer.write_line("Unit errors:")
            writer.increase_indent()
            for number, error in enumerate(self.unit_errors, start=1):
                writer.write_line(f"{number}) {error.unit_id}: {error.message}")
            writer.decrease_indent()
            writer.write_line()

        rows = self.summary_rows(duration_seconds)
        width = max(len(label) for label, _value in rows)
        for label, value in rows:
            writer.write_line(f"{label:<{width}} {value}")
        writer.write_line()

    def to_report(self, duration_seconds: float) -> dict[str, Any]:
        """Build the run report data structure.

        Returns:
            Dictionary suitable for YAML serialization.
        """
        now = datetime.datetime.now(tz=datetime.timezone.utc).isoformat()
        report: dict[str, Any] = {
            "generated_at": now,
            "summary": {
                "run": self.finished,
                "passed": self.passed,
                "failed": self.failed,
                "skipped": self.skipped,
                "unmodified_passed": self.unmodified_passed,
                "unmodified_skipped": self.unmodified_skipped,
                "duration_seconds": round(duration_seconds, 3),
            },
        }
        if self.skipped_tests:
            report["skipped_tests"] = [
                {"name": s.full_name, "reason": s.reason}
                for s in self.skipped_tests
            ]
        if self.failures:
            report["failures"] = [
                {
                    "test": f.scope_path,
                    "message": [line for line in f.message_lines if line is not None],
                }
                for f in self.failures
            ]
        if self.unit_errors:
            report["unit_errors"] = [
                {"unit": e.unit_id, "message": e.message} for e in self.unit_errors
            ]
        return {"report": report}

    def write_report(self, path: Path, duration_seconds: float) -> None:
        """Write the run report as a YAML file.

        Args:
            path: File path to write the YAML report to.
            duration_seconds: Elapsed time of the invocation.
        """
        report = self.to_report(duration_seconds)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(
                report,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )
