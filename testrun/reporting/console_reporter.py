"""Hierarchical console reporter.

Renders the lifecycle event stream as an indented tree while the tests run:

    Group1
      testX - Passed
      testY - Failed
          expected 1 but was 2

(one level for the group, one for the test, one for its failure message).

Scope headers are written lazily, when the first test below them starts, by
walking the test's parent chain up to the nearest scope that is already
open.  Nothing is buffered: every decision is made as its event arrives.
When a unit scope closes, its fresh counts become the unit's run-history
entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from testrun.history.store import RunHistoryRecord, UnitHistoryEntry
from testrun.reporting.aggregator import ResultAggregator
from testrun.reporting.events import (
    AfterGroup,
    AfterTest,
    AfterTestResult,
    BeforeGroup,
    BeforeTest,
    EventDispatcher,
    Failed,
    Passed,
    Scope,
    Skipped,
    TestCase,
)
from testrun.reporting.failures import write_failure

if TYPE_CHECKING:
    from testrun.context import InvocationContext


class OpenScopes:
    """Scopes whose header has been written and whose close has not been seen.

    Membership is by identity.  A scope is added once, when its header is
    written, and removed once, when its matching close event arrives.
    """

    def __init__(self) -> None:
        self._scopes: set[Scope] = set()

    def __contains__(self, scope: Scope) -> bool:
        return scope in self._scopes

    def __len__(self) -> int:
        return len(self._scopes)

    def add_if_absent(self, scope: Scope) -> bool:
        """Add a scope; returns False if it was already open."""
        if scope in self._scopes:
            return False
        self._scopes.add(scope)
        return True

    def remove_if_present(self, scope: Scope) -> bool:
        """Remove a scope; returns False if it was never opened or already closed."""
        if scope not in self._scopes:
            return False
        self._scopes.remove(scope)
        return True


@dataclass
class UnitTally:
    """Fresh test counts of one unit during this invocation."""

    passed: int = 0
    skipped: int = 0
    failed: int = 0


def _skip_suffix(message: str | None) -> str:
    return " - Skipped" + (f": {message}" if message else "")


class ConsoleReporter:
    """Consumes lifecycle events and writes the indented progress report.

    Args:
        context: Invocation context providing the indented output writer.
        aggregator: Receives every test outcome.
        record: Run-history record that receives a fresh entry each time a
            unit scope closes; None to leave history untouched.
    """

    def __init__(
        self,
        context: InvocationContext,
        aggregator: ResultAggregator,
        record: RunHistoryRecord | None = None,
    ) -> None:
        self.context = context
        self.writer = context.output
        self.aggregator = aggregator
        self.record = record
        self.open_scopes = OpenScopes()
        self.unit_tallies: dict[str, UnitTally] = {}
        self._open_test: TestCase | None = None

    def register(self, dispatcher: EventDispatcher) -> None:
        """Subscribe to every lifecycle event variant."""
        dispatcher.subscribe(BeforeGroup, self.on_before_group)
        dispatcher.subscribe(AfterGroup, self.on_after_group)
        dispatcher.subscribe(BeforeTest, self.on_before_test)
        dispatcher.subscribe(AfterTestResult, self.on_after_test_result)
        dispatcher.subscribe(AfterTest, self.on_after_test)

    def on_before_group(self, event: BeforeGroup) -> None:
        # Headers are written on the first test below the scope; only
        # start the tally so a unit without tests still gets an entry.
        scope = event.scope
        if scope.is_unit:
            self.unit_tallies[scope.unit_id] = UnitTally()

    def on_after_group(self, event: AfterGroup) -> None:
        scope = event.scope
        if self.open_scopes.remove_if_present(scope):
            self.writer.decrease_indent()
        if scope.is_unit:
            self._record_unit(scope)

    def on_before_test(self, event: BeforeTest) -> None:
        test = event.test
        self._write_scope_headers(test.parent)
        self.writer.write(test.name)
        self.writer.increase_indent()
        self._open_test = test

    def on_after_test_result(self, event: AfterTestResult) -> None:
        test = event.test
        outcome = event.outcome
        tally = self._tally_for(test)

        if isinstance(outcome, Passed):
            self.writer.write_line(" - Passed")
            self.aggregator.record_passed(test)
            if tally is not None:
                tally.passed += 1
        elif isinstance(outcome, Failed):
            self.writer.write_line(" - Failed")
            write_failure(self.writer, outcome.failure)
            self.aggregator.record_failed(test, outcome.failure)
            if tally is not None:
                tally.failed += 1
        elif isinstance(outcome, Skipped):
            self.writer.write_line(_skip_suffix(outcome.reason))
            self.aggregator.record_skipped(test, outcome.reason)
            if tally is not None:
                tally.skipped += 1
        else:
            raise ValueError(f"Unknown test outcome: {outcome!r}")

        self._close_test(test)

    def on_after_test(self, event: AfterTest) -> None:
        self._close_test(event.test)

    def _close_test(self, test: TestCase) -> None:
        """Close the test's indentation level exactly once."""
        if self._open_test is test:
            self._open_test = None
            self.writer.decrease_indent()

    def _write_scope_headers(self, parent: Scope | None) -> None:
        """Write headers for every not-yet-open ancestor, outermost first."""
        to_write: list[Scope] = []
        scope = parent
        while scope is not None and scope not in self.open_scopes:
            to_write.append(scope)
            scope = scope.parent

        while to_write:
            scope = to_write.pop()
            header = scope.name
            if scope.skip:
                header += _skip_suffix(scope.skip_message)
            self.writer.write_line(header)
            self.open_scopes.add_if_absent(scope)
            self.writer.increase_indent()

    def _tally_for(self, test: TestCase) -> UnitTally | None:
        if test.parent is None:
            return None
        unit = test.parent.unit_root()
        if unit is None:
            return None
        return self.unit_tallies.setdefault(unit.unit_id, UnitTally())

    def _record_unit(self, scope: Scope) -> None:
        if self.record is None:
            return
        tally = self.unit_tallies.get(scope.unit_id, UnitTally())
        self.record.set_entry(UnitHistoryEntry(
            relative_path=scope.unit_id,
            last_modified=scope.last_modified,
            passed_test_count=tally.passed,
            skipped_test_count=tally.skipped,
            failed_test_count=tally.failed,
        ))
