"""Reference execution engine for test units.

A unit is a Python file exposing a module-level ``test(runner)`` function.
The engine loads the file, opens the unit's root scope and hands itself to
that function as the runner:

    def test(runner):
        with runner.group("Parser"):
            runner.test("parses empty input", lambda t: ...)
            runner.test("rejects garbage", check_garbage, skip=Skip("flaky"))

Every group and test is announced on the event dispatcher in strict
depth-first order; reporters never see the engine itself.
"""

from __future__ import annotations

import contextlib
import datetime
import fnmatch
import importlib.util
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator

from testrun.history.store import normalize_unit_id
from testrun.reporting.events import (
    AfterGroup,
    AfterTest,
    AfterTestResult,
    BeforeGroup,
    BeforeTest,
    EventDispatcher,
    Failed,
    LifecycleEvent,
    Outcome,
    Passed,
    Scope,
    Skipped,
    TestCase,
)
from testrun.reporting.failures import TestFailure, failure_from_exception


class UnitLoadError(RuntimeError):
    """Raised when a unit cannot be loaded or fails outside of any test."""


@dataclass(frozen=True)
class Skip:
    """Marks a group or test as skipped, with an optional reason."""

    message: str | None = None


@dataclass
class Unit:
    """A test unit: a source file plus its artifact timestamp."""

    unit_id: str
    path: Path
    last_modified: datetime.datetime | None = None

    @classmethod
    def from_path(cls, root: Path, path: Path | str) -> Unit:
        """Build a unit from a file path relative to (or inside) ``root``.

        The timestamp is the file's modification time in UTC, or None when
        the file does not exist.

        Raises:
            ValueError: If the path is not inside ``root``.
        """
        root = Path(root)
        path = Path(path)
        full = path if path.is_absolute() else root / path
        relative = full.resolve().relative_to(root.resolve())
        unit_id = normalize_unit_id(relative.as_posix())
        try:
            mtime = full.stat().st_mtime
        except FileNotFoundError:
            last_modified = None
        else:
            last_modified = datetime.datetime.fromtimestamp(mtime, tz=datetime.timezone.utc)
        return cls(unit_id=unit_id, path=full, last_modified=last_modified)


@dataclass
class UnitRunResult:
    """Fresh counts and failures of one executed unit."""

    passed: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[TestFailure] = field(default_factory=list)

    def record(self, outcome: Outcome) -> None:
        if isinstance(outcome, Passed):
            self.passed += 1
        elif isinstance(outcome, Failed):
            self.failed += 1
            self.failures.append(outcome.failure)
        else:
            self.skipped += 1


def _module_name(unit_id: str) -> str:
    return "testrun_unit_" + re.sub(r"\W", "_", unit_id)


class TestEngine:
    """Runs units one at a time, emitting lifecycle events.

    Args:
        dispatcher: Receives every lifecycle event.
        pattern: Optional glob; tests whose full name and bare name both
            fail to match are not run and produce no events.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, dispatcher: EventDispatcher, pattern: str | None = None) -> None:
        self.dispatcher = dispatcher
        self.pattern = pattern
        self._scope: Scope | None = None
        self._result: UnitRunResult | None = None
        self._subscriber_error: Exception | None = None

    def run_unit(self, unit: Unit) -> UnitRunResult:
        """Load a unit and run all of its tests.

        Returns:
            UnitRunResult with this run's counts.

        Raises:
            UnitLoadError: If the unit cannot be imported, has no ``test``
                function, or raises outside of a test.
            Exception: Whatever a subscriber raised, unchanged.
        """
        module = self._load_module(unit)
        test_function = getattr(module, "test", None)
        if not callable(test_function):
            raise UnitLoadError(f"Unit {unit.unit_id} has no test(runner) function")

        scope = Scope(
            name=unit.unit_id,
            unit_id=unit.unit_id,
            last_modified=unit.last_modified,
        )
        result = UnitRunResult()
        self._scope = scope
        self._result = result
        self._subscriber_error = None
        self._dispatch(BeforeGroup(scope))
        try:
            test_function(self)
        except Exception as e:
            if self._subscriber_error is not None:
                raise self._subscriber_error
            raise UnitLoadError(
                f"Unit {unit.unit_id} raised outside of a test: {e}"
            ) from e
        finally:
            self._scope = None
            self._result = None
            if self._subscriber_error is None:
                self._dispatch(AfterGroup(scope))
        if self._subscriber_error is not None:
            raise self._subscriber_error
        return result

    @contextlib.contextmanager
    def group(self, name: str, skip: Skip | None = None) -> Iterator[Scope]:
        """Open a child scope of the current scope for the ``with`` body."""
        parent = self._current_scope()
        scope = Scope(
            name=name,
            parent=parent,
            skip=skip is not None,
            skip_message=skip.message if skip is not None else None,
        )
        self._dispatch(BeforeGroup(scope))
        self._scope = scope
        try:
            yield scope
        finally:
            self._scope = parent
            if self._subscriber_error is None:
                self._dispatch(AfterGroup(scope))

    def test(
        self,
        name: str,
        action: Callable[[TestCase], Any],
        skip: Skip | None = None,
    ) -> None:
        """Run one test in the current scope.

        Assertion errors and any other exception raised by ``action`` are
        reported as a failed test; they do not stop the unit.
        """
        parent = self._current_scope()
        test_case = TestCase(
            name=name,
            parent=parent,
            skip_message=skip.message if skip is not None else None,
        )
        if not self._matches(test_case):
            return

        self._dispatch(BeforeTest(test_case))
        outcome: Outcome
        skipped, reason = self._skip_reason(parent, skip)
        if skipped:
            outcome = Skipped(reason)
        else:
            try:
                action(test_case)
            except Exception as e:
                outcome = Failed(failure_from_exception(e, test_case.full_name))
            else:
                outcome = Passed()

        if self._result is not None:
            self._result.record(outcome)
        self._dispatch(AfterTestResult(test_case, outcome))
        self._dispatch(AfterTest(test_case))

    def _dispatch(self, event: LifecycleEvent) -> None:
        """Deliver an event; a failing subscriber aborts the whole run.

        The error is remembered so that it is re-raised as-is even when unit
        code between the dispatch and the engine catches or wraps it.
        """
        try:
            self.dispatcher.dispatch(event)
        except Exception as e:
            self._subscriber_error = e
            raise

    def _current_scope(self) -> Scope:
        if self._scope is None:
            raise ValueError("Groups and tests can only be declared while a unit is running")
        return self._scope

    def _matches(self, test_case: TestCase) -> bool:
        if self.pattern is None:
            return True
        return fnmatch.fnmatchcase(test_case.full_name, self.pattern) or fnmatch.fnmatchcase(
            test_case.name, self.pattern
        )

    @staticmethod
    def _skip_reason(parent: Scope, skip: Skip | None) -> tuple[bool, str | None]:
        if skip is not None:
            return True, skip.message
        scope: Scope | None = parent
        while scope is not None:
            if scope.skip:
                return True, scope.skip_message
            scope = scope.parent
        return False, None

    @staticmethod
    def _load_module(unit: Unit) -> Any:
        if not unit.path.is_file():
            raise UnitLoadError(f"Unit file not found: {unit.path}")
        name = _module_name(unit.unit_id)
        spec = importlib.util.spec_from_file_location(name, unit.path)
        if spec is None or spec.loader is None:
            raise UnitLoadError(f"Cannot load unit {unit.unit_id} from {unit.path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            del sys.modules[name]
            raise UnitLoadError(f"Failed to import unit {unit.unit_id}: {e}") from e
        return module
