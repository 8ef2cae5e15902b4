"""Test lifecycle events and their dispatch table.

The execution engine announces progress as a strictly ordered stream of
events: scopes (units and groups) are entered and exited depth-first, and
each test is bracketed by BeforeTest / AfterTest with exactly one
AfterTestResult in between.  Subscribers register per event variant; there
is no reflection-based dispatch.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Callable, Union

from testrun.reporting.failures import TestFailure


@dataclass(eq=False)
class Scope:
    """A node of the execution tree that contains tests: a unit or a group.

    Scopes compare by identity; two groups with the same name are still
    distinct scopes.  ``unit_id`` is set only on unit roots.
    """

    name: str
    parent: Scope | None = None
    skip: bool = False
    skip_message: str | None = None
    unit_id: str | None = None
    last_modified: datetime.datetime | None = None

    @property
    def is_unit(self) -> bool:
        return self.unit_id is not None

    @property
    def full_name(self) -> str:
        names: list[str] = []
        scope: Scope | None = self
        while scope is not None:
            names.append(scope.name)
            scope = scope.parent
        return " ".join(reversed(names))

    def unit_root(self) -> Scope | None:
        """Return the nearest enclosing unit scope (possibly self)."""
        scope: Scope | None = self
        while scope is not None and not scope.is_unit:
            scope = scope.parent
        return scope


@dataclass(eq=False)
class TestCase:
    """A single test inside a scope."""

    __test__ = False  # not a pytest test class

    name: str
    parent: Scope | None = None
    skip_message: str | None = None

    @property
    def full_name(self) -> str:
        if self.parent is None:
            return self.name
        return f"{self.parent.full_name} {self.name}"


@dataclass(frozen=True)
class Passed:
    """The test body completed without raising."""


@dataclass(frozen=True)
class Failed:
    """The test body raised; ``failure`` describes the error chain."""

    failure: TestFailure


@dataclass(frozen=True)
class Skipped:
    """The test was not executed."""

    reason: str | None = None


Outcome = Union[Passed, Failed, Skipped]


@dataclass(frozen=True)
class BeforeGroup:
    scope: Scope


@dataclass(frozen=True)
class AfterGroup:
    scope: Scope


@dataclass(frozen=True)
class BeforeTest:
    test: TestCase


@dataclass(frozen=True)
class AfterTestResult:
    test: TestCase
    outcome: Outcome


@dataclass(frozen=True)
class AfterTest:
    test: TestCase


LifecycleEvent = Union[BeforeGroup, AfterGroup, BeforeTest, AfterTestResult, AfterTest]

# The closed set of event variants, in lifecycle order
EVENT_TYPES: tuple[type, ...] = (
    BeforeGroup,
    AfterGroup,
    BeforeTest,
    AfterTestResult,
    AfterTest,
)


class EventDispatcher:
    """Per-variant subscription table for lifecycle events.

    Handlers for a variant are called in registration order.  Handler
    exceptions propagate to the emitter: a subscriber that cannot do its
    job (for example, a reporter whose output sink failed) aborts the run.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable]] = {t: [] for t in EVENT_TYPES}

    def subscribe(self, event_type: type, handler: Callable) -> None:
        """Register a handler for one event variant.

        Raises:
            ValueError: If event_type is not a lifecycle event variant.
        """
        if event_type not in self._handlers:
            raise ValueError(f"Unknown lifecycle event type: {event_type!r}")
        self._handlers[event_type].append(handler)

    def handler_count(self, event_type: type) -> int:
        return len(self._handlers.get(event_type, []))

    def dispatch(self, event: LifecycleEvent) -> None:
        """Deliver an event to every handler registered for its variant."""
        handlers = self._handlers.get(type(event))
        if handlers is None:
            raise ValueError(f"Unknown lifecycle event: {event!r}")
        for handler in handlers:
            handler(event)
