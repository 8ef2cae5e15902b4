"""Run-or-skip selection of test units from the run history.

A unit whose compiled artifact is unchanged since a fully successful run
can reuse that run's counts instead of executing again.  Anything that
invalidates the comparison (a different toolchain, a test-name filter,
coverage collection, or history being disabled) forces every unit to run.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field

from testrun.history.store import RunHistoryRecord, UnitHistoryEntry, get_entry

# Coverage collection modes accepted on the command line
COVERAGE_NONE = "none"
COVERAGE_MODES = ("none", "sources", "tests", "all")


@dataclass
class SelectionInput:
    """Invocation-wide inputs to the selection policy."""

    toolchain_version: str
    history: RunHistoryRecord
    use_history: bool = True
    pattern: str | None = None
    coverage: str = COVERAGE_NONE

    def __post_init__(self) -> None:
        if self.coverage not in COVERAGE_MODES:
            raise ValueError(
                f"Invalid coverage mode '{self.coverage}'. "
                f"Must be one of: {list(COVERAGE_MODES)}"
            )


@dataclass
class SelectionDecision:
    """Run/skip decision for a single unit."""

    unit_id: str
    run: bool
    reason: str
    entry: UnitHistoryEntry | None = None  # cached entry carried forward on skip


@dataclass
class SelectionResult:
    """Decisions for every candidate unit, in candidate order."""

    decisions: list[SelectionDecision] = field(default_factory=list)

    @property
    def to_run(self) -> list[str]:
        return [d.unit_id for d in self.decisions if d.run]

    @property
    def to_skip(self) -> list[SelectionDecision]:
        return [d for d in self.decisions if not d.run]


def _history_invalid_reason(inputs: SelectionInput) -> str | None:
    """Explain why the history cannot be trusted at all, or None if it can."""
    if not inputs.use_history:
        return "run history disabled"
    if inputs.toolchain_version != inputs.history.toolchain_version:
        return (
            f"toolchain version changed "
            f"({inputs.history.toolchain_version} -> {inputs.toolchain_version})"
        )
    if inputs.pattern is not None:
        return f"test name pattern '{inputs.pattern}' set"
    if inputs.coverage != COVERAGE_NONE:
        return f"coverage mode '{inputs.coverage}' requested"
    return None


def decide_unit(
    inputs: SelectionInput,
    unit_id: str,
    current_timestamp: datetime.datetime | None,
) -> SelectionDecision:
    """Decide whether a unit's tests must run.

    Rules are evaluated in order and the first match wins:
    untrusted history, no entry, changed artifact timestamp, previously
    failed tests.  Otherwise the unit is skipped and its cached entry is
    returned for carrying forward.

    Args:
        inputs: Invocation-wide selection inputs.
        unit_id: Normalized unit identifier.
        current_timestamp: Current timestamp of the unit's artifact.

    Returns:
        SelectionDecision for the unit.
    """
    invalid = _history_invalid_reason(inputs)
    if invalid is not None:
        return SelectionDecision(unit_id, run=True, reason=invalid)

    entry = get_entry(inputs.history, unit_id)
    if entry is None:
        return SelectionDecision(
            unit_id, run=True, reason="not present in previous run",
        )

    # An unknown timestamp on either side never matches.
    if (
        current_timestamp is None
        or entry.last_modified is None
        or current_timestamp != entry.last_modified
    ):
        return SelectionDecision(
            unit_id,
            run=True,
            reason=(
                f"timestamp from previous run ({_fmt(entry.last_modified)}) "
                f"differs from current ({_fmt(current_timestamp)})"
            ),
        )

    if entry.failed_test_count > 0:
        return SelectionDecision(
            unit_id,
            run=True,
            reason=f"previous run had {entry.failed_test_count} failed test(s)",
        )

    return SelectionDecision(
        unit_id,
        run=False,
        reason="unchanged since a run without failures",
        entry=entry,
    )


def select_units(
    inputs: SelectionInput,
    units: list[tuple[str, datetime.datetime | None]],
) -> SelectionResult:
    """Classify every candidate unit.

    Args:
        inputs: Invocation-wide selection inputs.
        units: (unit_id, current artifact timestamp) pairs.

    Returns:
        SelectionResult preserving candidate order.
    """
    return SelectionResult(
        decisions=[decide_unit(inputs, uid, ts) for uid, ts in units]
    )


def _fmt(timestamp: datetime.datetime | None) -> str:
    return timestamp.isoformat() if timestamp is not None else "unknown"
