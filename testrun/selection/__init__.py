"""Unit selection: decide which test units run and which reuse cached results."""

from testrun.selection.policy import (
    COVERAGE_MODES,
    COVERAGE_NONE,
    SelectionDecision,
    SelectionInput,
    SelectionResult,
    decide_unit,
    select_units,
)

__all__ = [
    "COVERAGE_MODES",
    "COVERAGE_NONE",
    "SelectionDecision",
    "SelectionInput",
    "SelectionResult",
    "decide_unit",
    "select_units",
]
