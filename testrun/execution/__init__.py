"""Reference engine that loads test units and emits lifecycle events."""

from testrun.execution.engine import (
    Skip,
    TestEngine,
    Unit,
    UnitLoadError,
    UnitRunResult,
)

__all__ = [
    "Skip",
    "TestEngine",
    "Unit",
    "UnitLoadError",
    "UnitRunResult",
]
