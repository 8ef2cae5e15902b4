"""Lifecycle events, the hierarchical console reporter and result aggregation."""

from testrun.reporting.aggregator import ResultAggregator, SkippedTest, UnitError
from testrun.reporting.console_reporter import ConsoleReporter, OpenScopes
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
from testrun.reporting.failures import (
    AggregateError,
    ErrorInfo,
    TestFailure,
    failure_from_exception,
    write_failure,
)
from testrun.reporting.progress import VerboseProgress
from testrun.reporting.writer import IndentedWriter, OutputWriteError, TeeStream

__all__ = [
    "AfterGroup",
    "AfterTest",
    "AfterTestResult",
    "AggregateError",
    "BeforeGroup",
    "BeforeTest",
    "ConsoleReporter",
    "ErrorInfo",
    "EventDispatcher",
    "Failed",
    "IndentedWriter",
    "OpenScopes",
    "OutputWriteError",
    "Passed",
    "ResultAggregator",
    "Scope",
    "Skipped",
    "SkippedTest",
    "TeeStream",
    "TestCase",
    "TestFailure",
    "UnitError",
    "VerboseProgress",
    "failure_from_exception",
    "write_failure",
]
