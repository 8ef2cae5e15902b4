"""Failure records for failed tests.

A failed test carries a TestFailure: its message lines, stack frames and an
optional cause.  Causes form a chain of tagged variants: ErrorInfo (tag
"single") for one error, AggregateError (tag "aggregate") for an error that
wraps several others.  Renderers switch on ``tag`` rather than on class.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Union

if TYPE_CHECKING:
    from testrun.reporting.writer import IndentedWriter

SINGLE = "single"
AGGREGATE = "aggregate"


@dataclass(eq=False)
class ErrorInfo:
    """One error in a cause chain."""

    tag: ClassVar[str] = SINGLE

    error_type: str
    message_lines: list[str | None] = field(default_factory=list)
    message: str | None = None
    stack_frames: list[str] = field(default_factory=list)
    cause: ErrorCause | None = None


@dataclass(eq=False)
class AggregateError:
    """An error wrapping an ordered collection of inner errors."""

    tag: ClassVar[str] = AGGREGATE

    error_type: str
    errors: list[ErrorCause] = field(default_factory=list)
    message_lines: list[str | None] = field(default_factory=list)
    message: str | None = None
    stack_frames: list[str] = field(default_factory=list)
    cause: ErrorCause | None = None


ErrorCause = Union[ErrorInfo, AggregateError]


@dataclass(eq=False)
class TestFailure:
    """The failure attached to a failed test.

    Attributes:
        scope_path: Full name of the failed test, used in the summary.
        message_lines: Lines printed verbatim under the test.
        stack_frames: Frames of the failing call, innermost last.
        cause: Optional cause chain.
    """

    __test__ = False  # not a pytest test class

    scope_path: str
    message_lines: list[str | None] = field(default_factory=list)
    stack_frames: list[str] = field(default_factory=list)
    cause: ErrorCause | None = None


def error_kind(exc: BaseException) -> str:
    """Qualified name of an exception's type (builtins unqualified)."""
    cls = type(exc)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def format_stack_frames(exc: BaseException) -> list[str]:
    """Format the traceback of an exception, one entry per frame."""
    return [
        f"{frame.name} ({frame.filename}:{frame.lineno})"
        for frame in traceback.extract_tb(exc.__traceback__)
    ]


def _next_exception(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def error_from_exception(
    exc: BaseException,
    _converted: dict[int, ErrorCause] | None = None,
) -> ErrorCause:
    """Convert an exception and its cause chain into failure-cause records.

    An exception that appears more than once in its own chain is converted
    once, so a self-caused exception yields a record that is its own cause.

    Args:
        exc: The exception to convert.

    Returns:
        ErrorInfo, or AggregateError for exception groups.
    """
    if _converted is None:
        _converted = {}
    existing = _converted.get(id(exc))
    if existing is not None:
        return existing

    result: ErrorCause
    if isinstance(exc, BaseExceptionGroup):
        result = AggregateError(
            error_type=error_kind(exc),
            message=exc.message or None,
            stack_frames=format_stack_frames(exc),
        )
        _converted[id(exc)] = result
        result.errors = [
            error_from_exception(inner, _converted) for inner in exc.exceptions
        ]
    else:
        result = ErrorInfo(
            error_type=error_kind(exc),
            message=str(exc) or None,
            stack_frames=format_stack_frames(exc),
        )
        _converted[id(exc)] = result

    nxt = _next_exception(exc)
    if nxt is not None:
        result.cause = error_from_exception(nxt, _converted)
    return result


def failure_from_exception(exc: BaseException, scope_path: str) -> TestFailure:
    """Build the TestFailure for a test whose body raised ``exc``.

    Assertion messages are printed as-is; any other exception is prefixed
    with its type name.  Exception groups report their inner exceptions as
    an aggregate cause.

    Args:
        exc: The raised exception.
        scope_path: Full name of the failed test.

    Returns:
        TestFailure describing the error chain.
    """
    text = exc.message if isinstance(exc, BaseExceptionGroup) else str(exc)
    if isinstance(exc, AssertionError):
        lines: list[str | None] = list(text.splitlines()) or ["Assertion failed"]
    else:
        kind = error_kind(exc)
        first, *rest = text.splitlines() or [""]
        lines = [f"{kind}: {first}" if first else kind, *rest]

    failure = TestFailure(
        scope_path=scope_path,
        message_lines=lines,
        stack_frames=format_stack_frames(exc),
    )

    converted: dict[int, ErrorCause] = {}
    if isinstance(exc, BaseExceptionGroup):
        group = AggregateError(error_type=error_kind(exc), message=exc.message or None)
        converted[id(exc)] = group
        group.errors = [
            error_from_exception(inner, converted) for inner in exc.exceptions
        ]
        failure.cause = group
    else:
        nxt = _next_exception(exc)
        if nxt is not None and nxt is not exc:
            failure.cause = error_from_exception(nxt, converted)
    return failure


def write_failure(writer: IndentedWriter, failure: TestFailure) -> None:
    """Write a failure's message, stack trace and cause chain.

    The message block is written one level deeper than the current indent;
    the cause chain starts at the current indent.
    """
    writer.increase_indent()
    _write_message_lines(writer, failure.message_lines)
    _write_stack_trace(writer, failure.stack_frames)
    writer.decrease_indent()

    if failure.cause is not None:
        write_failure_cause(writer, failure.cause)


def write_failure_cause(writer: IndentedWriter, cause: ErrorCause) -> None:
    """Write one link of a cause chain and recurse into the next.

    An error is never written as its own direct cause.  Longer cycles
    (A caused by B caused by A) are not detected.
    """
    if cause.tag == AGGREGATE:
        writer.write_line("Caused by:")
        for number, inner in enumerate(cause.errors, start=1):
            writer.write_line(f"{number}) {inner.error_type}")
            _write_error_body(writer, inner)
    else:
        writer.write_line(f"Caused by: {cause.error_type}")
        _write_error_body(writer, cause)


def _write_error_body(writer: IndentedWriter, error: ErrorCause) -> None:
    writer.increase_indent()
    if error.message_lines:
        _write_message_lines(writer, error.message_lines)
    elif error.message:
        writer.write_line(f"Message: {error.message}")
    _write_stack_trace(writer, error.stack_frames)
    writer.decrease_indent()

    next_cause = error.cause
    if next_cause is not None and next_cause is not error:
        writer.increase_indent()
        write_failure_cause(writer, next_cause)
        writer.decrease_indent()


def _write_message_lines(writer: IndentedWriter, lines: list[str | None]) -> None:
    for line in lines:
        if line is not None:
            writer.write_line(line)


def _write_stack_trace(writer: IndentedWriter, frames: list[str]) -> None:
    if not frames:
        return
    writer.write_line("Stack Trace:")
    writer.increase_indent()
    for frame in frames:
        writer.write_line(f"at {frame}")
    writer.decrease_indent()
