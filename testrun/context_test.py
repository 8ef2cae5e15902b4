"""Unit tests for the invocation context."""

from __future__ import annotations

import io

import pytest

from testrun.config.config import RunnerConfig
from testrun.context import InvocationContext, Stopwatch
from testrun.reporting.writer import OutputWriteError


class _FakeClock:
    def __init__(self, *times: float) -> None:
        self._times = list(times)

    def __call__(self) -> float:
        return self._times.pop(0)


def _context(verbose: bool = False, clock=None) -> tuple[InvocationContext, io.StringIO, io.StringIO]:
    out = io.StringIO()
    err = io.StringIO()
    config = RunnerConfig()
    config.set_config(verbose=verbose)
    if clock is None:
        context = InvocationContext.create(out, config, error=err)
    else:
        context = InvocationContext.create(out, config, clock=clock, error=err)
    return context, out, err


class TestInvocationContext:
    """Tests for diagnostics and output wiring."""

    def test_verbose_silent_by_default(self):
        """Verbose messages are dropped unless enabled."""
        context, _out, err = _context()
        context.verbose("selecting units")
        assert err.getvalue() == ""

    def test_verbose_enabled(self):
        """Enabled verbose messages go to the error stream."""
        context, out, err = _context(verbose=True)
        context.verbose("selecting units")
        assert err.getvalue() == "selecting units\n"
        assert out.getvalue() == ""

    def test_warn_always_printed(self):
        """Warnings are printed regardless of verbosity."""
        context, _out, err = _context()
        context.warn("history is stale")
        assert err.getvalue() == "Warning: history is stale\n"

    def test_output_uses_configured_indent(self):
        """The output writer indents with the configured text."""
        out = io.StringIO()
        config = RunnerConfig()
        config.set_config(indent=4)
        context = InvocationContext.create(out, config)
        context.output.increase_indent()
        context.output.write_line("x")
        assert out.getvalue() == "    x\n"


class TestLogFile:
    """Tests for the optional log file."""

    def test_output_copied_to_log(self):
        """Everything written to the output also lands in the log."""
        out = io.StringIO()
        log = io.StringIO()
        context = InvocationContext.create(out, RunnerConfig(), error=io.StringIO(), log=log)
        context.output.write_line("Group1")
        assert out.getvalue() == "Group1\n"
        assert log.getvalue() == "Group1\n"

    def test_verbose_logged_when_disabled(self):
        """Verbose messages reach the log even when not printed."""
        err = io.StringIO()
        log = io.StringIO()
        context = InvocationContext.create(io.StringIO(), RunnerConfig(), error=err, log=log)
        context.verbose("a_test.py: run (not present in previous run)")
        assert err.getvalue() == ""
        assert log.getvalue() == "a_test.py: run (not present in previous run)\n"

    def test_warning_logged(self):
        """Warnings are printed and logged."""
        err = io.StringIO()
        log = io.StringIO()
        context = InvocationContext.create(io.StringIO(), RunnerConfig(), error=err, log=log)
        context.warn("history is stale")
        assert err.getvalue() == "Warning: history is stale\n"
        assert log.getvalue() == "Warning: history is stale\n"

    def test_closed_log_raises_output_error(self):
        """A log that can no longer be written is fatal."""
        log = io.StringIO()
        context = InvocationContext.create(io.StringIO(), RunnerConfig(), error=io.StringIO(), log=log)
        log.close()
        with pytest.raises(OutputWriteError, match="log file"):
            context.verbose("x")


class TestStopwatch:
    """Tests for elapsed time measurement."""

    def test_elapsed_uses_clock(self):
        """Elapsed time is measured with the injected clock."""
        watch = Stopwatch(_FakeClock(10.0, 12.5))
        assert watch.elapsed() == 2.5

    def test_context_stopwatch(self):
        """The context hands out stopwatches on its own clock."""
        context, _out, _err = _context(clock=_FakeClock(1.0, 4.0))
        assert context.stopwatch().elapsed() == 3.0
