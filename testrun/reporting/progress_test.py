"""Unit tests for the verbose progress subscriber."""

from __future__ import annotations

import io

from testrun.config.config import RunnerConfig
from testrun.context import InvocationContext
from testrun.reporting.events import AfterGroup, BeforeGroup, EventDispatcher, Scope
from testrun.reporting.progress import VerboseProgress


def _context(verbose: bool = True) -> tuple[InvocationContext, io.StringIO]:
    config = RunnerConfig()
    config.set_config(verbose=verbose)
    err = io.StringIO()
    return InvocationContext.create(io.StringIO(), config, error=err), err


def _run(progress: VerboseProgress, *scopes: Scope) -> None:
    dispatcher = EventDispatcher()
    progress.register(dispatcher)
    for scope in scopes:
        dispatcher.dispatch(BeforeGroup(scope))
        dispatcher.dispatch(AfterGroup(scope))


class TestVerboseProgress:
    """Tests for VerboseProgress."""

    def test_announces_units_and_history_updates(self):
        """Each unit is announced when it starts and when its entry is updated."""
        context, err = _context()
        _run(VerboseProgress(context, records_history=True), Scope("a_test.py", unit_id="a_test.py"))
        assert err.getvalue() == (
            "Running tests in a_test.py...\n"
            "Updating run history entry for a_test.py...\n"
        )

    def test_no_update_message_without_history(self):
        """Nothing about history is printed when history is not saved."""
        context, err = _context()
        _run(VerboseProgress(context), Scope("a_test.py", unit_id="a_test.py"))
        assert err.getvalue() == "Running tests in a_test.py...\n"

    def test_inner_groups_are_silent(self):
        """Only unit scopes produce messages."""
        context, err = _context()
        _run(VerboseProgress(context, records_history=True), Scope("Group"))
        assert err.getvalue() == ""

    def test_quiet_when_verbose_disabled(self):
        """Without verbose output nothing reaches the error stream."""
        context, err = _context(verbose=False)
        _run(VerboseProgress(context, records_history=True), Scope("a_test.py", unit_id="a_test.py"))
        assert err.getvalue() == ""

    def test_messages_copied_to_log(self):
        """Progress reaches the log file even when verbose output is off."""
        log = io.StringIO()
        context = InvocationContext.create(
            io.StringIO(), RunnerConfig(), error=io.StringIO(), log=log)
        _run(VerboseProgress(context, records_history=True), Scope("a_test.py", unit_id="a_test.py"))
        assert "Updating run history entry for a_test.py...\n" in log.getvalue()
