"""Entry point for the incremental test runner.

Parses command-line arguments, decides which test units can reuse the
result of a previous run, runs the rest with the hierarchical console
reporter attached, persists the run history and prints the summary.
"""

from __future__ import annotations

import argparse
import io
import platform
import sys
from pathlib import Path
from typing import TextIO

from testrun.config.config import DEFAULT_CONFIG_FILENAME, RunnerConfig
from testrun.context import InvocationContext
from testrun.execution.engine import TestEngine, Unit, UnitLoadError
from testrun.history.store import (
    HistoryWriteError,
    RunHistoryRecord,
    load_history,
    save_history,
)
from testrun.reporting.aggregator import ResultAggregator
from testrun.reporting.console_reporter import ConsoleReporter
from testrun.reporting.events import EventDispatcher
from testrun.reporting.progress import VerboseProgress
from testrun.reporting.writer import OutputWriteError
from testrun.selection.policy import COVERAGE_MODES, COVERAGE_NONE, SelectionInput, select_units


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Incremental test runner - skips units unchanged since a passing run"
    )
    parser.add_argument(
        "units",
        nargs="+",
        type=Path,
        help="Test unit files, relative to --root",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path("."),
        help="Project root that unit paths and the history file are relative to "
             "(default: current directory)",
    )
    parser.add_argument(
        "--pattern",
        type=str,
        default=None,
        help="Only run tests whose full or bare name matches this glob; "
             "disables result reuse and history saving",
    )
    parser.add_argument(
        "--coverage",
        choices=list(COVERAGE_MODES),
        default=COVERAGE_NONE,
        help="Coverage collection mode; anything but 'none' forces every unit to run",
    )
    parser.add_argument(
        "--no-history",
        action="store_true",
        default=False,
        help="Neither reuse nor save the run history",
    )
    parser.add_argument(
        "--history-file",
        type=Path,
        default=None,
        help="Path to the run history JSON file (default: .tests/test_history.json)",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=None,
        help=f"Path to the runner config JSON file (default: <root>/{DEFAULT_CONFIG_FILENAME})",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Print selection decisions and history updates to stderr",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Path to write a YAML run report",
    )
    parser.add_argument(
        "--logfile",
        type=Path,
        default=None,
        help="Also write the report and every diagnostic message to this file",
    )
    return parser.parse_args(argv)


def current_toolchain_version() -> str:
    """Identify the interpreter whose results the run history describes."""
    return f"{platform.python_implementation()} {platform.python_version()}"


def _utf8_stream(stream: TextIO) -> TextIO:
    """Switch a console text stream to UTF-8 so any test name can be printed."""
    if isinstance(stream, io.TextIOWrapper):
        stream.reconfigure(encoding="utf-8")
    return stream


def resolve_units(root: Path, paths: list[Path]) -> list[Unit]:
    """Build units from command-line paths, dropping duplicates.

    Raises:
        ValueError: If a path lies outside the root or is not a valid unit path.
    """
    units: list[Unit] = []
    seen: set[str] = set()
    for path in paths:
        unit = Unit.from_path(root, path)
        if unit.unit_id in seen:
            continue
        seen.add(unit.unit_id)
        units.append(unit)
    return units


def run_invocation(
    context: InvocationContext,
    units: list[Unit],
    selection_input: SelectionInput,
    history_path: Path | None,
    pattern: str | None = None,
    report_path: Path | None = None,
) -> int:
    """Select, run and report one invocation.

    Args:
        context: Output, clock and configuration for this invocation.
        units: Candidate units, in the order they should run.
        selection_input: Inputs to the run-or-skip policy.
        history_path: Where the run history is saved; None to never save.
        pattern: Optional test name glob passed to the engine.
        report_path: Optional YAML run report destination.

    Returns:
        Exit code: 1 if any test failed, else 0.  Units that could not run
        are listed in the summary without changing the exit code.

    Raises:
        HistoryWriteError: If the run history cannot be persisted.
        OutputWriteError: If the report output cannot be written.
    """
    stopwatch = context.stopwatch()
    aggregator = ResultAggregator()
    record = RunHistoryRecord(toolchain_version=selection_input.toolchain_version)
    save = (
        history_path is not None
        and selection_input.use_history
        and pattern is None
    )

    selection = select_units(
        selection_input, [(u.unit_id, u.last_modified) for u in units]
    )
    for decision in selection.decisions:
        action = "run" if decision.run else "skip"
        context.verbose(f"{decision.unit_id}: {action} ({decision.reason})")
        if decision.entry is not None and not decision.run:
            record.set_entry(decision.entry)
            aggregator.add_unmodified(decision.entry)

    dispatcher = EventDispatcher()
    VerboseProgress(context, records_history=save).register(dispatcher)
    reporter = ConsoleReporter(context, aggregator, record if save else None)
    reporter.register(dispatcher)
    engine = TestEngine(dispatcher, pattern=pattern)

    units_by_id = {u.unit_id: u for u in units}
    for unit_id in selection.to_run:
        try:
            engine.run_unit(units_by_id[unit_id])
        except UnitLoadError as e:
            context.verbose(f"{unit_id}: {e}")
            aggregator.add_unit_error(unit_id, str(e))
            # A unit that did not finish must run again next time
            record.entries.pop(unit_id, None)

    if pattern is not None and aggregator.finished == 0:
        context.warn(f"no tests matched pattern '{pattern}'")

    if save and history_path is not None:
        context.verbose(f"Saving run history to {history_path}...")
        save_history(record, history_path)

    duration = stopwatch.elapsed()
    writer = context.output
    writer.write_line()
    aggregator.write_summary(writer, duration)
    writer.flush()

    if report_path is not None:
        aggregator.write_report(report_path, duration)
        print(f"Run report written to: {report_path}")

    return aggregator.exit_code()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    root: Path = args.root

    config = RunnerConfig(args.config_file or root / DEFAULT_CONFIG_FILENAME)
    config.set_config(
        history_file=args.history_file,
        use_history=False if args.no_history else None,
        verbose=True if args.verbose else None,
    )

    history_path = config.history_file
    if not history_path.is_absolute():
        history_path = root / history_path

    try:
        units = resolve_units(root, args.units)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    history = load_history(history_path) if config.use_history else RunHistoryRecord()
    selection_input = SelectionInput(
        toolchain_version=current_toolchain_version(),
        history=history,
        use_history=config.use_history,
        pattern=args.pattern,
        coverage=args.coverage,
    )

    log = None
    if args.logfile is not None:
        try:
            args.logfile.parent.mkdir(parents=True, exist_ok=True)
            log = open(args.logfile, "w", encoding="utf-8")
        except OSError as e:
            print(f"Error: could not open log file {args.logfile}: {e}", file=sys.stderr)
            return 1

    try:
        context = InvocationContext.create(_utf8_stream(sys.stdout), config, log=log)
        return run_invocation(
            context,
            units,
            selection_input,
            history_path,
            pattern=args.pattern,
            report_path=args.report,
        )
    except HistoryWriteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OutputWriteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if log is not None:
            log.close()


if __name__ == "__main__":
    sys.exit(main())
