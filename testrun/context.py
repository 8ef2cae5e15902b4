"""Explicit per-invocation context: output sink, clock and configuration.

Everything the reporter and the driver need from the environment is passed
in through an InvocationContext instead of being read from globals, so tests
can substitute an in-memory stream and a fake clock.
"""

from __future__ import annotations

import sys
import time
from typing import Callable, TextIO

from testrun.config.config import RunnerConfig
from testrun.reporting.writer import IndentedWriter, OutputWriteError, TeeStream


class InvocationContext:
    """Resources shared by every component of one invocation.

    Args:
        output: Indented writer for the progress report and summary.
        config: Runner configuration.
        clock: Monotonic clock returning seconds.
        error: Stream for warnings and verbose messages (stderr by default).
        log: Optional log file; it receives every verbose message and
            warning, whether or not verbose output is enabled.
    """

    def __init__(
        self,
        output: IndentedWriter,
        config: RunnerConfig,
        clock: Callable[[], float] = time.monotonic,
        error: TextIO | None = None,
        log: TextIO | None = None,
    ) -> None:
        self.output = output
        self.config = config
        self.clock = clock
        self._error = error
        self.log = log

    @classmethod
    def create(
        cls,
        stream: TextIO,
        config: RunnerConfig,
        clock: Callable[[], float] = time.monotonic,
        error: TextIO | None = None,
        log: TextIO | None = None,
    ) -> InvocationContext:
        """Build a context writing to ``stream`` with the configured indent.

        When a log file is given, the output is copied into it as well.
        """
        sink = TeeStream(stream, log) if log is not None else stream
        return cls(IndentedWriter(sink, config.indent), config, clock, error, log)

    @property
    def error(self) -> TextIO:
        return self._error if self._error is not None else sys.stderr

    def verbose(self, message: str) -> None:
        """Print a diagnostic message when verbose output is enabled.

        The message is always copied to the log file, if there is one.
        """
        if self.config.verbose:
            print(message, file=self.error)
        self._write_log(message)

    def warn(self, message: str) -> None:
        print(f"Warning: {message}", file=self.error)
        self._write_log(f"Warning: {message}")

    def _write_log(self, line: str) -> None:
        if self.log is None:
            return
        try:
            self.log.write(line + "\n")
        except (OSError, UnicodeError, ValueError) as e:
            raise OutputWriteError(f"Could not write log file: {e}") from e

    def stopwatch(self) -> Stopwatch:
        return Stopwatch(self.clock)


class Stopwatch:
    """Measures elapsed seconds with the context clock."""

    def __init__(self, clock: Callable[[], float]) -> None:
        self._clock = clock
        self._start = clock()

    def elapsed(self) -> float:
        return self._clock() - self._start
