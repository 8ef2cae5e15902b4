"""Indentation-aware text output for the console reporter."""

from __future__ import annotations

from typing import TextIO


class OutputWriteError(RuntimeError):
    """Raised when the output sink cannot be written; the run cannot continue."""


class TeeStream:
    """Text stream that copies everything written to several streams."""

    def __init__(self, *streams: TextIO) -> None:
        self.streams = streams

    def write(self, text: str) -> int:
        for stream in self.streams:
            stream.write(text)
        return len(text)

    def flush(self) -> None:
        for stream in self.streams:
            stream.flush()


class IndentedWriter:
    """Writes text to a stream, prefixing each new line with the current indent.

    The indent is written lazily, when the first text of a line arrives, so
    a line can be built up across several ``write`` calls (a test name now,
    its outcome suffix later) and empty lines stay empty.
    """

    def __init__(self, stream: TextIO | TeeStream, indent: str = "  ") -> None:
        self.stream = stream
        self.indent = indent
        self.level = 0
        self._at_line_start = True

    def increase_indent(self) -> None:
        self.level += 1

    def decrease_indent(self) -> None:
        """Close one indentation level.

        Raises:
            ValueError: If the indent is already at level 0.
        """
        if self.level == 0:
            raise ValueError("Cannot decrease indent below level 0")
        self.level -= 1

    def write(self, text: str) -> None:
        """Write text without ending the line."""
        if not text:
            return
        if self._at_line_start:
            self._emit(self.indent * self.level)
            self._at_line_start = False
        self._emit(text)

    def write_line(self, text: str = "") -> None:
        """Write text and end the line."""
        self.write(text)
        self._emit("\n")
        self._at_line_start = True

    def flush(self) -> None:
        try:
            self.stream.flush()
        except (OSError, UnicodeError, ValueError) as e:
            raise OutputWriteError(f"Could not flush output: {e}") from e

    def _emit(self, text: str) -> None:
        try:
            self.stream.write(text)
        except (OSError, UnicodeError, ValueError) as e:
            raise OutputWriteError(f"Could not write output: {e}") from e
