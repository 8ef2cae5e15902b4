"""Unit tests for the indented writer."""

from __future__ import annotations

import io

import pytest

from testrun.reporting.writer import IndentedWriter, OutputWriteError, TeeStream


class _BrokenStream(io.StringIO):
    def write(self, text):
        raise OSError("disk full")

    def flush(self):
        raise OSError("disk full")


class TestIndentedWriter:
    """Tests for lazy indentation and level bookkeeping."""

    def test_indent_applied_at_line_start(self):
        """Each new line is prefixed with the indent once per level."""
        out = io.StringIO()
        writer = IndentedWriter(out)
        writer.write_line("a")
        writer.increase_indent()
        writer.write_line("b")
        writer.increase_indent()
        writer.write_line("c")
        assert out.getvalue() == "a\n  b\n    c\n"

    def test_line_built_across_writes(self):
        """Text written after the indent changes stays on the same line."""
        out = io.StringIO()
        writer = IndentedWriter(out)
        writer.increase_indent()
        writer.write("testX")
        writer.increase_indent()
        writer.write_line(" - Passed")
        assert out.getvalue() == "  testX - Passed\n"

    def test_empty_line_has_no_indent(self):
        """A blank line is not padded with indentation."""
        out = io.StringIO()
        writer = IndentedWriter(out)
        writer.increase_indent()
        writer.write_line()
        assert out.getvalue() == "\n"

    def test_custom_indent(self):
        """The indent unit is configurable."""
        out = io.StringIO()
        writer = IndentedWriter(out, indent="\t")
        writer.increase_indent()
        writer.write_line("x")
        assert out.getvalue() == "\tx\n"

    def test_decrease_below_zero_raises(self):
        """Closing more levels than were opened is a usage error."""
        writer = IndentedWriter(io.StringIO())
        with pytest.raises(ValueError, match="below level 0"):
            writer.decrease_indent()

    def test_level_tracks_changes(self):
        """The current level is observable."""
        writer = IndentedWriter(io.StringIO())
        writer.increase_indent()
        writer.increase_indent()
        writer.decrease_indent()
        assert writer.level == 1


class TestOutputFailure:
    """Tests for sink failures."""

    def test_write_failure_raises_output_error(self):
        """An OSError from the stream becomes OutputWriteError."""
        writer = IndentedWriter(_BrokenStream())
        with pytest.raises(OutputWriteError, match="disk full"):
            writer.write_line("x")

    def test_flush_failure_raises_output_error(self):
        """Flushing a broken stream is fatal as well."""
        writer = IndentedWriter(_BrokenStream())
        with pytest.raises(OutputWriteError):
            writer.flush()

    def test_unencodable_text_raises_output_error(self):
        """Text the stream's encoding cannot represent is fatal."""
        stream = io.TextIOWrapper(io.BytesIO(), encoding="ascii")
        writer = IndentedWriter(stream)
        with pytest.raises(OutputWriteError, match="Could not write output"):
            writer.write_line("café")

    def test_closed_stream_raises_output_error(self):
        """Writing to a closed stream is fatal."""
        stream = io.StringIO()
        stream.close()
        writer = IndentedWriter(stream)
        with pytest.raises(OutputWriteError):
            writer.write("x")


class TestTeeStream:
    """Tests for copying output to several streams."""

    def test_writes_reach_every_stream(self):
        """Indented output is copied to each stream unchanged."""
        first = io.StringIO()
        second = io.StringIO()
        writer = IndentedWriter(TeeStream(first, second))
        writer.increase_indent()
        writer.write_line("testX - Passed")
        writer.flush()
        assert first.getvalue() == "  testX - Passed\n"
        assert second.getvalue() == "  testX - Passed\n"

    def test_failing_copy_raises_output_error(self):
        """A broken second stream is as fatal as a broken first one."""
        writer = IndentedWriter(TeeStream(io.StringIO(), _BrokenStream()))
        with pytest.raises(OutputWriteError, match="disk full"):
            writer.write_line("x")
