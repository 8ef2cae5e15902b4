"""Run-history file management.

Reads and writes the JSON run-history record that remembers, per test unit,
the artifact timestamp it was last executed against and how many of its
tests passed, were skipped, and failed.  The record is pure data: deciding
whether a cached result may be reused lives in testrun.selection.
"""

from __future__ import annotations

import datetime
import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# JSON property names of the persisted record
TOOLCHAIN_VERSION_KEY = "toolchainVersion"
CLASS_FILES_KEY = "classFiles"
LAST_MODIFIED_KEY = "lastModified"
PASSED_COUNT_KEY = "passedTestCount"
SKIPPED_COUNT_KEY = "skippedTestCount"
FAILED_COUNT_KEY = "failedTestCount"


class HistoryWriteError(RuntimeError):
    """Raised when the run-history record cannot be written."""


def normalize_unit_id(path: str | Path) -> str:
    """Normalize a unit path into its history key.

    Keys are non-rooted, forward-slash separated relative paths.

    Raises:
        ValueError: If the path is empty or rooted.
    """
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    if not text or text == ".":
        raise ValueError("Unit path must not be empty")
    if text.startswith("/") or (len(text) > 1 and text[1] == ":"):
        raise ValueError(f"Unit path must be relative: {path}")
    return text


@dataclass
class UnitHistoryEntry:
    """Last known outcome of one test unit."""

    relative_path: str
    last_modified: datetime.datetime | None = None
    passed_test_count: int = 0
    skipped_test_count: int = 0
    failed_test_count: int = 0

    def __post_init__(self) -> None:
        for name in ("passed_test_count", "skipped_test_count", "failed_test_count"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    def to_json(self) -> dict[str, Any]:
        """Serialize the entry body (the key is stored by the record)."""
        data: dict[str, Any] = {}
        if self.last_modified is not None:
            data[LAST_MODIFIED_KEY] = self.last_modified.isoformat()
        data[PASSED_COUNT_KEY] = self.passed_test_count
        data[SKIPPED_COUNT_KEY] = self.skipped_test_count
        data[FAILED_COUNT_KEY] = self.failed_test_count
        return data

    @classmethod
    def from_json(cls, relative_path: str, data: Any) -> UnitHistoryEntry:
        """Parse one entry, degrading malformed fields to their defaults."""
        if not isinstance(data, dict):
            return cls(relative_path=relative_path)
        return cls(
            relative_path=relative_path,
            last_modified=_parse_timestamp(data.get(LAST_MODIFIED_KEY)),
            passed_test_count=_parse_count(data.get(PASSED_COUNT_KEY)),
            skipped_test_count=_parse_count(data.get(SKIPPED_COUNT_KEY)),
            failed_test_count=_parse_count(data.get(FAILED_COUNT_KEY)),
        )


@dataclass
class RunHistoryRecord:
    """The persisted run-history record.

    Attributes:
        toolchain_version: Version of the toolchain that produced the
            record, or None when unknown or when there was no prior run.
        entries: Unit id to entry.
    """

    toolchain_version: str | None = None
    entries: dict[str, UnitHistoryEntry] = field(default_factory=dict)

    def set_entry(self, entry: UnitHistoryEntry) -> None:
        """Add an entry, superseding any existing entry for the same unit."""
        key = normalize_unit_id(entry.relative_path)
        if key != entry.relative_path:
            raise ValueError(
                f"Entry path '{entry.relative_path}' is not normalized "
                f"(expected '{key}')"
            )
        self.entries[key] = entry

    def to_json(self) -> dict[str, Any]:
        """Serialize the whole record."""
        data: dict[str, Any] = {}
        if self.toolchain_version is not None:
            data[TOOLCHAIN_VERSION_KEY] = self.toolchain_version
        data[CLASS_FILES_KEY] = {
            key: entry.to_json() for key, entry in self.entries.items()
        }
        return data

    @classmethod
    def from_json(cls, data: Any) -> RunHistoryRecord:
        """Build a record from parsed JSON, tolerating malformed content."""
        record = cls()
        if not isinstance(data, dict):
            return record

        version = data.get(TOOLCHAIN_VERSION_KEY)
        if isinstance(version, str) and version:
            record.toolchain_version = version

        class_files = data.get(CLASS_FILES_KEY)
        if not isinstance(class_files, dict):
            return record

        for raw_key, body in class_files.items():
            try:
                key = normalize_unit_id(raw_key)
            except ValueError:
                continue
            record.entries[key] = UnitHistoryEntry.from_json(key, body)
        return record


def _parse_timestamp(value: Any) -> datetime.datetime | None:
    """Parse an ISO 8601 timestamp, or None when absent or unparsable."""
    if not isinstance(value, str):
        return None
    try:
        return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_count(value: Any) -> int:
    """Parse a test count, defaulting to 0 when absent or malformed."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        return 0
    return value


def load_history(path: str | Path) -> RunHistoryRecord:
    """Load the run-history record from a JSON file.

    A missing file is not an error: it yields an empty record.  A file
    that cannot be parsed is also treated as empty history (with a warning
    on stderr) so the invocation falls back to running every unit.

    Args:
        path: Path to the history file.

    Returns:
        The parsed record.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return RunHistoryRecord()
    except OSError as e:
        print(f"Warning: could not read run history {path}: {e}", file=sys.stderr)
        return RunHistoryRecord()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        print(
            f"Warning: ignoring corrupt run history {path}: {e}",
            file=sys.stderr,
        )
        return RunHistoryRecord()

    return RunHistoryRecord.from_json(data)


def save_history(record: RunHistoryRecord, path: str | Path) -> None:
    """Write the run-history record atomically.

    The record is written to a sibling temporary file which then replaces
    the destination, so readers never observe a partial record.

    Args:
        record: Record to serialize.
        path: Destination path. Parent directories are created.

    Raises:
        HistoryWriteError: If the record cannot be written.
    """
    path = Path(path)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(
            json.dumps(record.to_json(), indent=2) + "\n", encoding="utf-8"
        )
        os.replace(tmp, path)
    except OSError as e:
        raise HistoryWriteError(f"Could not write run history {path}: {e}") from e


def get_entry(record: RunHistoryRecord, unit_id: str) -> UnitHistoryEntry | None:
    """Look up the history entry for a unit.

    Args:
        record: Loaded record.
        unit_id: Unit identifier (normalized relative path).

    Returns:
        The entry, or None if the unit has no history.
    """
    return record.entries.get(unit_id)
