"""Runner configuration file management.

Reads the .testrun_config JSON file that stores console
indentation, the run-history location, and whether cached results may be
reused, separate from the run-history record itself.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "indent": "  ",
    "history_file": ".tests/test_history.json",
    "use_history": True,
    "verbose": False,
}

# Config file looked up under the project root when --config-file is absent
DEFAULT_CONFIG_FILENAME = ".testrun_config"


def _read_config_file(path: Path | None) -> dict[str, Any]:
    """Read the JSON object stored at ``path``.

    A missing file gives an empty dict.  An unreadable or corrupt file is
    reported on stderr and also gives an empty dict, so the run proceeds with
    defaults.
    """
    if path is None:
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, OSError, UnicodeError) as e:
        print(f"Warning: ignoring unreadable config file {path}: {e}", file=sys.stderr)
        return {}
    if not isinstance(data, dict):
        print(f"Warning: ignoring config file {path}: not a JSON object", file=sys.stderr)
        return {}
    return data


class RunnerConfig:
    """Runner settings from the .testrun_config file merged over the defaults."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._data: dict[str, Any] = {**DEFAULT_CONFIG, **_read_config_file(path)}

    @property
    def indent(self) -> str:
        """Get the text written once per nesting level."""
        value = self._data.get("indent", DEFAULT_CONFIG["indent"])
        if isinstance(value, int) and not isinstance(value, bool):
            return " " * max(0, value)
        return str(value)

    @property
    def history_file(self) -> Path:
        """Get the run-history file location (relative to the project root)."""
        return Path(
            self._data.get("history_file", DEFAULT_CONFIG["history_file"])
        )

    @property
    def use_history(self) -> bool:
        """Whether cached results from the previous run may be reused."""
        return bool(self._data.get("use_history", DEFAULT_CONFIG["use_history"]))

    @property
    def verbose(self) -> bool:
        """Whether selection decisions and progress details are printed."""
        return bool(self._data.get("verbose", DEFAULT_CONFIG["verbose"]))

    def set_config(
        self,
        indent: str | None = None,
        history_file: Path | str | None = None,
        use_history: bool | None = None,
        verbose: bool | None = None,
    ) -> None:
        """Update configuration values.

        Values left as None are preserved, so command-line overrides can be
        applied unconditionally.
        """
        if indent is not None:
            self._data["indent"] = indent
        if history_file is not None:
            self._data["history_file"] = str(history_file)
        if use_history is not None:
            self._data["use_history"] = use_history
        if verbose is not None:
            self._data["verbose"] = verbose
