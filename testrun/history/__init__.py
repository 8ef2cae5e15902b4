"""Persisted run history: per-unit artifact timestamps and test counts."""

from testrun.history.store import (
    HistoryWriteError,
    RunHistoryRecord,
    UnitHistoryEntry,
    get_entry,
    load_history,
    normalize_unit_id,
    save_history,
)

__all__ = [
    "HistoryWriteError",
    "RunHistoryRecord",
    "UnitHistoryEntry",
    "get_entry",
    "load_history",
    "normalize_unit_id",
    "save_history",
]
