"""Incremental test runner: history-based unit selection and hierarchical console reporting."""
