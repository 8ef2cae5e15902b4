"""Runner configuration file management."""

from testrun.config.config import DEFAULT_CONFIG, RunnerConfig

__all__ = [
    "DEFAULT_CONFIG",
    "RunnerConfig",
]
