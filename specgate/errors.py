"""Exception types shared across the enforcement core."""
from __future__ import annotations


class SpecGateError(RuntimeError):
    """Base class for every error raised by specgate."""


class StateWriteError(SpecGateError):
    """The state document could not be persisted. Never swallowed."""


class GitError(SpecGateError):
    """A git invocation failed, timed out, or git is not installed."""


class BaselineError(SpecGateError):
    """A baseline document (proposal.md / tasks.md) could not be read."""


class ConfigError(SpecGateError):
    """The gate configuration file is present but invalid."""


__all__ = [
    "SpecGateError",
    "StateWriteError",
    "GitError",
    "BaselineError",
    "ConfigError",
]
