from __future__ import annotations


class BackupError(RuntimeError):
    """A backup run could not complete."""


class SourceLayoutError(BackupError):
    pass


class BackupLockedError(BackupError):
    pass


class ConfigError(BackupError):
    pass


class InvariantViolation(AssertionError):
    """Internal consistency check failed; indicates a bug, not a user error."""
