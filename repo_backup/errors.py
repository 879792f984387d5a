"""Exception hierarchy for github-repo-backup.

Fatal errors abort the whole run with a non-zero exit code. Everything else is
recorded in the error log and the run carries on with the next entity or
repository.
"""

from __future__ import annotations


class BackupError(Exception):
    """Base class for all backup errors."""


class FatalSetupError(BackupError):
    """A required tool, credential or identity is unavailable."""


class InventoryFetchError(FatalSetupError):
    """The authenticated account could not be resolved."""


class SoftInventoryError(BackupError):
    """One entity's listing is unavailable; the entity is skipped."""

    def __init__(self, entity: str, reason: str):
        super().__init__(f"Failed to fetch repositories for {entity}: {reason}")
        self.entity = entity
        self.reason = reason


class TransientSyncError(BackupError):
    """A single clone or fetch attempt failed."""


class TerminalSyncError(BackupError):
    """A repository could not be synced within the retry bound."""

    def __init__(self, message: str, attempts: int, last_error: Exception | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
