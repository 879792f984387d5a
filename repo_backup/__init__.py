"""GitHub Repo Backup - mirror every repository an account can access.

This package clones and incrementally fetches the repositories of a GitHub
account and its organizations into a local backup directory, without ever
discarding previously backed up history.
"""

__version__ = "1.0.0"

from .config import BackupConfig, create_config, load_config
from .errors import (
    BackupError,
    FatalSetupError,
    InventoryFetchError,
    SoftInventoryError,
    TerminalSyncError,
    TransientSyncError,
)
from .github import GitHubClient
from .sync import BackupResult, RepoBackup

__all__ = [
    "BackupConfig",
    "create_config",
    "load_config",
    "BackupError",
    "FatalSetupError",
    "InventoryFetchError",
    "SoftInventoryError",
    "TerminalSyncError",
    "TransientSyncError",
    "GitHubClient",
    "RepoBackup",
    "BackupResult",
]
