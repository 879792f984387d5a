"""Main entry point for github-repo-backup.

Translates ``BACKUP_*`` environment variables into command line options so the
tool can run unattended from cron or a container, then hands over to the CLI.
"""

import os
import sys
from typing import Mapping, Optional

from repo_backup.cli import main

VALUE_OPTIONS = {
    "BACKUP_CONFIG": "--config",
    "BACKUP_LOG_FILE": "--log-file",
    "BACKUP_ORPHAN_LOG": "--orphan-log",
    "BACKUP_SSH_KEY": "--ssh-key",
}

FLAG_OPTIONS = {
    "BACKUP_SILENT": "--silent",
    "BACKUP_ORPHAN_CLEANUP": "--orphan-cleanup",
    "BACKUP_VERBOSE": "--verbose",
}


def env_to_argv(environ: Optional[Mapping[str, str]] = None) -> list[str]:
    """Build extra command line arguments from environment variables."""
    environ = os.environ if environ is None else environ
    argv: list[str] = []

    for name, option in VALUE_OPTIONS.items():
        if environ.get(name):
            argv.extend([option, environ[name]])

    for name, option in FLAG_OPTIONS.items():
        if environ.get(name, "false").lower() in ("1", "true", "yes"):
            argv.append(option)

    if environ.get("BACKUP_DIR"):
        argv.append(environ["BACKUP_DIR"])

    return argv


def main_with_env_parsing() -> None:
    """Main entry point that also honors BACKUP_* environment variables."""
    sys.argv.extend(env_to_argv())
    main()


if __name__ == "__main__":
    main_with_env_parsing()
