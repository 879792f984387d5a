"""Command-line interface for github-repo-backup.

This module provides the CLI options, log setup and exit codes for a backup run.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import BackupConfig, create_config, load_config
from .errors import FatalSetupError
from .sync import RepoBackup

ERROR_LOGGER = "repo_backup.errors"


def setup_logging(
    verbose: bool = False,
    log_file: Optional[Path] = None,
    error_log_file: Optional[Path] = None,
    silent: bool = False,
) -> None:
    """Setup logging configuration.

    The progress log receives every event of the run; the error log only
    receives failures that need attention later. Both are truncated so they
    describe the latest run.

    Args:
        verbose: Enable debug logging if True
        log_file: Optional progress log file
        error_log_file: Optional error log file
        silent: Suppress console output; files are still written
    """
    level = logging.DEBUG if verbose else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers: list[logging.Handler] = []
    if not silent:
        handlers.append(logging.StreamHandler())
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=level, format=format_str, handlers=handlers, force=True)

    error_logger = logging.getLogger(ERROR_LOGGER)
    for handler in list(error_logger.handlers):
        error_logger.removeHandler(handler)
        handler.close()
    if error_log_file is not None:
        error_log_file.parent.mkdir(parents=True, exist_ok=True)
        error_handler = logging.FileHandler(error_log_file, mode="w", encoding="utf-8")
        error_handler.setFormatter(logging.Formatter("%(asctime)s - %(message)s"))
        error_logger.addHandler(error_handler)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Back up every GitHub repository your account can access",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Back up into the default github_backup folder
  github-repo-backup

  # Back up into a custom folder, quietly, marking vanished repositories
  github-repo-backup /srv/backups/github -s -c

  # Use a dedicated deploy key and a YAML configuration file
  github-repo-backup --config backup.yaml --ssh-key ~/.ssh/backup_ed25519
        """.strip(),
    )

    parser.add_argument(
        "backup_dir",
        nargs="?",
        type=Path,
        default=None,
        help="Directory to back up into (default: github_backup next to this tool)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional YAML configuration file",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Progress log file (default: <backup_dir>/backup_log.txt)",
    )

    parser.add_argument(
        "--orphan-log",
        type=Path,
        default=None,
        help="Orphan log file (default: <backup_dir>/orphaned_repos.txt)",
    )

    parser.add_argument(
        "--ssh-key",
        type=str,
        default=None,
        help="Private SSH key to use (default: the running ssh agent)",
    )

    parser.add_argument(
        "-s",
        "--silent",
        action="store_const",
        const=True,
        default=None,
        help="Suppress console output; log files are still written",
    )

    parser.add_argument(
        "-c",
        "--orphan-cleanup",
        action="store_const",
        const=True,
        default=None,
        help="Rename local repositories that no longer exist remotely to ORPHAN_<name>",
    )

    parser.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Attempts per repository (default: 3)",
    )

    parser.add_argument(
        "--retry-delay",
        type=float,
        default=None,
        help="Seconds to wait between attempts (default: 5)",
    )

    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="GitHub API request timeout in seconds (default: 30)",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )

    parser.add_argument(
        "--test-connection",
        action="store_true",
        help="Test GitHub connectivity and exit",
    )

    return parser


def build_config(args: argparse.Namespace) -> BackupConfig:
    """Merge the configuration file, if any, with command line options.

    Command line options take precedence over the file.
    """
    options = load_config(args.config) if args.config is not None else {}
    overrides = {
        "backup_dir": args.backup_dir,
        "log_file": args.log_file,
        "orphan_log": args.orphan_log,
        "ssh_key": args.ssh_key,
        "silent": args.silent,
        "orphan_cleanup": args.orphan_cleanup,
        "max_retries": args.max_retries,
        "retry_delay": args.retry_delay,
        "timeout": args.timeout,
    }
    options.update({key: value for key, value in overrides.items() if value is not None})
    return create_config(**options)


def main() -> None:
    """Main entry point for the CLI application."""
    parser = create_parser()
    args = parser.parse_args()

    if args.config is not None and not args.config.exists():
        setup_logging(args.verbose)
        logging.getLogger(__name__).error(f"Configuration file not found: {args.config}")
        sys.exit(1)

    try:
        config = build_config(args)
    except Exception as e:
        setup_logging(args.verbose)
        logging.getLogger(__name__).error(f"Failed to load configuration: {e}")
        sys.exit(1)

    if args.test_connection:
        setup_logging(args.verbose)
        with RepoBackup(config) as backup:
            sys.exit(0 if backup.test_connectivity() else 1)

    setup_logging(
        args.verbose,
        log_file=config["log_file"],
        error_log_file=config["error_log_file"],
        silent=config["silent"],
    )
    logger = logging.getLogger(__name__)

    try:
        with RepoBackup(config) as backup:
            result = backup.run()

        if result.is_success:
            logger.info(f"✓ {result}")
        else:
            logger.warning(f"✗ {result}")
            logger.warning(f"See {config['error_log_file']} for details")

        # Per-repository failures are in the error log; only fatal errors fail the run
        sys.exit(0)

    except FatalSetupError as e:
        logging.getLogger(ERROR_LOGGER).error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Backup interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            logger.exception("Full traceback:")
        sys.exit(1)


if __name__ == "__main__":
    main()
