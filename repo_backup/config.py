"""Configuration for github-repo-backup.

A single ``BackupConfig`` is built at startup from built-in defaults, an
optional YAML file and command line overrides, then passed to every component.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from typing_extensions import TypedDict

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_DIR = Path(__file__).resolve().parent.parent / "github_backup"


class BackupConfig(TypedDict):
    """Settings for one backup run.

    Log and inventory paths default to files inside ``backup_dir``.
    """

    backup_dir: Path
    log_file: Path
    error_log_file: Path
    repos_file: Path
    orphan_log: Path
    silent: bool
    orphan_cleanup: bool
    ssh_key: Optional[str]
    max_retries: int
    retry_delay: float
    repo_limit: int
    timeout: int


PATH_OPTIONS = ("backup_dir", "log_file", "error_log_file", "repos_file", "orphan_log")
BOOL_OPTIONS = ("silent", "orphan_cleanup")
INT_OPTIONS = ("max_retries", "repo_limit", "timeout")
NUMBER_OPTIONS = ("retry_delay",)
STR_OPTIONS = ("ssh_key",)

KNOWN_OPTIONS = PATH_OPTIONS + BOOL_OPTIONS + INT_OPTIONS + NUMBER_OPTIONS + STR_OPTIONS


def create_config(**overrides: Any) -> BackupConfig:
    """Build a complete configuration from defaults and overrides.

    Overrides set to None are ignored, so unset command line options do not
    mask values from a configuration file.

    Raises:
        ValueError: If an override is unknown or has the wrong type
    """
    options = {key: value for key, value in overrides.items() if value is not None}
    _validate_options(options, source="overrides")

    backup_dir = Path(options.get("backup_dir", DEFAULT_BACKUP_DIR)).expanduser()

    config: BackupConfig = {
        "backup_dir": backup_dir,
        "log_file": backup_dir / "backup_log.txt",
        "error_log_file": backup_dir / "error_log.txt",
        "repos_file": backup_dir / "repos.txt",
        "orphan_log": backup_dir / "orphaned_repos.txt",
        "silent": False,
        "orphan_cleanup": False,
        "ssh_key": None,
        "max_retries": 3,
        "retry_delay": 5,
        "repo_limit": 5000,
        "timeout": 30,
    }

    for key, value in options.items():
        if key in PATH_OPTIONS:
            value = Path(value).expanduser()
        config[key] = value  # type: ignore[literal-required]

    if config["max_retries"] < 1:
        raise ValueError("'max_retries' must be at least 1")
    if config["retry_delay"] < 0:
        raise ValueError("'retry_delay' must not be negative")
    if config["repo_limit"] < 1:
        raise ValueError("'repo_limit' must be at least 1")

    return config


def load_config(config_path: Path) -> dict[str, Any]:
    """Load configuration options from a YAML file.

    Relative paths in the file are resolved against the file's directory.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated options, ready to pass to ``create_config``

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If the YAML is malformed
        ValueError: If the config structure is invalid

    Example:
        >>> options = load_config(Path("backup.yaml"))
        >>> config = create_config(**options)
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML configuration: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Configuration must be a dictionary")

    # Keys left empty in the file fall back to defaults
    options = {key: value for key, value in data.items() if value is not None}
    _validate_options(options, source=str(config_path))

    for key in PATH_OPTIONS:
        if key in options:
            path = Path(options[key]).expanduser()
            if not path.is_absolute():
                path = config_path.parent / path
            options[key] = path

    logger.info(f"Loaded {len(options)} options from {config_path}")
    return options


def _validate_options(options: dict[str, Any], source: str) -> None:
    for key, value in options.items():
        if key not in KNOWN_OPTIONS:
            raise ValueError(f"{source}: unknown option '{key}'")

        if key in PATH_OPTIONS and not isinstance(value, (str, Path)):
            raise ValueError(f"{source}: '{key}' must be a path")
        if key in BOOL_OPTIONS and not isinstance(value, bool):
            raise ValueError(f"{source}: '{key}' must be a boolean")
        if key in INT_OPTIONS and (isinstance(value, bool) or not isinstance(value, int)):
            raise ValueError(f"{source}: '{key}' must be an integer")
        if key in NUMBER_OPTIONS and (
            isinstance(value, bool) or not isinstance(value, (int, float))
        ):
            raise ValueError(f"{source}: '{key}' must be a number")
        if key in STR_OPTIONS and not isinstance(value, str):
            raise ValueError(f"{source}: '{key}' must be a string")
