"""Local path handling for backed up repositories.

Turns remote names into filesystem-safe tokens and works out what to do with
the directory a repository should live in: clone into it, fetch into it, or
move a foreign occupant out of the way first.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import NamedTuple

from typing_extensions import Literal, Protocol

logger = logging.getLogger(__name__)

CLONE = "clone"
FETCH = "fetch"

Action = Literal["clone", "fetch"]

DUPLICATE_MARKER = "_DUPLICATE_"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class RepositoryProbe(Protocol):
    """Anything that can tell whether a path holds a repository."""

    def is_repository(self, path: Path) -> bool: ...


class Resolution(NamedTuple):
    """Where a repository should be synced and how."""

    path: Path
    action: Action
    renamed_to: Path | None = None


def sanitize(raw: str) -> str:
    """Map a remote name to a filesystem-safe token.

    Every character outside ``[A-Za-z0-9_-]`` becomes ``_``, one per code
    point, so the result has the same length as the input. An empty name
    stays empty.

    Example:
        >>> sanitize("my repo.v2")
        'my_repo_v2'
    """
    return _UNSAFE_CHARS.sub("_", raw)


def generate_duplicate_path(base_path: Path) -> Path:
    """Return the first free ``<base>_DUPLICATE_<n>`` sibling, n >= 1."""
    counter = 1
    while True:
        candidate = base_path.with_name(f"{base_path.name}{DUPLICATE_MARKER}{counter}")
        if not candidate.exists():
            return candidate
        counter += 1


def resolve(entity_dir: Path, repo_name: str, probe: RepositoryProbe) -> Resolution:
    """Decide how to sync ``repo_name`` inside ``entity_dir``.

    Args:
        entity_dir: Directory holding all repositories of one entity
        repo_name: Sanitized repository name
        probe: Used to tell repositories from foreign directories

    Returns:
        Resolution with the final path and the action to take. When a foreign
        occupant had to be moved, ``renamed_to`` holds its new location.
    """
    repo_path = entity_dir / repo_name

    if not repo_path.exists():
        return Resolution(repo_path, CLONE)

    if probe.is_repository(repo_path):
        return Resolution(repo_path, FETCH)

    logger.info(f"{repo_path} exists but is not a git repository. Renaming it.")
    new_path = generate_duplicate_path(repo_path)
    repo_path.rename(new_path)
    logger.info(f"Renamed to {new_path}")

    # The canonical path is free again
    return Resolution(repo_path, CLONE, renamed_to=new_path)
