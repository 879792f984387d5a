"""Clone/fetch execution with bounded retries."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import Callable, NamedTuple, Optional, TypeVar

from .errors import TerminalSyncError, TransientSyncError
from .git import GitTransport
from .paths import CLONE, FETCH, Action

logger = logging.getLogger(__name__)
error_logger = logging.getLogger("repo_backup.errors")

MAX_RETRIES = 3
RETRY_DELAY = 5

T = TypeVar("T")


def retry_call(
    operation: Callable[[int], T],
    attempts: int = MAX_RETRIES,
    delay: float = RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """Call ``operation`` until it succeeds or ``attempts`` calls have failed.

    ``operation`` receives the 1-based attempt number. Only
    ``TransientSyncError`` is retried; ``delay`` seconds are slept between
    consecutive failures but never after the last one.

    Raises:
        TerminalSyncError: When every attempt failed
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_error: Optional[TransientSyncError] = None
    for attempt in range(1, attempts + 1):
        try:
            return operation(attempt)
        except TransientSyncError as e:
            last_error = e
            logger.warning(f"Error during {description} (attempt {attempt}/{attempts}): {e}")
            if attempt < attempts:
                logger.info(f"Retrying {description} in {delay}s ({attempt}/{attempts})...")
                sleep(delay)

    raise TerminalSyncError(
        f"Failed to {description} after {attempts} attempts.",
        attempts=attempts,
        last_error=last_error,
    )


class SyncOutcome(NamedTuple):
    """Result of syncing one repository."""

    path: Path
    action: Action
    success: bool
    attempts: int
    error: Optional[str] = None
    default_branch: Optional[str] = None


class SyncExecutor:
    """Clones or fetches one repository at a resolved path."""

    def __init__(
        self,
        transport: GitTransport,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the executor.

        Args:
            transport: Git transport used for clone, fetch and repository probing
            max_retries: Attempts per repository, including the first one
            retry_delay: Seconds to wait between failed attempts
            sleep: Sleep function, replaceable in tests
        """
        self.transport = transport
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.sleep = sleep

    def sync(self, repo_path: Path, clone_url: str, action: Action) -> SyncOutcome:
        """Clone or fetch a repository, retrying transient failures.

        A failed fetch leaves the existing history untouched. A failed clone
        leaves nothing behind: any partial, non-repository directory it created
        is removed.

        Args:
            repo_path: Resolved local path of the repository
            clone_url: Remote URL to clone from
            action: ``clone`` or ``fetch``

        Returns:
            Outcome of the sync
        """
        name = repo_path.name
        attempts_made = 0

        def attempt(number: int) -> None:
            nonlocal attempts_made
            attempts_made = number
            if action == CLONE:
                if number > 1:
                    self._remove_partial_clone(repo_path)
                logger.info(f"Cloning {name} into {repo_path.parent}...")
                self.transport.clone(clone_url, repo_path)
            elif action == FETCH:
                logger.info(f"Fetching all branches for {name}...")
                self.transport.fetch_all(repo_path)
            else:
                raise ValueError(f"Unknown action: {action}")

        try:
            retry_call(
                attempt,
                attempts=self.max_retries,
                delay=self.retry_delay,
                sleep=self.sleep,
                description=f"sync repository {name}",
            )
        except TerminalSyncError as e:
            error_logger.error(f"{e} Last error: {e.last_error}")
            if action == CLONE:
                self._remove_partial_clone(repo_path)
            return SyncOutcome(repo_path, action, False, attempts_made, str(e.last_error))

        branch = self.transport.default_branch(repo_path)
        logger.debug(f"{name} synced, default branch: {branch}")
        return SyncOutcome(repo_path, action, True, attempts_made, default_branch=branch)

    def _remove_partial_clone(self, repo_path: Path) -> None:
        """Delete a clone leftover that never became a repository."""
        if not repo_path.exists() or self.transport.is_repository(repo_path):
            return
        logger.info(f"Cleaning up incomplete clone at {repo_path}.")
        if repo_path.is_dir():
            shutil.rmtree(repo_path)
        else:
            repo_path.unlink()
