"""Git and SSH transport for repository backups.

Wraps the ``git``, ``ssh`` and ``ssh-keyscan`` command line tools. GitHub's
host keys are pinned into a temporary known_hosts file once per run, and every
git call is made with a ``GIT_SSH_COMMAND`` that enforces them.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from .errors import FatalSetupError, TransientSyncError

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("git", "ssh", "ssh-keyscan")


def is_git_repository(path: Path) -> bool:
    """True if ``path`` contains a ``.git`` directory."""
    return (path / ".git").is_dir()


class GitTransport:
    """Runs git clone/fetch over SSH with pinned GitHub host keys."""

    SSH_HOST = "github.com"
    SSH_USER = "git"

    def __init__(self, ssh_key: Optional[str] = None, timeout: Optional[int] = None):
        """Initialize the transport.

        Args:
            ssh_key: Optional private key path; the ssh agent is used otherwise
            timeout: Optional timeout in seconds for each git command
        """
        self.ssh_key = os.path.expanduser(ssh_key) if ssh_key else None
        self.timeout = timeout
        self.known_hosts: Optional[Path] = None

    def check_tools(self) -> None:
        """Ensure every required command line tool is installed.

        Raises:
            FatalSetupError: If a tool is missing from PATH
        """
        for tool in REQUIRED_TOOLS:
            if shutil.which(tool) is None:
                raise FatalSetupError(f"{tool} command not found. Please install {tool}.")

    def pin_host_keys(self) -> Path:
        """Fetch GitHub's SSH host keys into a temporary known_hosts file."""
        try:
            result = subprocess.run(
                ["ssh-keyscan", self.SSH_HOST],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise FatalSetupError(f"ssh-keyscan failed: {e}") from e
        keys = result.stdout.strip()
        if not keys:
            raise FatalSetupError(f"Could not fetch {self.SSH_HOST} host keys.")

        fd, name = tempfile.mkstemp(prefix="known_hosts_")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(keys + "\n")

        self.known_hosts = Path(name)
        logger.debug(f"Pinned {self.SSH_HOST} host keys in {self.known_hosts}")
        return self.known_hosts

    def _ssh_options(self) -> list[str]:
        options = ["-o", "StrictHostKeyChecking=yes"]
        if self.known_hosts is not None:
            options += ["-o", f"UserKnownHostsFile={self.known_hosts}"]
        if self.ssh_key:
            options += ["-i", self.ssh_key]
        return options

    @property
    def ssh_command(self) -> str:
        """Value for ``GIT_SSH_COMMAND``."""
        return " ".join(shlex.quote(part) for part in ["ssh", *self._ssh_options()])

    def check_ssh_auth(self) -> None:
        """Verify that SSH authentication to GitHub works.

        GitHub refuses shell access, so a successful authentication exits with
        status 1. Anything else means the key or agent is unusable.

        Raises:
            FatalSetupError: If authentication fails
        """
        logger.info(f"Checking SSH access to {self.SSH_HOST}...")
        if self.known_hosts is None:
            self.pin_host_keys()

        try:
            result = subprocess.run(
                ["ssh", *self._ssh_options(), "-T", f"{self.SSH_USER}@{self.SSH_HOST}"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise FatalSetupError(f"SSH authentication check failed: {e}") from e
        if result.returncode != 1:
            logger.debug(f"ssh exited with {result.returncode}: {result.stderr.strip()}")
            raise FatalSetupError(
                f"SSH authentication to {self.SSH_HOST} failed. Ensure your SSH key is set up."
            )
        logger.info(f"SSH authentication to {self.SSH_HOST} successful.")

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["GIT_SSH_COMMAND"] = self.ssh_command
        return env

    def _run_git(self, args: list[str]) -> subprocess.CompletedProcess:
        command = ["git", *args]
        logger.debug(f"Running: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                env=self._env(),
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise TransientSyncError(f"git {args[0]} failed: {e}") from e

        if result.stderr.strip():
            logger.debug(result.stderr.strip())
        if result.returncode != 0:
            raise TransientSyncError(
                f"git {args[0]} exited with {result.returncode}: {result.stderr.strip()}"
            )
        return result

    def is_repository(self, path: Path) -> bool:
        return is_git_repository(path)

    def clone(self, url: str, dest: Path) -> None:
        """Clone ``url`` into ``dest``.

        Raises:
            TransientSyncError: If git fails
        """
        self._run_git(["clone", url, str(dest)])

    def fetch_all(self, repo_path: Path) -> None:
        """Fetch all remotes, branches and tags into an existing clone.

        Nothing is pruned, so branches deleted upstream keep their history here.

        Raises:
            TransientSyncError: If git fails
        """
        self._run_git(["-C", str(repo_path), "fetch", "--all", "--tags"])

    def default_branch(self, repo_path: Path) -> Optional[str]:
        """Return the branch ``origin/HEAD`` points at, or None if unknown."""
        try:
            result = self._run_git(
                ["-C", str(repo_path), "symbolic-ref", "refs/remotes/origin/HEAD"]
            )
        except TransientSyncError as e:
            logger.debug(f"Could not determine default branch of {repo_path}: {e}")
            return None
        return result.stdout.strip().replace("refs/remotes/origin/", "", 1) or None

    def close(self) -> None:
        """Remove the temporary known_hosts file."""
        if self.known_hosts is not None and self.known_hosts.exists():
            self.known_hosts.unlink()
        self.known_hosts = None

    def __enter__(self) -> GitTransport:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
