"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from repo_backup.config import BackupConfig, create_config
from repo_backup.errors import TransientSyncError


class FakeTransport:
    """In-memory stand-in for GitTransport.

    A clone creates ``<dest>/.git``. URLs listed in ``failing_urls`` fail every
    clone; paths in ``failing_fetches`` fail every fetch. With
    ``leave_partial`` a failed clone leaves a non-repository directory behind.
    """

    def __init__(
        self,
        failing_urls: Optional[set] = None,
        failing_fetches: Optional[set] = None,
        leave_partial: bool = False,
    ):
        self.failing_urls = failing_urls or set()
        self.failing_fetches = failing_fetches or set()
        self.leave_partial = leave_partial
        self.calls: list[tuple] = []
        self.closed = False

    def check_tools(self) -> None:
        self.calls.append(("check_tools",))

    def pin_host_keys(self) -> None:
        self.calls.append(("pin_host_keys",))

    def check_ssh_auth(self) -> None:
        self.calls.append(("check_ssh_auth",))

    def is_repository(self, path: Path) -> bool:
        return (path / ".git").is_dir()

    def clone(self, url: str, dest: Path) -> None:
        self.calls.append(("clone", url, dest))
        if url in self.failing_urls:
            if self.leave_partial:
                dest.mkdir(parents=True, exist_ok=True)
                (dest / "partial.pack").write_text("incomplete", encoding="utf-8")
            raise TransientSyncError(f"could not read from remote repository {url}")
        (dest / ".git").mkdir(parents=True)

    def fetch_all(self, repo_path: Path) -> None:
        self.calls.append(("fetch", repo_path))
        if repo_path in self.failing_fetches:
            raise TransientSyncError(f"fetch failed for {repo_path}")

    def default_branch(self, repo_path: Path) -> Optional[str]:
        return "main"

    def close(self) -> None:
        self.closed = True

    def actions(self) -> list[str]:
        return [call[0] for call in self.calls if call[0] in ("clone", "fetch")]


def make_repo(path: Path) -> Path:
    """Create a directory that looks like a git clone."""
    (path / ".git").mkdir(parents=True)
    (path / "README.md").write_text("history", encoding="utf-8")
    return path


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Return a transport where every clone and fetch succeeds."""
    return FakeTransport()


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    """Return an empty backup root."""
    path = tmp_path / "github_backup"
    path.mkdir()
    return path


@pytest.fixture
def backup_config(backup_dir: Path) -> BackupConfig:
    """Return a configuration rooted at the temporary backup directory."""
    return create_config(backup_dir=backup_dir, retry_delay=0)
