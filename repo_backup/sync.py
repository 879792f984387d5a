"""Backup run orchestration for github-repo-backup.

This module sequences a full backup run: authentication checks, inventory
building, a clone-or-fetch pass over every repository, and optional orphan
reconciliation.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import requests

from .config import BackupConfig
from .errors import InventoryFetchError
from .executor import SyncExecutor, SyncOutcome
from .git import GitTransport
from .github import GitHubClient
from .inventory import InventoryBuilder, RepoRecord, read_inventory
from .orphans import OrphanReconciler
from .paths import CLONE, resolve, sanitize

logger = logging.getLogger(__name__)
error_logger = logging.getLogger("repo_backup.errors")


class BackupResult:
    """Result of a backup run.

    Per-repository failures are collected here; they do not make the run fail.
    """

    def __init__(self):
        """Initialize empty backup result."""
        self.cloned: list[str] = []
        self.fetched: list[str] = []
        self.failed: list[tuple[str, str]] = []
        self.duplicates: list[str] = []
        self.orphaned: list[str] = []
        self.skipped_entities: list[str] = []
        self.default_branches: dict[str, str] = {}

    def add_outcome(self, repo_id: str, outcome: SyncOutcome) -> None:
        """Record the outcome of syncing one repository.

        Args:
            repo_id: ``entity/repo`` label of the repository
            outcome: Outcome returned by the executor
        """
        if not outcome.success:
            self.add_failure(repo_id, outcome.error or "unknown error")
            return
        if outcome.default_branch:
            self.default_branches[repo_id] = outcome.default_branch
        if outcome.action == CLONE:
            self.cloned.append(repo_id)
        else:
            self.fetched.append(repo_id)

    def add_failure(self, repo_id: str, error: str) -> None:
        """Record a repository that could not be synced."""
        self.failed.append((repo_id, error))

    @property
    def success_count(self) -> int:
        """Number of repositories cloned or fetched."""
        return len(self.cloned) + len(self.fetched)

    @property
    def failure_count(self) -> int:
        """Number of repositories that exhausted their retries."""
        return len(self.failed)

    @property
    def is_success(self) -> bool:
        """True if every repository and entity was synced."""
        return self.failure_count == 0 and not self.skipped_entities

    def __str__(self) -> str:
        """String representation of backup results."""
        return (
            f"Backup completed: {len(self.cloned)} cloned, {len(self.fetched)} fetched, "
            f"{self.failure_count} failed, {len(self.duplicates)} renamed as duplicates, "
            f"{len(self.orphaned)} marked as orphans, "
            f"{len(self.skipped_entities)} entities skipped"
        )


class RepoBackup:
    """Main backup orchestrator.

    Mirrors every repository the authenticated account can access into
    ``backup_dir/<entity>/<repo>``, one repository at a time.
    """

    def __init__(
        self,
        config: BackupConfig,
        github_client: Optional[GitHubClient] = None,
        transport: Optional[GitTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the backup orchestrator.

        Args:
            config: Settings for this run
            github_client: Optional GitHub client instance
            transport: Optional git transport instance
            sleep: Sleep function used between retries
        """
        self.config = config
        self.github_client = github_client or GitHubClient(timeout=config["timeout"])
        self._owns_client = github_client is None
        self.orgs_listed = False
        self.transport = transport or GitTransport(ssh_key=config["ssh_key"])
        self.executor = SyncExecutor(
            self.transport,
            max_retries=config["max_retries"],
            retry_delay=config["retry_delay"],
            sleep=sleep,
        )

    def run(self) -> BackupResult:
        """Run a complete backup.

        Returns:
            Summary of the run

        Raises:
            FatalSetupError: If tools, authentication or identity are
                unavailable
        """
        result = BackupResult()
        self.prepare()
        logger.info(f"Backup started at {datetime.now():%Y-%m-%d %H:%M:%S}")

        try:
            self.check_auth()
            user = self.resolve_identity()
            records = self.build_inventory(user, result)

            for record in records:
                self.sync_record(record, result)

            if self.config["orphan_cleanup"]:
                result.orphaned = [str(p) for p in self.reconcile_orphans(records, result)]
        finally:
            self.transport.close()

        logger.info(str(result))
        logger.info(f"Backup finished at {datetime.now():%Y-%m-%d %H:%M:%S}")
        return result

    def prepare(self) -> None:
        """Create the backup directories and start a fresh inventory file."""
        for path in (
            self.config["backup_dir"],
            self.config["log_file"].parent,
            self.config["error_log_file"].parent,
            self.config["repos_file"].parent,
            self.config["orphan_log"].parent,
        ):
            path.mkdir(parents=True, exist_ok=True)

        self.config["repos_file"].write_text("", encoding="utf-8")

    def check_auth(self) -> None:
        """Check required tools and SSH access to GitHub."""
        self.transport.check_tools()
        self.transport.pin_host_keys()
        self.transport.check_ssh_auth()

    def resolve_identity(self) -> str:
        """Return the login of the authenticated account.

        Raises:
            InventoryFetchError: If the account cannot be resolved
        """
        try:
            user = self.github_client.current_user()
        except (requests.RequestException, KeyError, ValueError) as e:
            raise InventoryFetchError(f"Unable to fetch GitHub user details: {e}") from e

        logger.info(f"Authenticated as user: {user}")
        return user

    def build_inventory(self, user: str, result: BackupResult) -> list[RepoRecord]:
        """List all repositories into the inventory file and read them back."""
        builder = InventoryBuilder(
            self.github_client,
            inventory_file=self.config["repos_file"],
            repo_limit=self.config["repo_limit"],
        )
        builder.build(user)
        result.skipped_entities = list(builder.skipped_entities)
        self.orgs_listed = builder.orgs_listed

        records = read_inventory(self.config["repos_file"])
        logger.info(f"Inventory holds {len(records)} repositories")
        return records

    def sync_record(self, record: RepoRecord, result: BackupResult) -> None:
        """Resolve the local path of one record and clone or fetch it."""
        entity_name = sanitize(record.entity_name)
        repo_name = sanitize(record.repo_name)
        repo_id = f"{entity_name}/{repo_name}"
        entity_dir = self.config["backup_dir"] / entity_name

        try:
            entity_dir.mkdir(parents=True, exist_ok=True)
            resolution = resolve(entity_dir, repo_name, self.transport)
        except OSError as e:
            error_logger.error(f"Failed to prepare {repo_id}: {e}")
            result.add_failure(repo_id, str(e))
            return

        if resolution.renamed_to is not None:
            result.duplicates.append(str(resolution.renamed_to))

        outcome = self.executor.sync(resolution.path, record.clone_url, resolution.action)
        result.add_outcome(repo_id, outcome)

    def reconcile_orphans(self, records: list[RepoRecord], result: BackupResult) -> list[Path]:
        """Mark local repositories missing from the inventory as orphans.

        Entities whose listing failed this run are left alone. Without the
        organization list no entity besides the primary one can be judged, so
        reconciliation is skipped entirely.
        """
        if not self.orgs_listed:
            logger.warning("Organization list unavailable, skipping orphan detection")
            return []

        reconciler = OrphanReconciler(self.config["backup_dir"], self.config["orphan_log"])
        return reconciler.reconcile(records, skipped_entities=result.skipped_entities)

    def test_connectivity(self) -> bool:
        """Test connectivity to GitHub.

        Returns:
            True if GitHub is accessible, False otherwise
        """
        logger.info("Testing GitHub connectivity...")
        is_connected = self.github_client.test_connection()

        if is_connected:
            logger.info("✓ GitHub connectivity test passed")
        else:
            logger.error("✗ GitHub connectivity test failed")

        return is_connected

    def close(self) -> None:
        """Clean up resources.

        Should be called when done using the orchestrator.
        """
        self.transport.close()
        if self._owns_client:
            self.github_client.close()

    def __enter__(self) -> RepoBackup:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
