"""Remote inventory of repositories to back up.

The inventory is built once per run: the primary account's repositories first,
then those of each organization it belongs to. Every record is appended to the
inventory file as ``SCOPE [entity] repo url`` and read back by the sync phase.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, NamedTuple, Optional

import requests

from .errors import SoftInventoryError
from .github import ORG, USER, GitHubClient

logger = logging.getLogger(__name__)
error_logger = logging.getLogger("repo_backup.errors")


class RepoRecord(NamedTuple):
    """One repository to back up."""

    scope: str
    entity_name: str
    repo_name: str
    clone_url: str

    def to_line(self) -> str:
        """Render the record as an inventory file line."""
        return f"{self.scope} [{self.entity_name}] {self.repo_name} {self.clone_url}"


def parse_inventory_line(line: str) -> RepoRecord:
    """Parse a ``SCOPE [entity] repo url`` line.

    Raises:
        ValueError: If the line does not have that shape
    """
    fields = line.split()
    if len(fields) != 4:
        raise ValueError(f"Expected 4 fields, got {len(fields)}: {line!r}")

    scope, entity, repo_name, clone_url = fields
    if scope not in (USER, ORG):
        raise ValueError(f"Unknown scope {scope!r}: {line!r}")
    if not (entity.startswith("[") and entity.endswith("]")) or len(entity) < 3:
        raise ValueError(f"Entity name must be bracketed: {line!r}")

    return RepoRecord(scope, entity[1:-1], repo_name, clone_url)


def write_inventory(records: Iterable[RepoRecord], path: Path) -> None:
    """Append records to the inventory file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        for record in records:
            f.write(record.to_line() + "\n")


def read_inventory(path: Path) -> list[RepoRecord]:
    """Read the inventory file back in order, skipping malformed lines."""
    records = []
    with path.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                records.append(parse_inventory_line(line))
            except ValueError as e:
                logger.warning(f"Skipping inventory line {lineno}: {e}")
    return records


class InventoryBuilder:
    """Builds the flat list of repositories visible to an account."""

    def __init__(
        self,
        github_client: GitHubClient,
        inventory_file: Optional[Path] = None,
        repo_limit: int = 5000,
    ):
        """Initialize the builder.

        Args:
            github_client: Client used for listing calls
            inventory_file: Optional file each entity's records are appended to
            repo_limit: Maximum number of repositories listed per entity
        """
        self.github_client = github_client
        self.inventory_file = inventory_file
        self.repo_limit = repo_limit
        self.skipped_entities: list[str] = []
        self.orgs_listed = False

    def fetch_entity(self, entity: str, scope: str) -> list[RepoRecord]:
        """List one entity's repositories as records.

        Raises:
            SoftInventoryError: If the listing call fails
        """
        logger.info(f"Fetching repositories for {entity} ({scope})...")
        try:
            repos = self.github_client.list_repos(entity, scope, limit=self.repo_limit)
        except (requests.RequestException, ValueError) as e:
            raise SoftInventoryError(entity, str(e)) from e

        records = [RepoRecord(scope, entity, repo["name"], repo["ssh_url"]) for repo in repos]
        logger.info(f"Found {len(records)} repositories for {entity}")

        if self.inventory_file is not None:
            write_inventory(records, self.inventory_file)
        return records

    def build(self, primary: str) -> list[RepoRecord]:
        """Build the inventory for the primary account and its organizations.

        Records are not de-duplicated: two entities exposing a repository with
        the same name yield two independent records. A failed listing, the
        primary account's included, is logged and that entity is skipped.

        Args:
            primary: Login of the authenticated account

        Returns:
            Primary account records first, then each organization's in API order
        """
        self.skipped_entities = []
        self.orgs_listed = False
        records: list[RepoRecord] = []

        try:
            records.extend(self.fetch_entity(primary, USER))
        except SoftInventoryError as e:
            self._skip(e)

        try:
            orgs = self.github_client.list_orgs()
        except (requests.RequestException, ValueError, KeyError) as e:
            self._skip(SoftInventoryError(f"organizations of {primary}", str(e)))
            return records
        self.orgs_listed = True

        for org in orgs:
            try:
                records.extend(self.fetch_entity(org, ORG))
            except SoftInventoryError as e:
                self._skip(e)

        return records

    def _skip(self, error: SoftInventoryError) -> None:
        # The error log propagates to the progress log
        error_logger.error(str(error))
        self.skipped_entities.append(error.entity)
