"""Orphan detection for repositories that disappeared remotely.

After a sync pass, every repository directory under the backup root whose
identity is missing from the current inventory is renamed to ``ORPHAN_<name>``.
Orphans are only ever relabelled, never deleted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from .inventory import RepoRecord
from .paths import generate_duplicate_path, sanitize

logger = logging.getLogger(__name__)

ORPHAN_PREFIX = "ORPHAN_"


def inventory_identities(inventory: Iterable[RepoRecord]) -> set[tuple[str, str]]:
    """Sanitized ``(entity, repo)`` pairs, matching the on-disk layout."""
    return {(sanitize(r.entity_name), sanitize(r.repo_name)) for r in inventory}


class OrphanReconciler:
    """Relabels local repositories that are no longer in the inventory."""

    def __init__(self, backup_dir: Path, orphan_log: Optional[Path] = None):
        """Initialize the reconciler.

        Args:
            backup_dir: Backup root holding one directory per entity
            orphan_log: Optional file each new orphan name is appended to
        """
        self.backup_dir = backup_dir
        self.orphan_log = orphan_log

    def reconcile(
        self, inventory: Iterable[RepoRecord], skipped_entities: Iterable[str] = ()
    ) -> list[Path]:
        """Rename every unmatched repository directory with the orphan prefix.

        Matching is exact on the sanitized identity, so a directory named
        ``foobar`` is not protected by a repository named ``foo``. Directories
        that already carry the prefix are left alone, and so are the
        directories of entities whose listing was unavailable.

        Args:
            inventory: Records from the current run
            skipped_entities: Entities whose listing failed this run

        Returns:
            New paths of the directories that were renamed
        """
        logger.info("Logging orphaned repositories...")
        known = inventory_identities(inventory)
        skipped = {sanitize(entity) for entity in skipped_entities}
        renamed = []

        for entity_dir in sorted(p for p in self.backup_dir.iterdir() if p.is_dir()):
            if entity_dir.name in skipped:
                logger.info(f"Skipping orphan detection for {entity_dir.name}: listing unavailable")
                continue
            for repo_dir in sorted(p for p in entity_dir.iterdir() if p.is_dir()):
                if repo_dir.name.startswith(ORPHAN_PREFIX):
                    continue
                if (entity_dir.name, repo_dir.name) in known:
                    continue
                renamed.append(self._mark(repo_dir))

        logger.info(f"Marked {len(renamed)} orphaned repositories")
        return renamed

    def _mark(self, repo_dir: Path) -> Path:
        logger.info(f"Orphaned repo detected: {repo_dir.name} (renaming)")
        new_path = repo_dir.with_name(ORPHAN_PREFIX + repo_dir.name)
        if new_path.exists():
            new_path = generate_duplicate_path(new_path)
        repo_dir.rename(new_path)

        if self.orphan_log is not None:
            self.orphan_log.parent.mkdir(parents=True, exist_ok=True)
            with self.orphan_log.open("a", encoding="utf-8") as f:
                f.write(new_path.name + "\n")
        return new_path
