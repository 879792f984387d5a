"""Tests for orphan reconciliation."""

from pathlib import Path

from repo_backup.inventory import RepoRecord
from repo_backup.orphans import OrphanReconciler

from conftest import make_repo


def _record(entity: str, repo: str, scope: str = "USER") -> RepoRecord:
    return RepoRecord(scope, entity, repo, f"git@github.com:{entity}/{repo}.git")


class TestOrphanReconciler:
    """Test cases for OrphanReconciler."""

    def test_vanished_repository_is_renamed(self, backup_dir: Path, tmp_path: Path) -> None:
        """Test a repository missing from the inventory gets the orphan prefix."""
        make_repo(backup_dir / "me" / "tools")
        make_repo(backup_dir / "me" / "gone")
        orphan_log = tmp_path / "orphaned_repos.txt"

        renamed = OrphanReconciler(backup_dir, orphan_log).reconcile([_record("me", "tools")])

        assert renamed == [backup_dir / "me" / "ORPHAN_gone"]
        assert (backup_dir / "me" / "ORPHAN_gone" / "README.md").exists()
        assert (backup_dir / "me" / "tools").exists()
        assert orphan_log.read_text(encoding="utf-8") == "ORPHAN_gone\n"

    def test_exact_match_does_not_protect_similar_names(self, backup_dir: Path) -> None:
        """Test a repository named foo does not protect a directory named foobar."""
        make_repo(backup_dir / "me" / "foo")
        make_repo(backup_dir / "me" / "foobar")

        renamed = OrphanReconciler(backup_dir).reconcile([_record("me", "foo")])

        assert renamed == [backup_dir / "me" / "ORPHAN_foobar"]
        assert (backup_dir / "me" / "foo").exists()

    def test_matching_uses_sanitized_names(self, backup_dir: Path) -> None:
        """Test records match the sanitized on-disk names."""
        make_repo(backup_dir / "my_org" / "site_io")

        renamed = OrphanReconciler(backup_dir).reconcile([_record("my.org", "site.io", "ORG")])

        assert renamed == []

    def test_identity_includes_entity(self, backup_dir: Path) -> None:
        """Test a repository name listed under another entity does not match."""
        make_repo(backup_dir / "me" / "tools")
        make_repo(backup_dir / "acme" / "tools")

        renamed = OrphanReconciler(backup_dir).reconcile([_record("acme", "tools", "ORG")])

        assert renamed == [backup_dir / "me" / "ORPHAN_tools"]

    def test_existing_orphans_are_left_alone(self, backup_dir: Path) -> None:
        """Test a second pass does not re-prefix orphans."""
        make_repo(backup_dir / "me" / "gone")
        reconciler = OrphanReconciler(backup_dir)

        first = reconciler.reconcile([])
        second = reconciler.reconcile([])

        assert first == [backup_dir / "me" / "ORPHAN_gone"]
        assert second == []
        assert sorted(p.name for p in (backup_dir / "me").iterdir()) == ["ORPHAN_gone"]

    def test_orphan_name_collision_uses_duplicate_slot(self, backup_dir: Path) -> None:
        """Test an earlier orphan with the same name is never overwritten."""
        make_repo(backup_dir / "me" / "ORPHAN_gone")
        make_repo(backup_dir / "me" / "gone")

        renamed = OrphanReconciler(backup_dir).reconcile([])

        assert renamed == [backup_dir / "me" / "ORPHAN_gone_DUPLICATE_1"]
        assert (backup_dir / "me" / "ORPHAN_gone" / ".git").is_dir()

    def test_files_are_ignored(self, backup_dir: Path) -> None:
        """Test only second-level directories are considered."""
        (backup_dir / "repos.txt").write_text("", encoding="utf-8")
        (backup_dir / "me").mkdir()
        (backup_dir / "me" / "stray.txt").write_text("", encoding="utf-8")

        assert OrphanReconciler(backup_dir).reconcile([]) == []
        assert (backup_dir / "me" / "stray.txt").exists()

    def test_skipped_entities_are_left_alone(self, backup_dir: Path) -> None:
        """Test repositories of an entity whose listing failed are not orphaned."""
        make_repo(backup_dir / "me" / "gone")
        make_repo(backup_dir / "my_org" / "vault")

        renamed = OrphanReconciler(backup_dir).reconcile([], skipped_entities=["my.org"])

        assert renamed == [backup_dir / "me" / "ORPHAN_gone"]
        assert (backup_dir / "my_org" / "vault" / ".git").is_dir()
