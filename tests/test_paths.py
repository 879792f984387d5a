"""Tests for name sanitizing and local state resolution."""

from pathlib import Path

import pytest

from repo_backup.paths import CLONE, FETCH, generate_duplicate_path, resolve, sanitize

from conftest import FakeTransport, make_repo


class TestSanitize:
    """Test cases for sanitize."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("tools", "tools"),
            ("my-repo_2", "my-repo_2"),
            ("dotted.name", "dotted_name"),
            ("with space", "with_space"),
            ("../../etc", "______etc"),
            ("$(rm -rf ~)", "__rm_-rf___"),
            ("café", "caf_"),
            ("", ""),
        ],
    )
    def test_sanitize(self, raw: str, expected: str) -> None:
        """Test characters outside [A-Za-z0-9_-] become underscores."""
        assert sanitize(raw) == expected

    def test_sanitize_keeps_length(self) -> None:
        """Test one underscore is produced per code point."""
        raw = "日本語 repo;|&"
        result = sanitize(raw)
        assert len(result) == len(raw)
        assert all(c.isascii() and (c.isalnum() or c in "_-") for c in result)


class TestGenerateDuplicatePath:
    """Test cases for generate_duplicate_path."""

    def test_first_slot(self, tmp_path: Path) -> None:
        """Test the first slot is used when free."""
        assert generate_duplicate_path(tmp_path / "tools") == tmp_path / "tools_DUPLICATE_1"

    def test_skips_taken_slots(self, tmp_path: Path) -> None:
        """Test occupied slots are skipped and the result does not exist."""
        (tmp_path / "tools_DUPLICATE_1").mkdir()
        (tmp_path / "tools_DUPLICATE_2").write_text("file", encoding="utf-8")

        result = generate_duplicate_path(tmp_path / "tools")

        assert result == tmp_path / "tools_DUPLICATE_3"
        assert not result.exists()

    def test_first_free_slot_wins(self, tmp_path: Path) -> None:
        """Test a gap in the numbering is filled."""
        (tmp_path / "tools_DUPLICATE_1").mkdir()
        (tmp_path / "tools_DUPLICATE_3").mkdir()

        assert generate_duplicate_path(tmp_path / "tools") == tmp_path / "tools_DUPLICATE_2"


class TestResolve:
    """Test cases for resolve."""

    def test_absent_path_is_cloned(self, tmp_path: Path) -> None:
        """Test a missing repository is cloned at the canonical path."""
        resolution = resolve(tmp_path, "tools", FakeTransport())

        assert resolution.path == tmp_path / "tools"
        assert resolution.action == CLONE
        assert resolution.renamed_to is None

    def test_existing_repository_is_fetched(self, tmp_path: Path) -> None:
        """Test an existing clone is fetched in place."""
        make_repo(tmp_path / "tools")

        resolution = resolve(tmp_path, "tools", FakeTransport())

        assert resolution.path == tmp_path / "tools"
        assert resolution.action == FETCH
        assert (tmp_path / "tools" / "README.md").exists()

    def test_foreign_directory_is_renamed(self, tmp_path: Path) -> None:
        """Test a non-repository directory is moved to a duplicate slot."""
        foreign = tmp_path / "tools"
        foreign.mkdir()
        (foreign / "notes.txt").write_text("keep me", encoding="utf-8")

        resolution = resolve(tmp_path, "tools", FakeTransport())

        assert resolution.action == CLONE
        assert resolution.path == tmp_path / "tools"
        assert resolution.renamed_to == tmp_path / "tools_DUPLICATE_1"
        assert not (tmp_path / "tools").exists()
        assert (tmp_path / "tools_DUPLICATE_1" / "notes.txt").read_text(encoding="utf-8") == "keep me"

    def test_plain_file_is_renamed(self, tmp_path: Path) -> None:
        """Test a plain file at the repository path is moved aside too."""
        (tmp_path / "tools").write_text("stray", encoding="utf-8")
        (tmp_path / "tools_DUPLICATE_1").mkdir()

        resolution = resolve(tmp_path, "tools", FakeTransport())

        assert resolution.action == CLONE
        assert resolution.renamed_to == tmp_path / "tools_DUPLICATE_2"
        assert (tmp_path / "tools_DUPLICATE_2").read_text(encoding="utf-8") == "stray"
