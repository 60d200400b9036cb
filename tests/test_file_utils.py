#!/usr/bin/env python3
"""Tests for filesystem helpers."""
from pathlib import Path
from unittest.mock import patch

from fclipsync.file_utils import copy_into, count_files, delete_recursively, total_size


def _tree(root: Path) -> Path:
    (root / "dir" / "sub").mkdir(parents=True)
    (root / "dir" / "a.txt").write_bytes(b"aaa")
    (root / "dir" / "sub" / "b.txt").write_bytes(b"bb")
    (root / "c.txt").write_bytes(b"c")
    return root


def test_count_and_size_are_recursive(tmp_path: Path) -> None:
    root = _tree(tmp_path)
    paths = [root / "dir", root / "c.txt"]
    assert count_files(paths) == 3
    assert total_size(paths) == 6


def test_missing_paths_are_skipped(tmp_path: Path) -> None:
    assert count_files([tmp_path / "missing"]) == 0


def test_copy_into_keeps_base_name(tmp_path: Path) -> None:
    root = _tree(tmp_path / "src")
    target = tmp_path / "target"
    target.mkdir()
    copy_into(root / "dir", target)
    copy_into(root / "c.txt", target)
    assert (target / "dir" / "sub" / "b.txt").read_bytes() == b"bb"
    assert (target / "c.txt").exists()


def test_delete_recursively(tmp_path: Path) -> None:
    root = _tree(tmp_path / "src")
    assert delete_recursively(root / "dir")
    assert delete_recursively(root / "c.txt")
    assert not (root / "dir").exists()


def test_delete_missing_counts_as_deleted(tmp_path: Path) -> None:
    assert delete_recursively(tmp_path / "missing")


def test_delete_failure_returns_false(tmp_path: Path) -> None:
    path = tmp_path / "file"
    path.write_text("x")
    with patch.object(Path, "unlink", side_effect=PermissionError("locked")):
        assert delete_recursively(path) is False


def test_symlinked_directory_is_counted_like_a_copy(tmp_path: Path) -> None:
    root = _tree(tmp_path / "src")
    link = tmp_path / "link"
    link.symlink_to(root / "dir", target_is_directory=True)
    assert count_files([link]) == 2
    assert total_size([link]) == 5
