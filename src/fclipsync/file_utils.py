#!/usr/bin/env python3
"""Filesystem helpers shared by the send path and the retention sweeper."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


def _iter_files(paths: Iterable[str | os.PathLike[str]]) -> Iterator[Path]:
    """Yield every regular file at or below the given paths.

    A symlink given directly is followed, as copying it would.
    """
    for path in paths:
        path = Path(path)
        try:
            if path.is_dir():
                for root, _dirs, files in os.walk(path):
                    for name in files:
                        yield Path(root) / name
            elif path.exists():
                yield path
        except OSError as e:
            logger.error("Error while iterating through %s: %s", path, e)


def count_files(paths: Iterable[str | os.PathLike[str]]) -> int:
    """
    Count regular files recursively.

    Args:
        paths: Files or directories.

    Returns:
        Number of files found; directories themselves are not counted.
    """
    return sum(1 for _ in _iter_files(paths))


def total_size(paths: Iterable[str | os.PathLike[str]]) -> int:
    """
    Sum the sizes of all files below the given paths.

    Args:
        paths: Files or directories.

    Returns:
        Total size in bytes. Files that vanish while scanning are skipped.
    """
    size = 0
    for file in _iter_files(paths):
        try:
            size += file.stat().st_size
        except FileNotFoundError:
            continue
    return size


def copy_into(source: str | os.PathLike[str], destination_dir: Path) -> None:
    """
    Copy a file or directory into a directory, keeping its base name.

    Args:
        source: File or directory to copy.
        destination_dir: Existing directory receiving the copy.
    """
    source = Path(source)
    target = destination_dir / source.name
    if source.is_dir():
        shutil.copytree(source, target)
    else:
        shutil.copyfile(source, target)


def delete_recursively(path: Path) -> bool:
    """
    Delete a file or a directory tree.

    A path that no longer exists counts as deleted, since another host or
    process may have removed it first.

    Args:
        path: Entry to delete.

    Returns:
        True if the path is gone afterwards, False if deletion failed.
    """
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.error("Error deleting %s: %s", path, e)
        return False
    return True
