#!/usr/bin/env python3
"""Retention sweeper for the sync folder.

Artifacts only need to live long enough for every peer to see them. The
sweeper runs once a minute and:
- deletes artifacts written by this host after SELF_ARTIFACT_TTL_SECONDS
- deletes artifacts written by peers after PEER_ARTIFACT_TTL_SECONDS
- unpins peer artifacts older than UNPIN_AFTER_SECONDS where the sync client
  supports online-only placeholders, so a later local delete is not treated
  as a user delete that must be uploaded
- deletes files left behind by earlier naming schemes

Presence markers and unrelated files are never touched.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import stat
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

from fclipsync.artifact_names import Origin, parse_artifact_name
from fclipsync.constants import (
    CLEAN_INTERVAL_SECONDS,
    PEER_ARTIFACT_TTL_SECONDS,
    SELF_ARTIFACT_TTL_SECONDS,
    UNPIN_AFTER_SECONDS,
)
from fclipsync.file_utils import delete_recursively
from fclipsync.presence import is_presence_marker

logger = logging.getLogger(__name__)

LEGACY_NAME_PATTERN = re.compile(
    r"^(?:(?:0|[1-9][0-9]*)-[0-9a-zA-Z-]+\.txt"
    r"|receiving-[0-9a-zA-Z-]+\.txt"
    r"|[0-9a-zA-Z-]+\.is-reading\.txt)$"
)


def is_legacy_name(name: str) -> bool:
    """Check if an entry name was used by an earlier naming scheme."""
    return LEGACY_NAME_PATTERN.match(name) is not None


@dataclass
class CleanupReport:
    """Entries acted on during one sweep."""

    deleted: list[Path] = field(default_factory=list)
    legacy_deleted: list[Path] = field(default_factory=list)
    unpinned: list[Path] = field(default_factory=list)


class Unpinner:
    """Marks cloud placeholder files as online-only.

    Only available on Windows, where OneDrive honours the pinned/unpinned
    file attributes. Use detect_unpinner() to obtain one.
    """

    def unpin(self, path: Path) -> None:
        """
        Unpin every reparse-point file below path.

        Args:
            path: File or directory.

        Raises:
            OSError: If an attribute cannot be read or set.
        """
        files = [path] if not path.is_dir() else [
            Path(root) / name for root, _dirs, names in os.walk(path) for name in names
        ]
        for file in files:
            attributes = getattr(file.stat(follow_symlinks=False), "st_file_attributes", 0)
            if not attributes & getattr(stat, "FILE_ATTRIBUTE_REPARSE_POINT", 0x400):
                continue
            logger.info("Unsyncing: %s", file)
            result = subprocess.run(
                ["attrib", "+U", "-P", str(file)],
                capture_output=True,
                check=False,
            )
            if result.returncode != 0:
                raise OSError(f"Failed to set attributes for file: {file}")


def detect_unpinner() -> Unpinner | None:
    """Return an Unpinner on platforms that support it, else None."""
    if sys.platform == "win32":
        return Unpinner()
    return None


def clean_folder(
    sync_folder: Path,
    host: str,
    now: float,
    unpinner: Unpinner | None = None,
) -> CleanupReport:
    """
    Run one retention sweep over the sync folder.

    Args:
        sync_folder: The sync folder.
        host: This host's identity.
        now: Current time in seconds since the epoch.
        unpinner: Placeholder capability, or None where unsupported.

    Returns:
        A report of deleted and unpinned entries.
    """
    report = CleanupReport()
    try:
        names = os.listdir(sync_folder)
    except OSError as e:
        logger.error("Error reading sync folder for cleanup: %s", e)
        return report

    for name in names:
        path = sync_folder / name
        parsed = parse_artifact_name(path, sync_folder, host)

        if parsed is None:
            if is_presence_marker(name):
                continue
            if is_legacy_name(name):
                logger.info("Deleting file used by previous versions: %s", path)
                if delete_recursively(path):
                    report.legacy_deleted.append(path)
            continue

        ttl = (
            SELF_ARTIFACT_TTL_SECONDS
            if parsed.origin is Origin.MYSELF
            else PEER_ARTIFACT_TTL_SECONDS
        )
        try:
            modified = path.lstat().st_mtime
        except FileNotFoundError:
            continue

        if modified <= now - ttl:
            logger.info("Deleting: %s", path)
            if delete_recursively(path):
                report.deleted.append(path)
            continue

        if (
            unpinner is not None
            and parsed.origin is Origin.OTHERS
            and modified <= now - UNPIN_AFTER_SECONDS
        ):
            try:
                unpinner.unpin(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Could not unsync %s: %s", path, e)
                continue
            report.unpinned.append(path)

    return report


async def run_retention_sweeper(
    sync_folder: Path,
    host: str,
    unpinner: Unpinner | None = None,
    interval: float = CLEAN_INTERVAL_SECONDS,
) -> None:
    """
    Sweep the sync folder every interval seconds until cancelled.

    The first sweep happens immediately.

    Args:
        sync_folder: The sync folder.
        host: This host's identity.
        unpinner: Placeholder capability, or None.
        interval: Seconds between sweeps.
    """
    while True:
        report = await asyncio.to_thread(
            clean_folder, sync_folder, host, time.time(), unpinner
        )
        if report.deleted or report.legacy_deleted:
            logger.debug(
                "Sweep removed %d artifacts and %d legacy files",
                len(report.deleted), len(report.legacy_deleted),
            )
        await asyncio.sleep(interval)
