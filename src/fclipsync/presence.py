#!/usr/bin/env python3
"""Presence markers announcing which hosts are receiving.

Each receiving host keeps a "<host>.is-receiving.txt" file in the sync folder
and rewrites it every few minutes. A sender that finds no fresh marker from
any other host skips writing artifacts nobody would read. A host that dies
without removing its marker simply stops refreshing it, and the marker goes
stale on its own.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path

from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from fclipsync.constants import (
    PRESENCE_REFRESH_SECONDS,
    PRESENCE_REMOVE_TIMEOUT_SECONDS,
    PRESENCE_STALE_SECONDS,
)

logger = logging.getLogger(__name__)

PRESENCE_MARKER_SUFFIX = ".is-receiving.txt"


def presence_marker_name(host: str) -> str:
    """Return the marker file name for a host."""
    return f"{host}{PRESENCE_MARKER_SUFFIX}"


def is_presence_marker(name: str) -> bool:
    """Check if an entry name is a presence marker."""
    return name.endswith(PRESENCE_MARKER_SUFFIX)


def no_peers_receiving(
    sync_folder: Path,
    host: str,
    now: float,
    stale_after: float = PRESENCE_STALE_SECONDS,
) -> bool:
    """
    Check whether no other host is currently receiving.

    Args:
        sync_folder: The sync folder.
        host: This host's identity; its own marker is ignored.
        now: Current time in seconds since the epoch.
        stale_after: Age in seconds after which a marker counts as absent.

    Returns:
        True if every peer marker is stale or there are none.
    """
    own_marker = presence_marker_name(host)
    try:
        names = os.listdir(sync_folder)
    except OSError as e:
        logger.warning("Cannot list %s: %s", sync_folder, e)
        return True

    for name in names:
        if not is_presence_marker(name) or name == own_marker:
            continue
        try:
            modified = (sync_folder / name).stat().st_mtime
        except FileNotFoundError:
            continue
        if modified >= now - stale_after:
            return False
    return True


def write_presence_marker(sync_folder: Path, host: str, now: float) -> None:
    """
    Create or refresh this host's presence marker.

    Args:
        sync_folder: The sync folder.
        host: This host's identity.
        now: Current time, stored in the marker in milliseconds.
    """
    marker = sync_folder / presence_marker_name(host)
    try:
        marker.write_text(str(int(now * 1000)), encoding="ascii")
    except OSError as e:
        logger.error("Failed to write presence marker %s: %s", marker, e)


@retry(
    retry=retry_if_exception_type(PermissionError),
    wait=wait_fixed(0.2),
    stop=stop_after_delay(PRESENCE_REMOVE_TIMEOUT_SECONDS),
)
def _unlink_marker(marker: Path) -> None:
    """Unlink the marker, retrying while the sync client holds it open."""
    marker.unlink(missing_ok=True)


def remove_presence_marker(sync_folder: Path, host: str) -> bool:
    """
    Best-effort removal of this host's presence marker.

    Failure is not fatal: a marker left behind goes stale and peers stop
    writing for us after PRESENCE_STALE_SECONDS.

    Args:
        sync_folder: The sync folder.
        host: This host's identity.

    Returns:
        True if the marker is gone.
    """
    marker = sync_folder / presence_marker_name(host)
    try:
        _unlink_marker(marker)
    except (RetryError, OSError) as e:
        logger.warning("Could not remove presence marker %s: %s", marker, e)
        return False
    return True


async def run_presence_refresh(
    sync_folder: Path,
    host: str,
    interval: float = PRESENCE_REFRESH_SECONDS,
) -> None:
    """
    Keep this host's presence marker fresh until cancelled.

    The marker is written immediately, then every interval seconds.

    Args:
        sync_folder: The sync folder.
        host: This host's identity.
        interval: Seconds between refreshes.
    """
    while True:
        await asyncio.to_thread(write_presence_marker, sync_folder, host, time.time())
        logger.debug("Presence marker refreshed")
        await asyncio.sleep(interval)
