#!/usr/bin/env python3
"""Waiting for the sync folder with retry.

The sync folder may live on a network mount or be created by the sync
command only after it has started. The agent waits for it using tenacity
with exponential backoff, the same way it would wait for a reconnect.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_never,
    wait_exponential,
)

from fclipsync.constants import FOLDER_INITIAL_WAIT, FOLDER_MAX_WAIT, FOLDER_WAIT_MULTIPLIER

logger = logging.getLogger(__name__)


class SyncFolderUnavailable(Exception):
    """Raised when the sync folder does not exist or is not a directory."""

    pass


async def check_sync_folder(sync_folder: Path) -> None:
    """Raise SyncFolderUnavailable unless sync_folder is a directory."""
    if not await asyncio.to_thread(sync_folder.is_dir):
        raise SyncFolderUnavailable(f"Sync folder {sync_folder} is not available")


@retry(
    wait=wait_exponential(
        multiplier=FOLDER_WAIT_MULTIPLIER,
        min=FOLDER_INITIAL_WAIT,
        max=FOLDER_MAX_WAIT,
    ),
    retry=retry_if_exception_type(SyncFolderUnavailable),
    stop=stop_never,
    before_sleep=before_sleep_log(logger, logging.INFO),
)
async def wait_for_sync_folder(sync_folder: Path) -> None:
    """Return once sync_folder is a directory, retrying with backoff.

    Args:
        sync_folder: The sync folder.

    Note:
        This never gives up; cancel the awaiting task to stop waiting.
    """
    await check_sync_folder(sync_folder)
