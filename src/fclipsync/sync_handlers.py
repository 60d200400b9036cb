#!/usr/bin/env python3
"""Clipboard synchronization event handlers.

This module provides handlers for synchronization events:
- handle_clipboard_change: snapshot the local clipboard into a new artifact
- handle_artifact_added: apply a peer's artifact to the local clipboard

Both handlers re-evaluate every suppression rule on each call and only keep
state in the session, so they may be invoked for any sequence of events.
Errors affecting a single event are logged and end that event only.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from fclipsync.artifact_names import (
    ArtifactError,
    Origin,
    allocate_next_beat,
    parse_artifact_name,
)
from fclipsync.clipboard_backend import ClipboardError
from fclipsync.constants import CLIPBOARD_DEBOUNCE_SECONDS, MAX_FILES_SIZE_BYTES
from fclipsync.content import (
    ClipboardFiles,
    contents_equal,
    read_artifact,
    read_clipboard_content,
    write_artifact,
    write_clipboard_content,
)
from fclipsync.file_utils import count_files, total_size
from fclipsync.indicator import IndicatorState
from fclipsync.presence import no_peers_receiving

if TYPE_CHECKING:
    from fclipsync.sync_state import SyncSession

logger = logging.getLogger(__name__)


def _prepare_files(content: ClipboardFiles) -> ClipboardFiles | None:
    """Measure a file list, returning None if it must not be sent."""
    size = total_size(content.paths)
    if size > MAX_FILES_SIZE_BYTES:
        logger.warning(
            "Not sending clipboard files as %.1fMB is bigger than %.0fMB",
            size / (1024 * 1024), MAX_FILES_SIZE_BYTES / (1024 * 1024),
        )
        return None
    files_count = count_files(content.paths)
    if files_count == 0:
        logger.info("Clipboard file list contains no regular files, skipping")
        return None
    return dataclasses.replace(content, files_count=files_count)


async def handle_clipboard_change(session: SyncSession) -> bool:
    """Handle a local clipboard change and write it to the sync folder.

    Called for every clipboard change notification. Debounces, checks that
    some peer is listening, snapshots the clipboard, applies the per-kind
    toggles and echo/duplicate suppression, then writes a new artifact.

    Args:
        session: The synchronization session.

    Returns:
        True if an artifact was written.
    """
    now = session.clock()
    if (
        session.last_change_at is not None
        and now - session.last_change_at < CLIPBOARD_DEBOUNCE_SECONDS
    ):
        logger.debug("Ignoring clipboard notification within debounce window")
        return False
    session.last_change_at = now

    if await asyncio.to_thread(
        no_peers_receiving, session.sync_folder, session.host, now
    ):
        logger.info("No other computer is receiving clipboards. Skipping clipboard send...")
        return False

    try:
        content = await read_clipboard_content(session.clipboard)
    except ClipboardError as e:
        logger.error("Error reading current clipboard: %s", e)
        return False
    if content is None:
        logger.debug("Clipboard holds no supported content, skipping")
        return False

    if not session.config.sends(content.kind):
        logger.debug("Sending %s is disabled, skipping", content.kind.value)
        return False

    if not session.dedup.should_send(content, now):
        logger.debug("Skipping empty, duplicate or echo content")
        return False

    if isinstance(content, ClipboardFiles):
        prepared = await asyncio.to_thread(_prepare_files, content)
        if prepared is None:
            return False
        content = prepared

    floor = max((session.last_beat or 0) + 1, int(now * 1000))
    try:
        beat = await asyncio.to_thread(
            allocate_next_beat, session.sync_folder, session.host, floor
        )
        destination = await asyncio.to_thread(
            write_artifact, content, session.sync_folder, beat, session.host
        )
    except OSError as e:
        logger.error("Error writing clipboard to %s: %s", session.sync_folder, e)
        return False

    session.last_beat = beat
    session.dedup.record_sent(content, now)
    session.indicator.flash(IndicatorState.SENT)
    logger.info("Clipboard written to %s", destination)
    return True


async def handle_artifact_added(session: SyncSession, path: Path) -> bool:
    """Handle a new entry in the sync folder and apply it to the clipboard.

    Entries written by this host, presence markers and unrelated files are
    ignored. A FILES artifact that is still being populated is left for a
    later notification without touching any state.

    Args:
        session: The synchronization session.
        path: Path reported by the folder watcher, possibly inside an
            artifact directory.

    Returns:
        True if the local clipboard was updated.
    """
    parsed = parse_artifact_name(path, session.sync_folder, session.host, Origin.OTHERS)
    if parsed is None:
        return False

    if not session.config.receives(parsed.kind):
        logger.debug("Receiving %s is disabled, skipping %s", parsed.kind.value, parsed.path)
        return False

    try:
        incoming = await asyncio.to_thread(read_artifact, parsed)
    except ArtifactError as e:
        logger.warning("Skipping malformed artifact: %s", e)
        return False
    except OSError as e:
        logger.error("Error reading clipboard from %s: %s", parsed.path, e)
        return False
    if incoming is None:
        return False
    if incoming.is_empty():
        logger.debug("Artifact %s is empty, skipping", parsed.path)
        return False

    try:
        current = await read_clipboard_content(session.clipboard)
    except ClipboardError as e:
        logger.error("Error reading current clipboard: %s", e)
        return False

    if contents_equal(current, incoming):
        logger.debug("Clipboard already holds content of %s", parsed.path)
        return False

    if session.last_beat is not None and parsed.beat <= session.last_beat:
        logger.info(
            "Skipping reading clipboard from %s as a newer clipboard was already processed",
            parsed.path,
        )
        return False

    # Record BEFORE writing so the resulting change notification is an echo
    previous = (session.dedup.last_received, session.dedup.last_received_at)
    session.dedup.record_received(incoming, session.clock())
    try:
        write_clipboard_content(session.clipboard, incoming)
    except ClipboardError as e:
        logger.error("Error writing clipboard from %s: %s", parsed.path, e)
        session.dedup.last_received, session.dedup.last_received_at = previous
        return False

    session.last_beat = parsed.beat
    session.indicator.flash(IndicatorState.RECEIVED)
    logger.info("Clipboard was read from %s", parsed.path)
    return True
