#!/usr/bin/env python3
"""Tests for sync folder watching."""
import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from conftest import HOST, PEER
from fclipsync.folder_watch import ArtifactEventHandler, FolderWatcher


@pytest.fixture
def mock_loop() -> MagicMock:
    return MagicMock()


@pytest.fixture
def handler(sync_folder: Path, mock_loop: MagicMock) -> ArtifactEventHandler:
    return ArtifactEventHandler(sync_folder, HOST, mock_loop, MagicMock())


class TestArtifactEventHandler:
    """Tests for filtering of watchdog events."""

    def test_peer_artifact_is_forwarded(
        self, handler: ArtifactEventHandler, sync_folder: Path, mock_loop: MagicMock
    ) -> None:
        path = sync_folder / f"5-{PEER}.text.json"
        handler.on_created(FileCreatedEvent(str(path)))
        mock_loop.call_soon_threadsafe.assert_called_once_with(handler.on_artifact, path)

    def test_file_inside_peer_bundle_is_forwarded(
        self, handler: ArtifactEventHandler, sync_folder: Path, mock_loop: MagicMock
    ) -> None:
        path = sync_folder / f"5-{PEER}.1_files" / "a.txt"
        handler.on_modified(FileModifiedEvent(str(path)))
        mock_loop.call_soon_threadsafe.assert_called_once()

    def test_own_artifact_is_ignored(
        self, handler: ArtifactEventHandler, sync_folder: Path, mock_loop: MagicMock
    ) -> None:
        handler.on_created(FileCreatedEvent(str(sync_folder / f"5-{HOST}.png")))
        mock_loop.call_soon_threadsafe.assert_not_called()

    def test_temp_files_are_ignored(
        self, handler: ArtifactEventHandler, sync_folder: Path, mock_loop: MagicMock
    ) -> None:
        handler.on_created(FileCreatedEvent(str(sync_folder / f".5-{PEER}.png.partial")))
        bundle = sync_folder / f"5-{PEER}.1_files"
        handler.on_created(FileCreatedEvent(str(bundle / "~RF1a2b3c.TMP")))
        mock_loop.call_soon_threadsafe.assert_not_called()

    def test_folder_itself_is_ignored(
        self, handler: ArtifactEventHandler, sync_folder: Path, mock_loop: MagicMock
    ) -> None:
        handler.on_created(DirCreatedEvent(str(sync_folder)))
        mock_loop.call_soon_threadsafe.assert_not_called()

    def test_move_uses_destination(
        self, handler: ArtifactEventHandler, sync_folder: Path, mock_loop: MagicMock
    ) -> None:
        src = sync_folder / f".5-{PEER}.png.partial"
        dest = sync_folder / f"5-{PEER}.png"
        handler.on_moved(FileMovedEvent(str(src), str(dest)))
        mock_loop.call_soon_threadsafe.assert_called_once_with(handler.on_artifact, dest)

    def test_closed_loop_is_tolerated(
        self, handler: ArtifactEventHandler, sync_folder: Path, mock_loop: MagicMock
    ) -> None:
        mock_loop.call_soon_threadsafe.side_effect = RuntimeError("Event loop is closed")
        handler.on_created(FileCreatedEvent(str(sync_folder / f"5-{PEER}.png")))


class TestFolderWatcher:
    """Tests for FolderWatcher using the polling observer."""

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, sync_folder: Path) -> None:
        watcher = FolderWatcher(sync_folder, HOST, MagicMock(), mode="polling")
        loop = asyncio.get_running_loop()

        watcher.start(loop)
        observer = watcher._observer
        watcher.start(loop)
        assert watcher._observer is observer
        assert watcher.running

        await asyncio.to_thread(watcher.stop)
        await asyncio.to_thread(watcher.stop)
        assert not watcher.running

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_new_peer_artifact_is_reported(self, sync_folder: Path) -> None:
        seen: asyncio.Queue[Path] = asyncio.Queue()
        watcher = FolderWatcher(sync_folder, HOST, seen.put_nowait, mode="native")
        watcher.start(asyncio.get_running_loop())
        try:
            path = sync_folder / f"7-{PEER}.text.json"
            path.write_text('{"text": "x"}')
            reported = await asyncio.wait_for(seen.get(), timeout=10)
        finally:
            await asyncio.to_thread(watcher.stop)

        assert reported == path
