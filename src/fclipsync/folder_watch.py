#!/usr/bin/env python3
"""Sync folder watching.

Wraps a watchdog observer and forwards paths that may belong to a peer's
artifact to the asyncio event loop. watchdog delivers events on its own
thread, so paths are handed over with call_soon_threadsafe and all further
processing happens on the loop.

Two modes are supported:
- native: the platform's file notification API (inotify, FSEvents, ...)
- polling: periodic directory scans, for network and FUSE mounts whose
  sync clients do not produce native events
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from fclipsync.artifact_names import Origin, is_substrate_temp_file, parse_artifact_name
from fclipsync.constants import POLLING_WATCH_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class ArtifactEventHandler(FileSystemEventHandler):
    """Filters watchdog events down to paths inside peers' artifacts."""

    def __init__(
        self,
        sync_folder: Path,
        host: str,
        loop: asyncio.AbstractEventLoop,
        on_artifact: Callable[[Path], None],
    ) -> None:
        super().__init__()
        self.sync_folder = sync_folder
        self.host = host
        self.loop = loop
        self.on_artifact = on_artifact

    def on_created(self, event: FileCreatedEvent | DirCreatedEvent) -> None:
        self._forward(event.src_path)

    def on_modified(self, event: FileModifiedEvent | DirModifiedEvent) -> None:
        self._forward(event.src_path)

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        self._forward(event.dest_path)

    def _forward(self, raw_path: str | bytes) -> None:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode(errors="replace")
        path = Path(raw_path)
        if path == self.sync_folder:
            return
        if is_substrate_temp_file(path.name):
            return
        parsed = parse_artifact_name(path, self.sync_folder, self.host, Origin.OTHERS)
        if parsed is None:
            return
        try:
            self.loop.call_soon_threadsafe(self.on_artifact, path)
        except RuntimeError:
            logger.debug("Event loop closed, dropping %s", path)


class FolderWatcher:
    """Watches the sync folder recursively for peers' artifacts."""

    def __init__(
        self,
        sync_folder: Path,
        host: str,
        on_artifact: Callable[[Path], None],
        mode: str = "native",
    ) -> None:
        self.sync_folder = sync_folder
        self.host = host
        self.on_artifact = on_artifact
        self.mode = mode
        self._observer: Observer | PollingObserver | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        Start watching. Calling start on a running watcher does nothing.

        Args:
            loop: Loop on which on_artifact is called.
        """
        if self._observer is not None:
            return
        if self.mode == "polling":
            observer = PollingObserver(timeout=POLLING_WATCH_INTERVAL_SECONDS)
        else:
            observer = Observer()
        handler = ArtifactEventHandler(self.sync_folder, self.host, loop, self.on_artifact)
        observer.schedule(handler, str(self.sync_folder), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s (%s mode)", self.sync_folder, self.mode)

    def stop(self) -> None:
        """Stop watching and wait for the observer thread to exit."""
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        observer.join(timeout=10)
        logger.info("Stopped watching %s", self.sync_folder)
