#!/usr/bin/env python3
"""Pytest fixtures for fclipsync tests.

Provides an in-memory clipboard backend, a controllable clock, a temporary
sync folder and a ready-made synchronization session.
"""

import json
import os
import time
from pathlib import Path

import pytest

from fclipsync.clipboard_backend import (
    FORMAT_FILES,
    FORMAT_HTML,
    FORMAT_PNG,
    FORMAT_RTF,
    FORMAT_TEXT,
    ClipboardError,
)
from fclipsync.config import SyncConfig
from fclipsync.content import ClipboardFiles, ClipboardImage, ClipboardText
from fclipsync.presence import write_presence_marker
from fclipsync.sync_state import SyncSession

HOST = "alpha"
PEER = "beta"

# 2023-11-14, earlier than any file written by the tests
START_TIME = 1_700_000_000.0

# Smallest byte string that passes the PNG completeness check
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\x00IEND\xaeB`\x82"


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeClipboard:
    """In-memory clipboard backend.

    Holds one content object and records every write. Set fail_reads or
    fail_writes to make the corresponding calls raise ClipboardError.
    """

    def __init__(self, supports_files: bool = True) -> None:
        self.supports_files = supports_files
        self.content: ClipboardText | ClipboardImage | ClipboardFiles | None = None
        self.writes: list[ClipboardText | ClipboardImage | ClipboardFiles] = []
        self.fail_reads = False
        self.fail_writes = False
        self.changed = False
        self.on_readable = None

    def attach(self, loop, on_readable) -> None:
        self.on_readable = on_readable

    def detach(self) -> None:
        self.on_readable = None

    def process_pending(self) -> bool:
        changed, self.changed = self.changed, False
        return changed

    def external_copy(self, content) -> None:
        """Simulate another application copying content."""
        self.content = content
        self.changed = True
        if self.on_readable is not None:
            self.on_readable()

    def _check_read(self) -> None:
        if self.fail_reads:
            raise ClipboardError("read failed")

    async def available_formats(self) -> set[str]:
        self._check_read()
        content = self.content
        if isinstance(content, ClipboardText):
            formats = set()
            if content.text is not None:
                formats.add(FORMAT_TEXT)
            if content.html is not None:
                formats.add(FORMAT_HTML)
            if content.rtf is not None:
                formats.add(FORMAT_RTF)
            return formats
        if isinstance(content, ClipboardImage):
            return {FORMAT_PNG}
        if isinstance(content, ClipboardFiles):
            return {FORMAT_FILES, FORMAT_TEXT}
        return set()

    async def read_text(self) -> str | None:
        self._check_read()
        if isinstance(self.content, ClipboardFiles):
            return "\n".join(self.content.paths)
        return getattr(self.content, "text", None)

    async def read_html(self) -> str | None:
        self._check_read()
        return getattr(self.content, "html", None)

    async def read_rtf(self) -> str | None:
        self._check_read()
        return getattr(self.content, "rtf", None)

    async def read_image_png(self) -> bytes | None:
        self._check_read()
        return getattr(self.content, "png", None)

    async def read_file_paths(self) -> list[str] | None:
        self._check_read()
        if isinstance(self.content, ClipboardFiles):
            return list(self.content.paths)
        return None

    def _store(self, content) -> None:
        if self.fail_writes:
            raise ClipboardError("write failed")
        self.content = content
        self.writes.append(content)

    def write_text_bundle(self, text, html, rtf) -> None:
        self._store(ClipboardText(text=text, html=html, rtf=rtf))

    def write_image_png(self, data: bytes) -> None:
        self._store(ClipboardImage.from_png(data))

    def write_file_paths(self, paths: list[str]) -> None:
        self._store(ClipboardFiles(paths=tuple(paths)))


def write_peer_text(folder: Path, beat: int, text: str, host: str = PEER) -> Path:
    """Write a text artifact as a peer would."""
    path = folder / f"{beat}-{host}.text.json"
    path.write_text(json.dumps({"text": text}), encoding="utf-8")
    return path


def set_age(path: Path, seconds: float) -> None:
    """Backdate a path's modification time by seconds from now."""
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


@pytest.fixture
def clock() -> FakeClock:
    """Provide a clock starting at START_TIME."""
    return FakeClock()


@pytest.fixture
def fake_clipboard() -> FakeClipboard:
    """Provide an empty in-memory clipboard."""
    return FakeClipboard()


@pytest.fixture
def sync_folder(tmp_path: Path) -> Path:
    """Provide an empty sync folder."""
    folder = tmp_path / "sync"
    folder.mkdir()
    return folder


@pytest.fixture
def peer_receiving(sync_folder: Path) -> Path:
    """Create a fresh presence marker for the peer host."""
    write_presence_marker(sync_folder, PEER, time.time())
    return sync_folder / f"{PEER}.is-receiving.txt"


@pytest.fixture
def session(sync_folder: Path, fake_clipboard: FakeClipboard, clock: FakeClock) -> SyncSession:
    """Create a session for HOST with default settings."""
    return SyncSession(
        sync_folder=sync_folder,
        host=HOST,
        config=SyncConfig(folder=str(sync_folder)),
        clipboard=fake_clipboard,
        clock=clock,
    )
