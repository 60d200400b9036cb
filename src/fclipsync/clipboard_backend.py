#!/usr/bin/env python3
"""Clipboard capability consumed by the synchronization engine.

The engine never talks to a windowing system directly. It reads and writes
the clipboard through an object implementing ClipboardBackend; the X11
implementation lives in x11_clipboard, tests use an in-memory fake.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import asyncio

FORMAT_TEXT = "text/plain"
FORMAT_HTML = "text/html"
FORMAT_RTF = "text/rtf"
FORMAT_PNG = "image/png"
FORMAT_FILES = "text/uri-list"


class ClipboardError(Exception):
    """
    Exception raised when the platform clipboard cannot be read or written.

    Always recoverable: the send or receive attempt that hit it is dropped.
    """

    pass


class ClipboardBackend(Protocol):
    """Read/write access to the local clipboard.

    Reads are coroutines because fetching a selection from another
    application is a round trip. Writes take effect immediately from the
    caller's point of view.

    Attributes:
        supports_files: False on platforms without file-list clipboard support.
    """

    supports_files: bool

    def attach(
        self, loop: asyncio.AbstractEventLoop, on_readable: Callable[[], None]
    ) -> None:
        ...

    def detach(self) -> None:
        ...

    def process_pending(self) -> bool:
        """Handle queued platform events; True if another app changed the clipboard."""
        ...

    async def available_formats(self) -> set[str]:
        ...

    async def read_text(self) -> str | None:
        ...

    async def read_html(self) -> str | None:
        ...

    async def read_rtf(self) -> str | None:
        ...

    async def read_image_png(self) -> bytes | None:
        ...

    async def read_file_paths(self) -> list[str] | None:
        ...

    def write_text_bundle(
        self, text: str | None, html: str | None, rtf: str | None
    ) -> None:
        ...

    def write_image_png(self, data: bytes) -> None:
        ...

    def write_file_paths(self, paths: list[str]) -> None:
        ...
