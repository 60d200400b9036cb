#!/usr/bin/env python3
"""X11 CLIPBOARD backend.

X11Clipboard implements the clipboard capability on top of python-xlib.
It owns a hidden window, watches CLIPBOARD ownership through XFixes, reads
targets from other owners, and serves its own content when it is the owner.

While we own CLIPBOARD, reads are answered from the content we serve
instead of a round trip to ourselves: the request would arrive on the same
connection we are blocked reading from.

File lists are exchanged as text/uri-list, and also offered as
x-special/gnome-copied-files so GNOME-derived file managers can paste them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, cast
from urllib.parse import unquote, urlparse

from Xlib import X, Xatom

from fclipsync.clipboard_backend import (
    FORMAT_FILES,
    FORMAT_HTML,
    FORMAT_PNG,
    FORMAT_RTF,
    FORMAT_TEXT,
    ClipboardError,
)
from fclipsync.x11_display import (
    create_hidden_window,
    register_xfixes_events,
    take_selection_ownership,
)
from fclipsync.x11_incr import IncrTransfers, cancel_incr_sends
from fclipsync.x11_selection import (
    ServedTargets,
    drain_pending_events,
    fetch_selection_target,
    handle_selection_request,
)

if TYPE_CHECKING:
    from Xlib.display import Display
    from Xlib.protocol.event import SelectionRequest
    from Xlib.protocol.rq import Event

logger = logging.getLogger(__name__)

TEXT_TARGETS = ("UTF8_STRING", "text/plain;charset=utf-8", "STRING", "TEXT")
HTML_TARGETS = ("text/html",)
RTF_TARGETS = ("text/rtf", "application/rtf")
PNG_TARGETS = ("image/png",)
FILES_TARGETS = ("text/uri-list", "x-special/gnome-copied-files")

TARGET_FORMATS = {
    **{name: FORMAT_TEXT for name in TEXT_TARGETS},
    **{name: FORMAT_HTML for name in HTML_TARGETS},
    **{name: FORMAT_RTF for name in RTF_TARGETS},
    **{name: FORMAT_PNG for name in PNG_TARGETS},
    **{name: FORMAT_FILES for name in FILES_TARGETS},
}

PROPERTY_NAME = "FCLIPSYNC_SEL"


def decode_text_target(target: str, data: bytes) -> str:
    """Decode selection data for a text-like target."""
    if target == "STRING":
        return data.decode("latin-1")
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        # Some browsers serve text/html as UTF-16 with a BOM
        return data.decode("utf-16")
    return data.decode("utf-8", errors="replace")


def parse_uri_list(target: str, data: bytes) -> list[str]:
    """
    Extract local paths from a text/uri-list or gnome-copied-files payload.

    Comment lines and non-file URIs are skipped. The gnome format starts
    with a "copy" or "cut" line.

    Args:
        target: The target the data was read as.
        data: The raw payload.

    Returns:
        Local filesystem paths in clipboard order.
    """
    lines = data.decode("utf-8", errors="replace").splitlines()
    if target == "x-special/gnome-copied-files" and lines:
        lines = lines[1:]
    paths = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        uri = urlparse(line)
        if uri.scheme != "file":
            logger.debug("Skipping non-local URI %s", line)
            continue
        paths.append(unquote(uri.path))
    return paths


def format_uri_list(paths: list[str]) -> bytes:
    return "".join(Path(p).absolute().as_uri() + "\r\n" for p in paths).encode()


def format_gnome_copied_files(paths: list[str]) -> bytes:
    uris = [Path(p).absolute().as_uri() for p in paths]
    return "\n".join(["copy", *uris]).encode()


class X11Clipboard:
    """CLIPBOARD access through an X11 display connection."""

    supports_files = True

    def __init__(self, display: Display) -> None:
        self.display = display
        self.window = create_hidden_window(display)
        self.selection_atom = display.intern_atom("CLIPBOARD")
        self.property_atom = display.intern_atom(PROPERTY_NAME)
        self.served: ServedTargets = {}
        self.acquisition_time: int | None = None
        self.deferred_events: list[Event] = []
        self.transfers: IncrTransfers = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_readable: Callable[[], None] | None = None
        self._signaled = False
        register_xfixes_events(display, self.window, self.selection_atom)

    def _atom(self, name: str) -> int:
        return self.display.intern_atom(name)

    def attach(self, loop: asyncio.AbstractEventLoop, on_readable: Callable[[], None]) -> None:
        """
        Integrate the display connection into the event loop.

        on_readable is called once whenever X11 events are waiting, and not
        again until process_pending has run.

        Args:
            loop: The running event loop.
            on_readable: Callback that schedules a process_pending call.
        """
        self._loop = loop
        self._on_readable = on_readable
        loop.add_reader(self.display.fileno(), self._signal)
        # Events may already be buffered from setup
        if self.display.pending_events() > 0:
            self._signal()

    def detach(self) -> None:
        if self._loop is not None:
            self._loop.remove_reader(self.display.fileno())
        self._loop = None
        self._on_readable = None

    def _signal(self) -> None:
        if self._signaled or self._on_readable is None:
            return
        self._signaled = True
        self._on_readable()

    def close(self) -> None:
        """Release the display connection."""
        self.detach()
        cancel_incr_sends(self.display, self.transfers)
        try:
            self.window.destroy()
            self.display.close()
        except Exception as e:
            logger.debug("Error closing display: %s", e)

    def process_pending(self) -> bool:
        """
        Process X11 events that have arrived.

        Serves SelectionRequests and tracks ownership.

        Returns:
            True if another application took ownership of CLIPBOARD.
        """
        self._signaled = False
        changed = False
        events = drain_pending_events(self.display, self.deferred_events, self.transfers)
        for event in events:
            if event.type == X.SelectionRequest:
                try:
                    handle_selection_request(
                        self.display,
                        cast("SelectionRequest", event),
                        self.served,
                        self.acquisition_time,
                        self.transfers,
                    )
                except Exception as e:
                    logger.warning("Failed to answer selection request: %s", e)
            elif event.selection == self.selection_atom:
                if event.owner and event.owner.id == self.window.id:
                    self.acquisition_time = event.selection_timestamp
                else:
                    self.acquisition_time = None
                    self.served = {}
                    changed = True
        return changed

    def owns_selection(self) -> bool:
        return bool(self.served) and self.acquisition_time is not None

    async def _fetch(self, target: str) -> tuple[int, bytes | list[int]] | None:
        if self.owns_selection():
            return self.served.get(self._atom(target))
        owner = self.display.get_selection_owner(self.selection_atom)
        if owner == X.NONE:
            return None
        try:
            return await asyncio.to_thread(
                fetch_selection_target,
                self.display,
                self.window,
                self.selection_atom,
                self._atom(target),
                self.property_atom,
                self.deferred_events,
            )
        except TimeoutError as e:
            raise ClipboardError(f"Timed out reading {target} from clipboard owner") from e
        except Exception as e:
            raise ClipboardError(f"Failed to read {target}: {e}") from e
        finally:
            if self.deferred_events:
                self._signal()

    async def _fetch_bytes(self, targets: tuple[str, ...]) -> tuple[str, bytes] | None:
        """Read the first target of targets the owner provides."""
        offered = await self._offered_targets()
        for target in targets:
            if target not in offered:
                continue
            result = await self._fetch(target)
            if result is None:
                continue
            _, value = result
            if isinstance(value, list):
                continue
            return target, value
        return None

    async def _offered_targets(self) -> set[str]:
        if self.owns_selection():
            return {self.display.get_atom_name(atom) for atom in self.served}
        result = await self._fetch("TARGETS")
        if result is None:
            return set()
        type_atom, value = result
        if type_atom != Xatom.ATOM or not isinstance(value, list):
            return set()
        names = set()
        for atom in value:
            try:
                names.add(self.display.get_atom_name(atom))
            except Exception:
                logger.debug("Owner offered unknown atom %s", atom)
        return names

    async def available_formats(self) -> set[str]:
        offered = await self._offered_targets()
        return {TARGET_FORMATS[name] for name in offered if name in TARGET_FORMATS}

    async def _read_decoded(self, targets: tuple[str, ...]) -> str | None:
        fetched = await self._fetch_bytes(targets)
        if fetched is None:
            return None
        target, data = fetched
        return decode_text_target(target, data)

    async def read_text(self) -> str | None:
        return await self._read_decoded(TEXT_TARGETS)

    async def read_html(self) -> str | None:
        return await self._read_decoded(HTML_TARGETS)

    async def read_rtf(self) -> str | None:
        return await self._read_decoded(RTF_TARGETS)

    async def read_image_png(self) -> bytes | None:
        fetched = await self._fetch_bytes(PNG_TARGETS)
        return fetched[1] if fetched else None

    async def read_file_paths(self) -> list[str] | None:
        fetched = await self._fetch_bytes(FILES_TARGETS)
        if fetched is None:
            return None
        paths = parse_uri_list(*fetched)
        return paths or None

    def _serve(self, served: dict[str, tuple[int, bytes]]) -> None:
        """Take CLIPBOARD ownership and serve the given targets."""
        self.served = {self._atom(name): value for name, value in served.items()}
        if not take_selection_ownership(self.display, self.window, self.selection_atom):
            self.served = {}
            raise ClipboardError("Failed to acquire CLIPBOARD ownership")
        # Until XFixes reports the exact time, any non-None value marks ownership
        if self.acquisition_time is None:
            self.acquisition_time = X.CurrentTime

    def write_text_bundle(
        self, text: str | None, html: str | None, rtf: str | None
    ) -> None:
        served: dict[str, tuple[int, bytes]] = {}
        if text:
            data = text.encode("utf-8")
            served["UTF8_STRING"] = (self._atom("UTF8_STRING"), data)
            served["text/plain;charset=utf-8"] = (self._atom("text/plain;charset=utf-8"), data)
            served["STRING"] = (Xatom.STRING, text.encode("latin-1", errors="replace"))
        if html:
            served["text/html"] = (self._atom("text/html"), html.encode("utf-8"))
        if rtf:
            data = rtf.encode("utf-8")
            served["text/rtf"] = (self._atom("text/rtf"), data)
            served["application/rtf"] = (self._atom("application/rtf"), data)
        if not served:
            raise ClipboardError("Nothing to write")
        self._serve(served)

    def write_image_png(self, data: bytes) -> None:
        self._serve({"image/png": (self._atom("image/png"), data)})

    def write_file_paths(self, paths: list[str]) -> None:
        text = "\n".join(paths).encode("utf-8")
        self._serve({
            "text/uri-list": (self._atom("text/uri-list"), format_uri_list(paths)),
            "x-special/gnome-copied-files": (
                self._atom("x-special/gnome-copied-files"),
                format_gnome_copied_files(paths),
            ),
            "UTF8_STRING": (self._atom("UTF8_STRING"), text),
        })
