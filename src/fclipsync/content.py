#!/usr/bin/env python3
"""
Clipboard content model.

Three kinds of content are synchronized, each with its own notion of
equality and emptiness used for duplicate suppression:

- ClipboardText: plain, HTML and RTF representations, each optional. Two
  texts are equal when any representation present on both sides matches.
- ClipboardImage: PNG bytes, compared by SHA-256 digest.
- ClipboardFiles: file paths, compared without regard to order.

This module also converts content to and from artifacts in the sync folder
and to and from the local clipboard.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, assert_never

from fclipsync.artifact_names import (
    ArtifactError,
    ArtifactKind,
    ParsedArtifact,
    format_artifact_name,
)
from fclipsync.clipboard_backend import (
    FORMAT_FILES,
    FORMAT_HTML,
    FORMAT_PNG,
    FORMAT_RTF,
    FORMAT_TEXT,
)
from fclipsync.file_utils import copy_into, count_files, delete_recursively
from fclipsync.hashing import EMPTY_HASH, compute_hash

if TYPE_CHECKING:
    from fclipsync.clipboard_backend import ClipboardBackend

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("text", "html", "rtf")

# PNG files start with this signature and end with an IEND chunk (length, type, CRC)
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PNG_TRAILER = b"\x00\x00\x00\x00IEND\xaeB`\x82"


@dataclass(frozen=True)
class ClipboardText:
    """Text bundle with up to three representations."""

    text: str | None = None
    html: str | None = None
    rtf: str | None = None

    kind = ArtifactKind.TEXT

    def is_empty(self) -> bool:
        return not self.text and not self.html and not self.rtf

    def matches(self, other: ClipboardText) -> bool:
        """Return True if any representation present on both sides is equal."""
        for name in TEXT_FIELDS:
            mine = getattr(self, name)
            theirs = getattr(other, name)
            if mine and theirs and mine == theirs:
                return True
        return False


@dataclass(frozen=True)
class ClipboardImage:
    """PNG image with its digest."""

    png: bytes = field(repr=False)
    sha256: str = ""

    kind = ArtifactKind.IMAGE

    @classmethod
    def from_png(cls, png: bytes) -> ClipboardImage:
        return cls(png=png, sha256=compute_hash(png))

    def is_empty(self) -> bool:
        return self.sha256 == EMPTY_HASH

    def matches(self, other: ClipboardImage) -> bool:
        return self.sha256 == other.sha256


@dataclass(frozen=True)
class ClipboardFiles:
    """List of absolute file paths.

    Attributes:
        paths: Top-level files or directories on the clipboard.
        files_count: Number of regular files below paths, counted
            recursively. Only meaningful once computed by the send path or
            read back from an artifact name.
    """

    paths: tuple[str, ...]
    files_count: int = 0

    kind = ArtifactKind.FILES

    def is_empty(self) -> bool:
        return len(self.paths) == 0

    def matches(self, other: ClipboardFiles) -> bool:
        return sorted(self.paths) == sorted(other.paths)


ClipboardContent = ClipboardText | ClipboardImage | ClipboardFiles


def contents_equal(
    first: ClipboardContent | None, second: ClipboardContent | None
) -> bool:
    """
    Compare two contents with the equality rule of their kind.

    Args:
        first: Content, or None.
        second: Content, or None.

    Returns:
        False if either side is None or the kinds differ.
    """
    if first is None or second is None:
        return False
    if isinstance(first, ClipboardText):
        return isinstance(second, ClipboardText) and first.matches(second)
    if isinstance(first, ClipboardImage):
        return isinstance(second, ClipboardImage) and first.matches(second)
    if isinstance(first, ClipboardFiles):
        return isinstance(second, ClipboardFiles) and first.matches(second)
    assert_never(first)


def _write_atomically(destination: Path, data: bytes) -> None:
    """Write data to a hidden temporary name, then rename it into place.

    The temporary name starts with a dot so it never parses as an artifact.
    """
    temporary = destination.with_name(f".{destination.name}.partial")
    temporary.write_bytes(data)
    os.replace(temporary, destination)


def write_artifact(
    content: ClipboardContent, sync_folder: Path, beat: int, host: str
) -> Path:
    """
    Serialize content into a new artifact in the sync folder.

    FILES artifacts are assembled in a hidden staging directory and renamed
    into place once every source is copied. The count in the name is taken
    from the staged copy, so it always matches what readers will find once
    the sync client has delivered the whole directory.

    Args:
        content: Content to write.
        sync_folder: The sync folder.
        beat: Beat allocated for this artifact.
        host: This host's identity.

    Returns:
        Path of the created artifact.

    Raises:
        OSError: If writing fails or a file could not be copied. Nothing is
            left in the sync folder in that case.
    """
    if isinstance(content, ClipboardText):
        destination = sync_folder / format_artifact_name(beat, host, content.kind)
        payload = {
            name: getattr(content, name)
            for name in TEXT_FIELDS
            if getattr(content, name) is not None
        }
        _write_atomically(destination, json.dumps(payload, indent=2).encode("utf-8"))
    elif isinstance(content, ClipboardImage):
        destination = sync_folder / format_artifact_name(beat, host, content.kind)
        _write_atomically(destination, content.png)
    elif isinstance(content, ClipboardFiles):
        staging = sync_folder / f".{beat}-{host}.partial"
        staging.mkdir()
        try:
            for source in content.paths:
                copy_into(source, staging)
            copied = count_files([staging])
            if copied == 0:
                raise OSError(f"No regular files were copied into {staging}")
            destination = sync_folder / format_artifact_name(
                beat, host, content.kind, copied
            )
            os.replace(staging, destination)
        except OSError:
            delete_recursively(staging)
            raise
    else:
        assert_never(content)
    return destination


def is_complete_png(data: bytes) -> bool:
    """Check for the PNG signature and a trailing IEND chunk."""
    return data.startswith(PNG_SIGNATURE) and data.endswith(PNG_TRAILER)


def _decode_text(data: bytes, path: Path) -> ClipboardText:
    """Decode a text artifact's JSON payload."""
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArtifactError(f"Invalid text artifact {path}: {e}") from e
    if not isinstance(payload, dict):
        raise ArtifactError(f"Invalid text artifact {path}: not a JSON object")
    values = {}
    for name in TEXT_FIELDS:
        value = payload.get(name)
        if value is not None and not isinstance(value, str):
            raise ArtifactError(f"Invalid text artifact {path}: {name} is not a string")
        values[name] = value
    return ClipboardText(**values)


def read_artifact(parsed: ParsedArtifact) -> ClipboardContent | None:
    """
    Deserialize an artifact from the sync folder.

    Args:
        parsed: Parsed artifact name.

    Returns:
        The content, or None if the artifact has not fully arrived yet: a
        FILES artifact with fewer files than its name announces, or an
        IMAGE artifact without a complete PNG structure.

    Raises:
        ArtifactError: If the artifact is malformed.
        OSError: If reading fails (the entry may have been deleted).
    """
    if parsed.kind is ArtifactKind.TEXT:
        return _decode_text(parsed.path.read_bytes(), parsed.path)
    if parsed.kind is ArtifactKind.IMAGE:
        data = parsed.path.read_bytes()
        if not is_complete_png(data):
            logger.info(
                "Image %s is not completely written yet (%d bytes)", parsed.path, len(data)
            )
            return None
        return ClipboardImage.from_png(data)
    if parsed.kind is ArtifactKind.FILES:
        if parsed.files_count is None:
            raise ArtifactError(f"Missing files count for {parsed.path}")
        present = count_files([parsed.path])
        if present != parsed.files_count:
            logger.info(
                "Not all files are yet present in %s. Current: %d, expected: %d",
                parsed.path, present, parsed.files_count,
            )
            return None
        paths = tuple(sorted(str(entry) for entry in parsed.path.iterdir()))
        return ClipboardFiles(paths=paths, files_count=present)
    assert_never(parsed.kind)


async def read_clipboard_content(
    clipboard: ClipboardBackend,
) -> ClipboardContent | None:
    """
    Snapshot the local clipboard.

    File lists are checked before images, and images before text, because
    some platforms also offer a text representation for richer content.

    Args:
        clipboard: The clipboard backend.

    Returns:
        The content, or None if the clipboard holds nothing supported.

    Raises:
        ClipboardError: If the backend fails.
    """
    formats = await clipboard.available_formats()

    if clipboard.supports_files and FORMAT_FILES in formats:
        paths = await clipboard.read_file_paths()
        if paths:
            return ClipboardFiles(paths=tuple(paths))

    if FORMAT_PNG in formats:
        png = await clipboard.read_image_png()
        if png is not None:
            return ClipboardImage.from_png(png)

    if formats & {FORMAT_TEXT, FORMAT_HTML, FORMAT_RTF}:
        return ClipboardText(
            text=await clipboard.read_text() if FORMAT_TEXT in formats else None,
            html=await clipboard.read_html() if FORMAT_HTML in formats else None,
            rtf=await clipboard.read_rtf() if FORMAT_RTF in formats else None,
        )

    logger.debug("Unsupported clipboard formats: %s", ", ".join(sorted(formats)))
    return None


def write_clipboard_content(
    clipboard: ClipboardBackend, content: ClipboardContent
) -> None:
    """
    Replace the local clipboard with content.

    Args:
        clipboard: The clipboard backend.
        content: Content to set.

    Raises:
        ClipboardError: If the backend fails.
    """
    if isinstance(content, ClipboardText):
        clipboard.write_text_bundle(content.text, content.html, content.rtf)
    elif isinstance(content, ClipboardImage):
        clipboard.write_image_png(content.png)
    elif isinstance(content, ClipboardFiles):
        clipboard.write_file_paths(list(content.paths))
    else:
        assert_never(content)
