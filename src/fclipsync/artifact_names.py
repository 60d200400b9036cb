#!/usr/bin/env python3
"""
Artifact file naming for the shared sync folder.

Every clipboard snapshot is stored as one top-level entry of the sync folder
whose name carries everything a reader needs to order and attribute it:

    <beat>-<host>.text.json      text bundle (JSON)
    <beat>-<host>.png            PNG image
    <beat>-<host>.<count>_files  directory holding <count> files

The beat is a positive integer without leading zeros that orders snapshots;
the host is the writer's identity. Anything not matching this grammar is not
an artifact and is ignored by the receive path.
"""

from __future__ import annotations

import enum
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

ARTIFACT_NAME_PATTERN = re.compile(
    r"^([1-9][0-9]*)-([0-9a-zA-Z-]+)\.((text\.json)|png|([1-9][0-9]*)_files)$"
)

HOST_PATTERN = re.compile(r"^[0-9a-zA-Z-]+$")

# OneDrive writes ~RFxxxx.TMP files next to the real ones while uploading.
SUBSTRATE_TEMP_PATTERN = re.compile(r"~.*\.TMP$", re.IGNORECASE)


class ArtifactError(Exception):
    """
    Exception raised for malformed artifacts.

    Raised when an entry matches the artifact grammar but its contents
    cannot be decoded (invalid JSON, unexpected fields, unreadable data).
    """

    pass


class ArtifactKind(enum.Enum):
    """Kind of clipboard content stored in an artifact."""

    TEXT = "text"
    IMAGE = "image"
    FILES = "files"


class Origin(enum.Enum):
    """Whether an artifact was written by this host or by a peer."""

    MYSELF = "myself"
    OTHERS = "others"


@dataclass(frozen=True)
class ParsedArtifact:
    """
    Structured form of an artifact name.

    Attributes:
        path: Full path of the top-level entry in the sync folder.
        beat: Logical clock value encoded in the name.
        kind: Kind of content stored.
        origin: Whether the entry was written by this host.
        files_count: Declared number of files for FILES artifacts.
    """

    path: Path
    beat: int
    kind: ArtifactKind
    origin: Origin
    files_count: int | None = None


def format_artifact_name(
    beat: int, host: str, kind: ArtifactKind, files_count: int | None = None
) -> str:
    """
    Build the top-level entry name for an artifact.

    Args:
        beat: Positive logical clock value.
        host: Writer identity, restricted to [0-9a-zA-Z-].
        kind: Kind of content.
        files_count: Number of files, required for FILES.

    Returns:
        The entry name, e.g. "12-desktop.text.json".

    Raises:
        ValueError: If any field cannot be represented in the grammar.
    """
    if beat < 1:
        raise ValueError(f"Beat must be positive, got {beat}")
    if not HOST_PATTERN.match(host):
        raise ValueError(f"Host identity {host!r} contains unsupported characters")
    if kind is ArtifactKind.TEXT:
        return f"{beat}-{host}.text.json"
    if kind is ArtifactKind.IMAGE:
        return f"{beat}-{host}.png"
    if files_count is None or files_count < 1:
        raise ValueError(f"File artifacts need a positive count, got {files_count}")
    return f"{beat}-{host}.{files_count}_files"


def parse_artifact_name(
    path: str | os.PathLike[str],
    sync_folder: str | os.PathLike[str],
    host: str,
    origin_filter: Origin | None = None,
) -> ParsedArtifact | None:
    """
    Parse a path inside the sync folder as an artifact.

    Only the first path segment relative to the sync folder is considered,
    so files inside a FILES directory resolve to the directory itself.

    Args:
        path: Any path at or below the sync folder.
        sync_folder: The sync folder.
        host: This host's identity, used to determine the origin.
        origin_filter: If given, artifacts of the other origin yield None.

    Returns:
        The parsed artifact, or None if the path is not an artifact or is
        filtered out.
    """
    try:
        relative = Path(path).relative_to(sync_folder)
    except ValueError:
        return None
    if not relative.parts:
        return None
    base_name = relative.parts[0]

    match = ARTIFACT_NAME_PATTERN.match(base_name)
    if match is None:
        return None

    beat = int(match.group(1))
    origin = Origin.MYSELF if match.group(2) == host else Origin.OTHERS
    if origin_filter is not None and origin is not origin_filter:
        return None

    files_count = None
    if match.group(5):
        kind = ArtifactKind.FILES
        files_count = int(match.group(5))
    elif match.group(4):
        kind = ArtifactKind.TEXT
    else:
        kind = ArtifactKind.IMAGE

    return ParsedArtifact(
        path=Path(sync_folder) / base_name,
        beat=beat,
        kind=kind,
        origin=origin,
        files_count=files_count,
    )


def allocate_next_beat(
    sync_folder: str | os.PathLike[str], host: str, floor: int = 1
) -> int:
    """
    Return the beat for the next artifact written to the sync folder.

    Scans the folder and returns one more than the highest beat of any
    artifact, from any host. Two hosts allocating at the same time can get
    the same beat; a receiver applies whichever of them it reads first.

    Args:
        sync_folder: The sync folder.
        host: This host's identity.
        floor: Minimum value to return.

    Returns:
        The next beat, at least 1 and at least floor.
    """
    highest = 0
    for name in os.listdir(sync_folder):
        parsed = parse_artifact_name(Path(sync_folder) / name, sync_folder, host)
        if parsed is not None and parsed.beat > highest:
            highest = parsed.beat
    return max(highest + 1, floor, 1)


def is_substrate_temp_file(name: str) -> bool:
    """
    Check whether a name is a sync client's temporary file.

    Args:
        name: Entry name (not a full path).

    Returns:
        True for names like "~RF1a2b3c.TMP" that must be ignored.
    """
    return SUBSTRATE_TEMP_PATTERN.search(name) is not None


def normalize_host(raw_hostname: str) -> str:
    """
    Reduce a network name to the host identity used in artifact names.

    Keeps the part before the first dot and replaces characters outside the
    allowed set with "-".

    Args:
        raw_hostname: Name as reported by the OS, e.g. "desk.example.org".

    Returns:
        The host identity, e.g. "desk".
    """
    short = raw_hostname.split(".", 1)[0]
    cleaned = re.sub(r"[^0-9a-zA-Z-]", "-", short)
    if cleaned != short:
        logger.warning("Host name %r normalized to %r", short, cleaned)
    return cleaned or "localhost"
