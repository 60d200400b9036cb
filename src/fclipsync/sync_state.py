#!/usr/bin/env python3
"""Synchronization session state.

This module provides the SyncSession dataclass that groups all state needed
by the send and receive paths. A session is created when the engines start
and dropped when they stop or suspend; nothing here is persisted.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from fclipsync.dedup_state import DedupState
from fclipsync.indicator import Indicator

if TYPE_CHECKING:
    from fclipsync.clipboard_backend import ClipboardBackend
    from fclipsync.config import SyncConfig


@dataclass
class SyncSession:
    """State for clipboard synchronization through a shared folder.

    Attributes:
        sync_folder: The shared folder used as transport.
        host: This host's identity.
        config: Snapshot of the user configuration.
        clipboard: The clipboard backend.
        indicator: Indicator flashed on send and receive.
        dedup: Recently sent and received content for loop prevention.
        last_beat: Highest beat sent or applied by this host, or None.
        last_change_at: Time of the last accepted clipboard notification,
            for debouncing.
        clock: Wall-clock source in seconds; replaced in tests.
    """

    sync_folder: Path
    host: str
    config: SyncConfig
    clipboard: ClipboardBackend
    indicator: Indicator = field(default_factory=Indicator)
    dedup: DedupState = field(default_factory=DedupState)
    last_beat: int | None = None
    last_change_at: float | None = None
    clock: Callable[[], float] = time.time
