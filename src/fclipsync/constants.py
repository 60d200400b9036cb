#!/usr/bin/env python3
"""Timing and size constants for folder-based clipboard synchronization.

All durations are in seconds unless the name says otherwise.
"""

# Quiet window after a clipboard notification; the OS may fire several
# notifications for a single copy.
CLIPBOARD_DEBOUNCE_SECONDS: float = 0.5

# Delay after a clipboard notification before reading, so the owner has
# finished publishing all of its targets.
CLIPBOARD_WRITE_DELAY_SECONDS: float = 0.1

# Delay after a folder notification before reading the artifact.
ARTIFACT_SETTLE_DELAY_SECONDS: float = 0.2

# Content received within this window is never sent back.
FEEDBACK_WINDOW_SECONDS: float = 5.0

# Content sent within this window is not sent again.
RESEND_WINDOW_SECONDS: float = 10.0

# File lists larger than this are not sent.
MAX_FILES_SIZE_BYTES: int = 100 * 1024 * 1024

# Presence marker renewal interval.
PRESENCE_REFRESH_SECONDS: float = 4 * 60

# Peer presence markers older than this are treated as absent.
PRESENCE_STALE_SECONDS: float = 10 * 60

# Upper bound for removing our own presence marker on shutdown.
PRESENCE_REMOVE_TIMEOUT_SECONDS: float = 2.0

# Retention sweeper period.
CLEAN_INTERVAL_SECONDS: float = 60.0

# Artifacts written by this host are deleted after this age.
SELF_ARTIFACT_TTL_SECONDS: float = 5 * 60

# Artifacts written by other hosts are deleted after this age.
PEER_ARTIFACT_TTL_SECONDS: float = 10 * 60

# Peer artifacts older than this are unpinned from local disk where supported.
UNPIN_AFTER_SECONDS: float = 60.0

# Sent/received indicator duration before reverting to working.
INDICATOR_FLASH_SECONDS: float = 5.0

# System idle time after which sending and receiving are suspended.
IDLE_THRESHOLD_SECONDS: float = 15 * 60

# Idle query period.
IDLE_POLL_SECONDS: float = 5.0

# Agent housekeeping tick.
TICK_SECONDS: float = 1.0

# Folder availability is re-checked on this period.
FOLDER_CHECK_SECONDS: float = 30.0

# After starting a sync command the folder is checked every tick for this long.
SYNC_COMMAND_WAIT_SECONDS: float = 15.0

# Polling observer interval for the polling watch mode.
POLLING_WATCH_INTERVAL_SECONDS: float = 2.0

# Retry parameters for waiting on the sync folder to become available.
# Initial delay between availability checks in seconds.
FOLDER_INITIAL_WAIT: float = 1.0

# Maximum delay between availability checks in seconds.
FOLDER_MAX_WAIT: float = 30.0

# Multiplier for exponential backoff (delay = initial * multiplier^attempt).
FOLDER_WAIT_MULTIPLIER: float = 2.0
