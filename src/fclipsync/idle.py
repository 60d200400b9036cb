#!/usr/bin/env python3
"""System idle detection.

While nobody is at the machine there is nothing to send, and keeping the
presence marker fresh only makes peers write artifacts for us that the sync
client then has to download. The IdleController turns periodic idle-time
readings into SUSPEND/RESUME transitions for the agent.

Idle time is read from the X11 MIT-SCREEN-SAVER extension.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from fclipsync.constants import IDLE_THRESHOLD_SECONDS

if TYPE_CHECKING:
    from Xlib.display import Display

logger = logging.getLogger(__name__)


class IdleState(enum.Enum):
    ACTIVE = "active"
    IDLE = "idle"
    UNKNOWN = "unknown"


class Transition(enum.Enum):
    SUSPEND = "suspend"
    RESUME = "resume"


def query_idle_seconds(display: Display) -> float | None:
    """Return seconds since the last user input, or None if unavailable.

    Args:
        display: The X11 display connection.
    """
    try:
        if not display.has_extension("MIT-SCREEN-SAVER"):
            return None
        info = display.screen().root.screensaver_query_info()
        return info.idle / 1000.0
    except Exception as e:
        logger.error("Failed to get idle time: %s", e)
        return None


class IdleController:
    """Two-state machine deciding when to suspend and resume syncing."""

    def __init__(self, threshold: float = IDLE_THRESHOLD_SECONDS) -> None:
        self.threshold = threshold
        self.state = IdleState.ACTIVE

    def classify(self, idle_seconds: float | None) -> IdleState:
        if idle_seconds is None:
            return IdleState.UNKNOWN
        if idle_seconds >= self.threshold:
            return IdleState.IDLE
        return IdleState.ACTIVE

    def update(self, idle_seconds: float | None) -> Transition | None:
        """
        Feed one idle reading.

        Args:
            idle_seconds: Seconds since last input, or None if unknown.

        Returns:
            SUSPEND when becoming idle, RESUME when becoming active again,
            None otherwise. Unknown readings never cause a transition.
        """
        observed = self.classify(idle_seconds)
        if observed is IdleState.UNKNOWN or observed is self.state:
            return None
        self.state = observed
        if observed is IdleState.IDLE:
            logger.info("System is idle (%.0fs). Suspending...", idle_seconds)
            return Transition.SUSPEND
        logger.info("System is no longer idle. Resuming...")
        return Transition.RESUME
