#!/usr/bin/env python3
"""Status indicator exposed to the surrounding UI.

The engine flashes SENT or RECEIVED after a successful transfer; the agent
reverts the indicator to WORKING once the flash expires and shows SUSPENDED
while idle or uninitialized. Listeners are called on every change.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable

from fclipsync.constants import INDICATOR_FLASH_SECONDS

logger = logging.getLogger(__name__)


class IndicatorState(enum.Enum):
    WORKING = "working"
    SENT = "sent"
    RECEIVED = "received"
    SUSPENDED = "suspended"


class Indicator:
    """Current indicator state with timed revert."""

    def __init__(
        self,
        flash_seconds: float = INDICATOR_FLASH_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.state = IndicatorState.SUSPENDED
        self.status = ""
        self._flash_seconds = flash_seconds
        self._clock = clock
        self._revert_at: float | None = None
        self._listeners: list[Callable[[IndicatorState, str], None]] = []

    def subscribe(self, listener: Callable[[IndicatorState, str], None]) -> None:
        self._listeners.append(listener)

    def set(self, state: IndicatorState, status: str = "") -> None:
        """Set the state immediately, cancelling any pending revert."""
        self._revert_at = None
        self._apply(state, status)

    def flash(self, state: IndicatorState) -> None:
        """Show state until flash_seconds have passed, then revert to WORKING."""
        self._apply(state, self.status)
        self._revert_at = self._clock() + self._flash_seconds

    def tick(self) -> None:
        """Revert an expired flash. Called periodically by the agent."""
        if self._revert_at is not None and self._clock() >= self._revert_at:
            self._revert_at = None
            self._apply(IndicatorState.WORKING, self.status)

    def _apply(self, state: IndicatorState, status: str) -> None:
        if state is self.state and status == self.status:
            return
        self.state = state
        self.status = status
        for listener in self._listeners:
            try:
                listener(state, status)
            except Exception as e:
                logger.error("Indicator listener failed: %s", e)
