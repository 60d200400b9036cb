#!/usr/bin/env python3
"""
Duplicate and echo suppression for the send path.

Without tracking, writing received content to the local clipboard fires a
clipboard change notification, which would send the same content straight
back to the sync folder, where every peer would receive it again.

The dedup state keeps two entries, each with the time it was recorded:
- last sent: prevents re-sending unchanged content within the resend window
- last received: prevents echoing back what we just received within the
  feedback window

Critical ordering: record_received() must be called BEFORE writing the
clipboard so that the resulting change notification is recognized as an echo.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from fclipsync.constants import FEEDBACK_WINDOW_SECONDS, RESEND_WINDOW_SECONDS
from fclipsync.content import contents_equal

if TYPE_CHECKING:
    from fclipsync.content import ClipboardContent


@dataclass
class DedupState:
    """
    Track recently sent and received content for loop prevention.

    Attributes:
        last_sent: Content most recently written to the sync folder, or None.
        last_sent_at: Time of last_sent in seconds since the epoch.
        last_received: Content most recently applied to the clipboard, or None.
        last_received_at: Time of last_received in seconds since the epoch.
        feedback_window: Seconds during which received content is not sent back.
        resend_window: Seconds during which sent content is not sent again.
    """

    last_sent: ClipboardContent | None = None
    last_sent_at: float | None = None
    last_received: ClipboardContent | None = None
    last_received_at: float | None = None
    feedback_window: float = FEEDBACK_WINDOW_SECONDS
    resend_window: float = RESEND_WINDOW_SECONDS

    def should_send(self, content: ClipboardContent, now: float) -> bool:
        """
        Check if content should be sent.

        Returns False if content is empty, is an echo of content received
        within the feedback window, or repeats content sent within the
        resend window.

        Args:
            content: Current clipboard content.
            now: Current time in seconds since the epoch.

        Returns:
            True if content should be written to the sync folder.
        """
        if content.is_empty():
            return False
        if (
            self.last_received_at is not None
            and now - self.last_received_at < self.feedback_window
            and contents_equal(content, self.last_received)
        ):
            return False
        if (
            self.last_sent_at is not None
            and now - self.last_sent_at < self.resend_window
            and contents_equal(content, self.last_sent)
        ):
            return False
        return True

    def record_sent(self, content: ClipboardContent, now: float) -> None:
        """
        Record content that was written to the sync folder.

        Args:
            content: The content written.
            now: Time of the write.
        """
        self.last_sent = content
        self.last_sent_at = now

    def record_received(self, content: ClipboardContent, now: float) -> None:
        """
        Record content received from a peer.

        CRITICAL: Must be called BEFORE writing the clipboard.

        Args:
            content: The content received.
            now: Time of the receive.
        """
        self.last_received = content
        self.last_received_at = now

    def clear(self) -> None:
        """
        Reset to the initial state.

        Losing this state only allows a few duplicate round trips.
        """
        self.last_sent = None
        self.last_sent_at = None
        self.last_received = None
        self.last_received_at = None
