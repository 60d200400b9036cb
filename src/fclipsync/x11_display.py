"""X11 display setup for clipboard access.

This module provides functions for connecting to the X11 display and
preparing the hidden window that fclipsync uses to own the CLIPBOARD
selection and to receive selection data. The XFixes extension delivers
SetSelectionOwnerNotify events whenever any application takes ownership of
CLIPBOARD, which is how local clipboard changes are detected without polling.

The module handles:
- Validating X11 display connectivity
- Creating the hidden window
- Registering for XFixes selection owner notifications
- Taking selection ownership
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

from Xlib import X

if TYPE_CHECKING:
    from Xlib.display import Display
    from Xlib.xobject.drawable import Window

logger = logging.getLogger(__name__)


def validate_display() -> Display:
    """Validate X11 connectivity and return Display object.

    Checks that the DISPLAY environment variable is set and opens an X11
    connection. This should be called at startup to fail fast if X11 is
    not available.

    Returns:
        Display object for X11 operations.

    Raises:
        SystemExit: If DISPLAY is unset or X11 connection fails.
    """
    display_name = os.environ.get("DISPLAY")
    if not display_name:
        print("Error: DISPLAY environment variable is not set.", file=sys.stderr)
        print("X11 display is required for clipboard access.", file=sys.stderr)
        sys.exit(1)

    try:
        from Xlib.display import Display as XDisplay
        return XDisplay(display_name)
    except Exception as e:
        print(f"Error: Failed to connect to X11 display: {e}", file=sys.stderr)
        sys.exit(1)


def create_hidden_window(display: Display) -> Window:
    """Create a 1x1 unmapped window for clipboard ownership.

    The window also receives the selection data we request from other
    applications, so it listens for PropertyNotify (needed for INCR reads).

    Args:
        display: The X11 display connection.

    Returns:
        A Window object for owning clipboard selections.
    """
    screen = display.screen()
    return screen.root.create_window(
        0, 0, 1, 1, 0, screen.root_depth, event_mask=X.PropertyChangeMask,
    )


def register_xfixes_events(display: Display, window: Window, selection_atom: int) -> None:
    """Register for XFixes selection owner notifications on one selection.

    Only CLIPBOARD is synchronized; PRIMARY is deliberately left alone.

    Args:
        display: The X11 display connection.
        window: The window to receive selection events.
        selection_atom: The selection to watch.
    """
    from Xlib.ext import xfixes

    xfixes.query_version(display)
    mask = xfixes.XFixesSetSelectionOwnerNotifyMask
    xfixes.select_selection_input(display, window.id, selection_atom, mask)
    display.flush()


def take_selection_ownership(
    display: Display, window: Window, selection_atom: int
) -> bool:
    """Take ownership of a selection.

    Args:
        display: The X11 display connection.
        window: The window to own the selection.
        selection_atom: The selection atom.

    Returns:
        True if the window owns the selection afterwards.
    """
    try:
        window.set_selection_owner(selection_atom, X.CurrentTime)
        display.flush()
        owner = display.get_selection_owner(selection_atom)
    except Exception as e:
        logger.error("Failed to acquire selection ownership: %s", e)
        return False
    if owner != window:
        logger.error("Failed to acquire selection ownership")
        return False
    return True
