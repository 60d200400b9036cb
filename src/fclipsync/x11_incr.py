"""INCR protocol support for serving large selections.

PNG images routinely exceed the largest property a single change_property
request may carry. For those the ICCCM INCR protocol is used: the requestor
receives a property of type INCR holding the total size, then deletes the
property each time it has consumed a chunk, and we answer each deletion
with the next chunk, finishing with a zero-length chunk.

Transfers are keyed by (requestor window id, property atom).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from Xlib import X

if TYPE_CHECKING:
    from Xlib.display import Display
    from Xlib.protocol.event import SelectionRequest
    from Xlib.protocol.rq import Event
    from Xlib.xobject.drawable import Window

logger = logging.getLogger(__name__)

# Fraction of the maximum request size used before switching to INCR
INCR_SAFETY_MARGIN: float = 0.9

INCR_CHUNK_SIZE: int = 65536

INCR_SEND_TIMEOUT: float = 30.0


@dataclass
class IncrSendState:
    """State for an in-progress INCR send transfer.

    Attributes:
        requestor: The window that asked for the content.
        property_atom: The property chunks are written to.
        target_atom: The requested target.
        type_atom: The type written with each chunk.
        content: The full content being sent.
        offset: Offset of the next chunk.
        start_time: When the transfer began, for the timeout.
        completion_sent: True once the zero-length chunk was written.
    """

    requestor: Window
    property_atom: int
    target_atom: int
    type_atom: int
    content: bytes
    offset: int
    start_time: float
    completion_sent: bool = False


IncrTransfers = dict[tuple[int, int], IncrSendState]


def get_max_property_size(display: Display) -> int:
    """Return the largest property, in bytes, that is written in one request."""
    # max_request_length is in 4-byte units
    max_bytes = display.info.max_request_length * 4  # type: ignore[attr-defined]
    return int(max_bytes * INCR_SAFETY_MARGIN)


def needs_incr_transfer(content: bytes, display: Display) -> bool:
    return len(content) > get_max_property_size(display)


def initiate_incr_send(
    display: Display,
    event: SelectionRequest,
    content: bytes,
    type_atom: int,
    transfers: IncrTransfers,
    incr_atom: int,
) -> None:
    """Start an INCR transfer and send the SelectionNotify that announces it.

    Args:
        display: The X11 display connection.
        event: The SelectionRequest being answered.
        content: The full content.
        type_atom: Type written with each chunk.
        transfers: Pending transfers, updated in place.
        incr_atom: The INCR atom.
    """
    from Xlib.protocol.event import SelectionNotify as SelectionNotifyEvent

    event.requestor.change_attributes(
        event_mask=X.PropertyChangeMask | X.StructureNotifyMask
    )
    event.requestor.change_property(event.property, incr_atom, 32, [len(content)])
    transfers[(event.requestor.id, event.property)] = IncrSendState(
        requestor=event.requestor,
        property_atom=event.property,
        target_atom=event.target,
        type_atom=type_atom,
        content=content,
        offset=0,
        start_time=time.time(),
    )
    event.requestor.send_event(
        SelectionNotifyEvent(
            time=event.time,
            requestor=event.requestor.id,
            selection=event.selection,
            target=event.target,
            property=event.property,
        ),
        event_mask=0,
    )
    display.flush()
    logger.debug("Initiated INCR send: requestor=%s property=%s size=%s",
        event.requestor.id, event.property, len(content))


def send_incr_chunk(display: Display, state: IncrSendState) -> None:
    """Write the next chunk, or the zero-length terminator once all is sent."""
    if state.offset >= len(state.content):
        state.requestor.change_property(state.property_atom, state.type_atom, 8, b"")
        display.flush()
        state.completion_sent = True
        return

    chunk_end = min(state.offset + INCR_CHUNK_SIZE, len(state.content))
    state.requestor.change_property(
        state.property_atom, state.type_atom, 8, state.content[state.offset:chunk_end]
    )
    display.flush()
    state.offset = chunk_end


def _forget_transfer(
    display: Display, key: tuple[int, int], transfers: IncrTransfers
) -> None:
    """Drop a transfer, unsubscribing from its window if it was the last one."""
    state = transfers.pop(key, None)
    if state is None:
        return
    if not any(other[0] == key[0] for other in transfers):
        state.requestor.change_attributes(event_mask=0)
        display.flush()


def handle_incr_event(display: Display, event: Event, transfers: IncrTransfers) -> bool:
    """
    Route an event belonging to a pending transfer.

    Args:
        display: The X11 display connection.
        event: Any X11 event.
        transfers: Pending transfers, updated in place.

    Returns:
        True if the event belonged to a transfer and was consumed.
    """
    if not transfers:
        return False

    if event.type == X.DestroyNotify:
        window_id = event.window.id
        keys = [key for key in transfers if key[0] == window_id]
        for key in keys:
            logger.debug("INCR send: requestor window destroyed: %s", window_id)
            transfers.pop(key, None)
        return bool(keys)

    if event.type != X.PropertyNotify or event.state != X.PropertyDelete:
        return False
    key = (event.window.id, event.atom)
    state = transfers.get(key)
    if state is None:
        return False
    if state.completion_sent:
        logger.debug("INCR send complete: %s", key)
        _forget_transfer(display, key, transfers)
    else:
        send_incr_chunk(display, state)
    return True


def cleanup_stale_incr_sends(display: Display, transfers: IncrTransfers) -> None:
    """Drop transfers whose requestor stopped consuming chunks."""
    now = time.time()
    for key, state in list(transfers.items()):
        elapsed = now - state.start_time
        if elapsed > INCR_SEND_TIMEOUT:
            logger.warning("INCR send: transfer timed out after %.1f seconds: %s",
                elapsed, key)
            _forget_transfer(display, key, transfers)


def cancel_incr_sends(display: Display, transfers: IncrTransfers) -> None:
    """Drop every transfer, used when the content being served is replaced."""
    for key in list(transfers):
        _forget_transfer(display, key, transfers)
