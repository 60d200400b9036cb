"""X11 selection protocol.

This module implements both sides of the ICCCM selection exchange:
- serving: responding to SelectionRequest events while we own CLIPBOARD
- fetching: converting a target of another owner's selection and reading
  the result, including INCR transfers

Fetching blocks on the display and is meant to run via asyncio.to_thread.
Events unrelated to the exchange that arrive meanwhile are kept in a
deferred list so the caller can process them afterwards in order.
"""

from __future__ import annotations

import logging
import select
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from Xlib import X, Xatom

from fclipsync.x11_incr import (
    IncrTransfers,
    cleanup_stale_incr_sends,
    handle_incr_event,
    initiate_incr_send,
    needs_incr_transfer,
)

if TYPE_CHECKING:
    from Xlib.display import Display
    from Xlib.protocol.event import SelectionRequest
    from Xlib.protocol.rq import Event
    from Xlib.xobject.drawable import Window

logger = logging.getLogger(__name__)

# Timeout in seconds for fetching one target, so an unresponsive owner
# cannot hang the agent
SELECTION_TIMEOUT: float = 2.0

# Served targets: target atom -> (type atom, data)
ServedTargets = dict[int, tuple[int, bytes]]


def is_agent_event(event: Event) -> bool:
    """Return True for events the agent itself acts on."""
    return (
        event.type == X.SelectionRequest
        or type(event).__name__ == "SetSelectionOwnerNotify"
    )


def is_deferrable(event: Event) -> bool:
    """Return True for events that must survive a fetch in progress."""
    return is_agent_event(event) or event.type in (X.PropertyNotify, X.DestroyNotify)


def wait_for_event(
    display: Display,
    predicate: Callable[[Event], bool],
    deferred_events: list[Event],
    timeout: float = SELECTION_TIMEOUT,
) -> Event:
    """Read events until one satisfies predicate.

    Events read meanwhile that may matter later (selection requests, owner
    changes and INCR bookkeeping) are appended to deferred_events.

    Args:
        display: The X11 display connection.
        predicate: Returns True for the awaited event.
        deferred_events: List collecting events for later processing.
        timeout: Seconds to wait in total.

    Returns:
        The matching event.

    Raises:
        TimeoutError: If no matching event arrived in time.
    """
    deadline = time.monotonic() + timeout
    while True:
        if display.pending_events() == 0:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("Timed out waiting for selection owner")
            readable, _, _ = select.select([display.fileno()], [], [], remaining)
            if not readable:
                continue
        event = display.next_event()
        if predicate(event):
            return event
        if is_deferrable(event):
            deferred_events.append(event)


def _property_bytes(value: object) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)  # type: ignore[call-overload]


def fetch_selection_target(
    display: Display,
    window: Window,
    selection_atom: int,
    target_atom: int,
    property_atom: int,
    deferred_events: list[Event],
) -> tuple[int, bytes | list[int]] | None:
    """Fetch one target from the current owner of a selection.

    Args:
        display: The X11 display connection.
        window: Our window, which receives the data.
        selection_atom: The selection to read.
        target_atom: The requested target.
        property_atom: Property on window used for the transfer.
        deferred_events: List collecting unrelated events.

    Returns:
        (type atom, data) or None if the owner refused the target. Data of
        32-bit properties such as TARGETS is a list of integers.

    Raises:
        TimeoutError: If the owner did not answer in time.
    """
    window.convert_selection(selection_atom, target_atom, property_atom, X.CurrentTime)
    display.flush()

    notify = wait_for_event(
        display, lambda e: e.type == X.SelectionNotify, deferred_events
    )
    if notify.property == X.NONE:
        return None

    prop = window.get_full_property(property_atom, X.AnyPropertyType)
    window.delete_property(property_atom)
    display.flush()
    if prop is None:
        return None

    if prop.property_type == display.intern_atom("INCR"):
        return _read_incr(display, window, property_atom, deferred_events)
    if prop.format == 32:
        return prop.property_type, list(prop.value)
    return prop.property_type, _property_bytes(prop.value)


def _read_incr(
    display: Display, window: Window, property_atom: int, deferred_events: list[Event]
) -> tuple[int, bytes] | None:
    """Collect chunks of an INCR transfer until the zero-length terminator."""
    chunks: list[bytes] = []
    type_atom = X.NONE
    while True:
        wait_for_event(
            display,
            lambda e: e.type == X.PropertyNotify
            and e.state == X.PropertyNewValue
            and e.atom == property_atom,
            deferred_events,
        )
        prop = window.get_full_property(property_atom, X.AnyPropertyType)
        window.delete_property(property_atom)
        display.flush()
        if prop is None:
            return None
        data = _property_bytes(prop.value)
        if not data:
            return type_atom, b"".join(chunks)
        type_atom = prop.property_type
        chunks.append(data)


def refuse_selection_request(event: SelectionRequest, display: Display) -> None:
    """Refuse a SelectionRequest by answering with property None."""
    event.property = X.NONE
    send_selection_notify(event, display)


def send_selection_notify(event: SelectionRequest, display: Display) -> None:
    from Xlib.protocol.event import SelectionNotify as SelectionNotifyEvent
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


def handle_selection_request(
    display: Display,
    event: SelectionRequest,
    served: ServedTargets,
    acquisition_time: int | None,
    transfers: IncrTransfers,
) -> None:
    """Respond to a SelectionRequest while we own the selection.

    Supports TARGETS, TIMESTAMP and every target in served. Anything else,
    and MULTIPLE, is refused.

    Args:
        display: The X11 display connection.
        event: The SelectionRequest event.
        served: Targets we can provide.
        acquisition_time: Server time at which we took ownership, or None.
        transfers: Pending INCR transfers.
    """
    targets_atom = display.intern_atom("TARGETS")
    timestamp_atom = display.intern_atom("TIMESTAMP")
    logger.debug("SelectionRequest target=%s property=%s", event.target, event.property)

    # Obsolete clients pass property None and expect the target atom to be used
    if event.property == X.NONE:
        event.property = event.target

    if event.target == targets_atom:
        targets = [targets_atom, timestamp_atom, *served]
        event.requestor.change_property(event.property, Xatom.ATOM, 32, targets)
    elif event.target == timestamp_atom:
        if acquisition_time is None:
            refuse_selection_request(event, display)
            return
        event.requestor.change_property(
            event.property, Xatom.INTEGER, 32, [acquisition_time]
        )
    elif event.target in served:
        type_atom, data = served[event.target]
        if needs_incr_transfer(data, display):
            initiate_incr_send(
                display, event, data, type_atom, transfers, display.intern_atom("INCR")
            )
            return
        event.requestor.change_property(event.property, type_atom, 8, data)
    else:
        refuse_selection_request(event, display)
        return

    send_selection_notify(event, display)


def drain_pending_events(
    display: Display, deferred_events: list[Event], transfers: IncrTransfers
) -> list[Event]:
    """Collect events already pending without blocking.

    INCR-related events are handled on the spot. Deferred events are
    returned first to preserve ordering.

    Args:
        display: The X11 display connection.
        deferred_events: Events deferred during fetches; drained.
        transfers: Pending INCR transfers.

    Returns:
        SelectionRequest and SetSelectionOwnerNotify events to process.
    """
    cleanup_stale_incr_sends(display, transfers)

    candidates: list[Event] = list(deferred_events)
    deferred_events.clear()
    while display.pending_events() > 0:
        candidates.append(display.next_event())

    events: list[Event] = []
    for event in candidates:
        logger.debug("X11 event type=%s class=%s", event.type, type(event).__name__)
        if handle_incr_event(display, event, transfers):
            continue
        if is_agent_event(event):
            events.append(event)
    return events
