#!/usr/bin/env python3
"""Tests for INCR sends of large selections."""
import time
from unittest.mock import MagicMock

import pytest
from Xlib import X

from fclipsync.x11_incr import (
    INCR_CHUNK_SIZE,
    INCR_SEND_TIMEOUT,
    IncrSendState,
    cancel_incr_sends,
    cleanup_stale_incr_sends,
    handle_incr_event,
    initiate_incr_send,
    needs_incr_transfer,
)

INCR_ATOM = 500
PNG_ATOM = 501


@pytest.fixture
def mock_display() -> MagicMock:
    display = MagicMock()
    display.info.max_request_length = 1000  # 4000 bytes, 3600 with margin
    return display


@pytest.fixture
def mock_event() -> MagicMock:
    event = MagicMock()
    event.requestor.id = 12345
    event.property = 200
    event.target = PNG_ATOM
    event.selection = 300
    event.time = 987654321
    return event


def _property_delete(window_id: int, atom: int) -> MagicMock:
    event = MagicMock()
    event.type = X.PropertyNotify
    event.state = X.PropertyDelete
    event.window.id = window_id
    event.atom = atom
    return event


def test_needs_incr_transfer_uses_request_size(mock_display: MagicMock) -> None:
    assert not needs_incr_transfer(b"x" * 3600, mock_display)
    assert needs_incr_transfer(b"x" * 3601, mock_display)


def test_initiate_announces_total_size(mock_display: MagicMock, mock_event: MagicMock) -> None:
    transfers: dict = {}
    content = b"x" * 100_000

    initiate_incr_send(mock_display, mock_event, content, PNG_ATOM, transfers, INCR_ATOM)

    mock_event.requestor.change_property.assert_called_once_with(200, INCR_ATOM, 32, [100_000])
    mock_event.requestor.send_event.assert_called_once()
    state = transfers[(12345, 200)]
    assert state.offset == 0
    assert state.type_atom == PNG_ATOM


def test_chunks_follow_property_deletes(mock_display: MagicMock, mock_event: MagicMock) -> None:
    transfers: dict = {}
    content = bytes(range(256)) * 400
    initiate_incr_send(mock_display, mock_event, content, PNG_ATOM, transfers, INCR_ATOM)
    requestor = mock_event.requestor
    requestor.change_property.reset_mock()

    delete = _property_delete(12345, 200)
    assert handle_incr_event(mock_display, delete, transfers)
    assert handle_incr_event(mock_display, delete, transfers)
    assert handle_incr_event(mock_display, delete, transfers)

    chunks = [c.args[3] for c in requestor.change_property.call_args_list]
    assert chunks[0] == content[:INCR_CHUNK_SIZE]
    assert b"".join(chunks) == content
    assert chunks[-1] == b""
    assert transfers[(12345, 200)].completion_sent

    # Deletion of the terminator ends the transfer
    assert handle_incr_event(mock_display, delete, transfers)
    assert transfers == {}
    requestor.change_attributes.assert_called_with(event_mask=0)


def test_unrelated_events_are_not_consumed(
    mock_display: MagicMock, mock_event: MagicMock
) -> None:
    transfers: dict = {}
    initiate_incr_send(mock_display, mock_event, b"x" * 10, PNG_ATOM, transfers, INCR_ATOM)

    assert not handle_incr_event(mock_display, _property_delete(999, 200), transfers)
    new_value = _property_delete(12345, 200)
    new_value.state = X.PropertyNewValue
    assert not handle_incr_event(mock_display, new_value, transfers)


def test_no_transfers_consumes_nothing(mock_display: MagicMock) -> None:
    assert not handle_incr_event(mock_display, _property_delete(1, 2), {})


def test_destroyed_requestor_drops_transfers(
    mock_display: MagicMock, mock_event: MagicMock
) -> None:
    transfers: dict = {}
    initiate_incr_send(mock_display, mock_event, b"x" * 10, PNG_ATOM, transfers, INCR_ATOM)
    destroy = MagicMock()
    destroy.type = X.DestroyNotify
    destroy.window.id = 12345

    assert handle_incr_event(mock_display, destroy, transfers)
    assert transfers == {}


def test_stale_transfers_are_cleaned(mock_display: MagicMock) -> None:
    requestor = MagicMock()
    requestor.id = 1
    transfers = {
        (1, 2): IncrSendState(
            requestor=requestor,
            property_atom=2,
            target_atom=PNG_ATOM,
            type_atom=PNG_ATOM,
            content=b"x",
            offset=0,
            start_time=time.time() - INCR_SEND_TIMEOUT - 1,
        ),
        (3, 4): IncrSendState(
            requestor=MagicMock(id=3),
            property_atom=4,
            target_atom=PNG_ATOM,
            type_atom=PNG_ATOM,
            content=b"x",
            offset=0,
            start_time=time.time(),
        ),
    }

    cleanup_stale_incr_sends(mock_display, transfers)

    assert list(transfers) == [(3, 4)]
    requestor.change_attributes.assert_called_once_with(event_mask=0)


def test_cancel_drops_everything(mock_display: MagicMock, mock_event: MagicMock) -> None:
    transfers: dict = {}
    initiate_incr_send(mock_display, mock_event, b"x" * 10, PNG_ATOM, transfers, INCR_ATOM)

    cancel_incr_sends(mock_display, transfers)

    assert transfers == {}
