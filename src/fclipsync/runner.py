#!/usr/bin/env python3
"""Agent startup for fclipsync.

This module wires the X11 clipboard backend, the idle query and the
platform capabilities into an Agent and runs it until SIGINT or SIGTERM.
SIGHUP forces a resync: the agent tears down and initializes again with
the configuration re-read from disk.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import socket
from typing import TYPE_CHECKING

from fclipsync.agent import Agent
from fclipsync.artifact_names import normalize_host
from fclipsync.idle import query_idle_seconds
from fclipsync.indicator import IndicatorState
from fclipsync.retention import detect_unpinner
from fclipsync.x11_clipboard import X11Clipboard
from fclipsync.x11_display import validate_display

if TYPE_CHECKING:
    from fclipsync.config import ConfigStore

logger = logging.getLogger(__name__)


def log_indicator(state: IndicatorState, status: str) -> None:
    if status:
        logger.info("Status: %s (%s)", state.value, status)
    else:
        logger.info("Status: %s", state.value)


async def run_agent(config_store: ConfigStore) -> None:
    """Run the agent with the X11 clipboard.

    Validates X11 connectivity, creates the clipboard backend and runs the
    agent until a shutdown signal arrives.

    Args:
        config_store: The loaded configuration.
    """
    display = validate_display()
    clipboard = X11Clipboard(display)
    host = normalize_host(socket.gethostname())

    agent = Agent(
        config_store,
        clipboard,
        host,
        idle_query=lambda: query_idle_seconds(display),
        unpinner=detect_unpinner(),
    )
    agent.indicator.subscribe(log_indicator)

    # Register signal handlers for clean shutdown
    shutdown_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, shutdown_requested.set)
    loop.add_signal_handler(signal.SIGTERM, shutdown_requested.set)
    loop.add_signal_handler(signal.SIGHUP, agent.reload_soon)

    try:
        await agent.run(shutdown_requested)
    finally:
        clipboard.close()
