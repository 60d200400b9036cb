#!/usr/bin/env python3
"""User-supplied sync command.

Some sync folders are only reachable while a helper process runs, for
instance an `rclone mount` or a loop around `rclone bisync`. The command is
started when the agent initializes, its output is forwarded to the log line
by line, and it is killed when the agent stops. An exit on its own is
reported through has_failed so the agent can tear down.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from contextlib import suppress

logger = logging.getLogger(__name__)


class SyncCommand:
    """Runs one shell-style command line as a child process."""

    def __init__(self, command_line: str) -> None:
        self.command_line = command_line
        self.process: asyncio.subprocess.Process | None = None
        self._forwarders: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    async def start(self) -> None:
        """
        Start the command.

        Raises:
            ValueError: If the command line is empty or cannot be split.
            OSError: If the executable cannot be started.
        """
        argv = shlex.split(self.command_line)
        if not argv:
            raise ValueError("Sync command is empty")
        logger.info("Starting sync command: %s", self.command_line)
        self.process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        assert self.process.stdout is not None and self.process.stderr is not None
        self._forwarders = [
            asyncio.create_task(_forward_output(self.process.stdout, logging.INFO)),
            asyncio.create_task(_forward_output(self.process.stderr, logging.WARNING)),
        ]

    def has_failed(self) -> bool:
        """Return True if the command was started and exited by itself."""
        return self.process is not None and self.process.returncode is not None

    async def stop(self) -> None:
        """Kill the command if it still runs and wait for it."""
        process, self.process = self.process, None
        if process is not None:
            if process.returncode is None:
                with suppress(ProcessLookupError):
                    process.kill()
            await process.wait()
            logger.info("Sync command exited with status %s", process.returncode)
        for task in self._forwarders:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self._forwarders = []


async def _forward_output(stream: asyncio.StreamReader, level: int) -> None:
    while True:
        line = await stream.readline()
        if not line:
            return
        logger.log(level, "sync command: %s", line.decode(errors="replace").rstrip())
