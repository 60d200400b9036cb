#!/usr/bin/env python3
"""The fclipsync agent.

The agent owns the lifecycle of everything that runs per host:

- started: the optional sync command runs and the agent waits for the
  sync folder to appear
- initialized: the folder is available; the retention sweeper runs
- session active: the clipboard listener, folder watcher and presence
  refresh run and a SyncSession holds the send/receive state

Idle suspends and resumes the session without touching the sweeper. All
notifications (clipboard, folder, timers, reload requests) go through one
asyncio.Queue with a single consumer, so session state has a single writer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from fclipsync.agent_retry import wait_for_sync_folder
from fclipsync.artifact_names import Origin, parse_artifact_name
from fclipsync.constants import (
    ARTIFACT_SETTLE_DELAY_SECONDS,
    CLIPBOARD_WRITE_DELAY_SECONDS,
    FOLDER_CHECK_SECONDS,
    IDLE_POLL_SECONDS,
    SYNC_COMMAND_WAIT_SECONDS,
    TICK_SECONDS,
)
from fclipsync.folder_watch import FolderWatcher
from fclipsync.idle import IdleController, IdleState, Transition
from fclipsync.indicator import Indicator, IndicatorState
from fclipsync.presence import remove_presence_marker, run_presence_refresh
from fclipsync.retention import run_retention_sweeper
from fclipsync.sync_command import SyncCommand
from fclipsync.sync_handlers import handle_artifact_added, handle_clipboard_change
from fclipsync.sync_state import SyncSession

if TYPE_CHECKING:
    from fclipsync.clipboard_backend import ClipboardBackend
    from fclipsync.config import ConfigStore
    from fclipsync.retention import Unpinner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipboardPending:
    """Platform clipboard events are waiting to be processed."""


@dataclass(frozen=True)
class ClipboardChanged:
    """Another application changed the clipboard and the write delay passed."""


@dataclass(frozen=True)
class ArtifactAdded:
    path: Path


@dataclass(frozen=True)
class ArtifactSettled:
    path: Path


@dataclass(frozen=True)
class FolderAvailable:
    pass


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Reload:
    pass


AgentEvent = (
    ClipboardPending | ClipboardChanged | ArtifactAdded | ArtifactSettled
    | FolderAvailable | Tick | Reload
)


class Agent:
    """Runs clipboard synchronization for one host."""

    def __init__(
        self,
        config_store: ConfigStore,
        clipboard: ClipboardBackend,
        host: str,
        idle_query: Callable[[], float | None] | None = None,
        unpinner: Unpinner | None = None,
        indicator: Indicator | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config_store = config_store
        self.clipboard = clipboard
        self.host = host
        self.idle_query = idle_query
        self.unpinner = unpinner
        self.indicator = indicator or Indicator()
        self.clock = clock
        self.queue: asyncio.Queue[AgentEvent] = asyncio.Queue()
        self.idle = IdleController()

        self.started = False
        self.initialized = False
        self.session: SyncSession | None = None
        self.watcher: FolderWatcher | None = None
        self.sync_command: SyncCommand | None = None
        self.listening = False

        self._loop: asyncio.AbstractEventLoop | None = None
        self._presence_task: asyncio.Task[None] | None = None
        self._sweeper_task: asyncio.Task[None] | None = None
        self._folder_task: asyncio.Task[None] | None = None
        self._pending_artifacts: dict[Path, float] = {}
        self._command_started_at: float | None = None
        self._last_folder_check = 0.0
        self._last_idle_poll = 0.0

    @property
    def sync_folder(self) -> Path | None:
        folder = self.config_store.config.folder
        if not folder:
            return None
        return Path(folder).expanduser().absolute()

    def post(self, event: AgentEvent) -> None:
        self.queue.put_nowait(event)

    def reload_soon(self) -> None:
        """Request a reload from a signal handler or another callback."""
        self.post(Reload())

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Run until shutdown_event is set.

        Args:
            shutdown_event: Set by signal handlers to stop the agent.
        """
        self._loop = asyncio.get_running_loop()
        self.clipboard.attach(self._loop, lambda: self.post(ClipboardPending()))
        ticker = asyncio.create_task(self._tick_forever())
        try:
            await self.start()
            while not shutdown_event.is_set():
                get_task = asyncio.create_task(self.queue.get())
                shutdown_task = asyncio.create_task(shutdown_event.wait())
                done, pending = await asyncio.wait(
                    {get_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in pending:
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task
                if get_task in done:
                    await self.dispatch(get_task.result())
        finally:
            ticker.cancel()
            with suppress(asyncio.CancelledError):
                await ticker
            await self.stop("Stopped")
            self.clipboard.detach()

    async def _tick_forever(self) -> None:
        while True:
            await asyncio.sleep(TICK_SECONDS)
            self.post(Tick())

    async def dispatch(self, event: AgentEvent) -> None:
        """Handle one event from the queue. Errors never escape."""
        try:
            await self._dispatch(event)
        except Exception:
            logger.exception("Error handling %s", type(event).__name__)

    async def _dispatch(self, event: AgentEvent) -> None:
        if isinstance(event, ClipboardPending):
            # Always drained: while we own CLIPBOARD other apps wait on us
            if self.clipboard.process_pending() and self.listening:
                self._post_later(CLIPBOARD_WRITE_DELAY_SECONDS, ClipboardChanged())
        elif isinstance(event, ClipboardChanged):
            if self.session is not None and self.listening:
                await handle_clipboard_change(self.session)
        elif isinstance(event, ArtifactAdded):
            self._schedule_artifact(event.path)
        elif isinstance(event, ArtifactSettled):
            await self._artifact_settled(event.path)
        elif isinstance(event, FolderAvailable):
            if self.started and not self.initialized:
                await self.initialize()
        elif isinstance(event, Tick):
            await self._on_tick()
        elif isinstance(event, Reload):
            await self.reload()

    def _post_later(self, delay: float, event: AgentEvent) -> None:
        assert self._loop is not None
        self._loop.call_later(delay, self.post, event)

    def _schedule_artifact(self, path: Path) -> None:
        """Debounce folder events per artifact until it settles."""
        if self.session is None:
            return
        parsed = parse_artifact_name(
            path, self.session.sync_folder, self.host, Origin.OTHERS
        )
        if parsed is None:
            return
        self._pending_artifacts[parsed.path] = (
            time.monotonic() + ARTIFACT_SETTLE_DELAY_SECONDS
        )
        self._post_later(ARTIFACT_SETTLE_DELAY_SECONDS, ArtifactSettled(parsed.path))

    async def _artifact_settled(self, path: Path) -> None:
        due = self._pending_artifacts.get(path)
        if due is None or due > time.monotonic():
            return
        del self._pending_artifacts[path]
        if self.session is not None:
            await handle_artifact_added(self.session, path)

    async def _on_tick(self) -> None:
        self.indicator.tick()

        if self.sync_command is not None and self.sync_command.has_failed():
            logger.error("Sync command exited unexpectedly")
            await self.stop("Sync command failed")
            return

        now = time.monotonic()
        if self.initialized and now - self._last_folder_check >= self._folder_check_interval(now):
            self._last_folder_check = now
            await self._check_folder_still_available()

        if self.idle_query is not None and now - self._last_idle_poll >= IDLE_POLL_SECONDS:
            self._last_idle_poll = now
            transition = self.idle.update(self.idle_query())
            if transition is Transition.SUSPEND:
                await self.suspend()
            elif transition is Transition.RESUME:
                await self.resume()

    def _folder_check_interval(self, now: float) -> float:
        if (
            self._command_started_at is not None
            and now - self._command_started_at < SYNC_COMMAND_WAIT_SECONDS
        ):
            return TICK_SECONDS
        return FOLDER_CHECK_SECONDS

    async def _check_folder_still_available(self) -> None:
        folder = self.sync_folder
        if folder is not None and await asyncio.to_thread(folder.is_dir):
            return
        logger.warning("Sync folder %s is no longer available", folder)
        await self.uninitialize("Sync folder is not available")
        self._wait_for_folder()

    async def start(self) -> None:
        """Start the sync command, if any, and wait for the sync folder."""
        if self.started:
            return
        self.started = True
        config = self.config_store.config
        if config.sync_command:
            command = SyncCommand(config.sync_command)
            try:
                await command.start()
            except (OSError, ValueError) as e:
                logger.error("Failed to start sync command: %s", e)
                self.started = False
                self.indicator.set(IndicatorState.SUSPENDED, "Sync command failed")
                return
            self.sync_command = command
            self._command_started_at = time.monotonic()
        self._wait_for_folder()

    def _wait_for_folder(self) -> None:
        folder = self.sync_folder
        if folder is None:
            logger.error("No sync folder configured")
            self.indicator.set(IndicatorState.SUSPENDED, "No sync folder configured")
            return
        if self._folder_task is not None and not self._folder_task.done():
            return
        self.indicator.set(IndicatorState.SUSPENDED, "Waiting for sync folder")
        self._folder_task = asyncio.create_task(self._await_folder(folder))

    async def _await_folder(self, folder: Path) -> None:
        await wait_for_sync_folder(folder)
        self.post(FolderAvailable())

    async def stop(self, reason: str) -> None:
        """Tear everything down, including the sync command."""
        self.started = False
        if self._folder_task is not None:
            self._folder_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._folder_task
            self._folder_task = None
        await self.uninitialize(reason)
        if self.sync_command is not None:
            command, self.sync_command = self.sync_command, None
            await command.stop()
        self._command_started_at = None
        self.indicator.set(IndicatorState.SUSPENDED, reason)

    async def reload(self) -> None:
        """Tear down and initialize again with freshly loaded configuration."""
        logger.info("Reloading")
        await self.stop("Reloading")
        self.config_store.config = self.config_store.load()
        await self.start()

    async def initialize(self) -> None:
        """Bring up the sweeper and, unless idle, the session."""
        if self.initialized:
            return
        folder = self.sync_folder
        if folder is None:
            return
        self.initialized = True
        self._last_folder_check = time.monotonic()
        logger.info("Syncing clipboard through %s as %s", folder, self.host)
        if self.config_store.config.auto_cleanup:
            self._sweeper_task = asyncio.create_task(
                run_retention_sweeper(folder, self.host, self.unpinner)
            )
        if self.idle.state is IdleState.IDLE:
            self.indicator.set(IndicatorState.SUSPENDED, "Idle")
        else:
            await self.resume()

    async def uninitialize(self, reason: str) -> None:
        """Stop the session and the sweeper."""
        if not self.initialized:
            return
        self.initialized = False
        await self.suspend(reason)
        if self._sweeper_task is not None:
            self._sweeper_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._sweeper_task
            self._sweeper_task = None
        self._pending_artifacts.clear()
        self.indicator.set(IndicatorState.SUSPENDED, reason)
        logger.info("Clipboard sync stopped: %s", reason)

    async def resume(self) -> None:
        """Start a session. Resuming an active session does nothing."""
        if not self.initialized or self.session is not None:
            return
        folder = self.sync_folder
        assert folder is not None
        config = self.config_store.config
        self.session = SyncSession(
            sync_folder=folder,
            host=self.host,
            config=config,
            clipboard=self.clipboard,
            indicator=self.indicator,
            clock=self.clock,
        )
        self.listening = config.is_sending_anything()
        if config.is_receiving_anything():
            assert self._loop is not None
            self.watcher = FolderWatcher(
                folder,
                self.host,
                lambda path: self.post(ArtifactAdded(path)),
                config.watch_mode,
            )
            try:
                self.watcher.start(self._loop)
            except OSError as e:
                logger.error("Failed to watch %s: %s", folder, e)
                self.watcher = None
            self._presence_task = asyncio.create_task(
                run_presence_refresh(folder, self.host)
            )
        self.indicator.set(IndicatorState.WORKING)

    async def suspend(self, reason: str = "Idle") -> None:
        """Stop the session. The watcher and listener are stopped before returning."""
        if self.session is None:
            return
        session, self.session = self.session, None
        self.listening = False
        if self.watcher is not None:
            watcher, self.watcher = self.watcher, None
            await asyncio.to_thread(watcher.stop)
        if self._presence_task is not None:
            self._presence_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._presence_task
            self._presence_task = None
            await asyncio.to_thread(
                remove_presence_marker, session.sync_folder, self.host
            )
        self._pending_artifacts.clear()
        self.indicator.set(IndicatorState.SUSPENDED, reason)
