"""
Directory Watcher

Subscribes to filesystem events under a root directory and runs every newly
created (or moved-in) supported file through the inference engine, raising an
alert when the top candidate clears the threshold.

Per-path lifecycle::

    IDLE --create/move--> PENDING --quiet for debounce window--> DISPATCH
    DISPATCH --analysed--> CLASSIFIED --alert checked--> IDLE
    DISPATCH --failed--> IDLE            PENDING --file gone--> IDLE

Filesystem notifications arrive on watchdog's observer thread and are handed
to the asyncio loop with ``call_soon_threadsafe``.  A single worker coroutine
drains the dispatch queue, so at most one analysis is in flight at a time.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set, Union

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from promptprobe.core.config import Settings, get_settings
from promptprobe.core.exceptions import (
    EngineInvocationError,
    InputNotFoundError,
    MalformedResultError,
    UnsupportedFileTypeError,
)
from promptprobe.inference.client import InferenceClient
from promptprobe.ingestion.validators import is_supported, validate_directory
from promptprobe.monitoring.alerts import AlertEmitter
from promptprobe.monitoring.debounce import PathDebouncer, WatchEvent

__all__: list[str] = ["DirectoryWatcher", "PathState", "WatchStats"]


class PathState(str, Enum):
    """Lifecycle state of one watched path."""

    IDLE = "idle"
    PENDING = "pending_stabilization"
    DISPATCH = "dispatch"
    CLASSIFIED = "classified"


@dataclass
class WatchStats:
    events_seen: int = 0
    events_ignored: int = 0
    dispatched: int = 0
    failed: int = 0
    alerts: int = 0


class _EventBridge(FileSystemEventHandler):
    """Forward watchdog create/move events onto the asyncio loop."""

    def __init__(
        self, loop: asyncio.AbstractEventLoop, submit: Callable[[str], None]
    ) -> None:
        self._loop = loop
        self._submit = submit

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.dest_path)

    def _forward(self, path: Union[str, bytes]) -> None:
        try:
            self._loop.call_soon_threadsafe(self._submit, os.fsdecode(path))
        except RuntimeError:
            # Loop already closed during shutdown.
            pass


class DirectoryWatcher:
    """Watch *root* and analyse stabilised files one at a time."""

    def __init__(
        self,
        root: Union[str, Path],
        client: InferenceClient,
        emitter: AlertEmitter,
        *,
        threshold: Optional[float] = None,
        settings: Optional[Settings] = None,
        observer_factory: Callable[[], Any] = Observer,
        logger: Any = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.root = Path(root)
        self.client = client
        self.emitter = emitter
        self.threshold = (
            self.settings.alert_threshold if threshold is None else threshold
        )
        self.recursive = self.settings.watch_recursive
        self.stats = WatchStats()

        self._log = logger or structlog.get_logger(__name__)
        self._observer_factory = observer_factory
        self._debouncer = PathDebouncer(
            self.settings.debounce_seconds, self._on_stable, logger=self._log
        )
        self._queue: "asyncio.Queue[WatchEvent]" = asyncio.Queue()
        self._queued: Set[str] = set()
        self._states: Dict[str, PathState] = {}
        self._dispatch_lock = asyncio.Lock()
        self._accepting = True

    def state_of(self, path: Union[str, Path]) -> PathState:
        return self._states.get(str(path), PathState.IDLE)

    # ------------------------------------------------------------------
    # Event intake (loop thread)
    # ------------------------------------------------------------------

    def submit(self, path: str) -> None:
        """Handle one create/move-in event for *path*."""
        if not self._accepting:
            return
        self.stats.events_seen += 1

        if not is_supported(path, self.settings):
            self.stats.events_ignored += 1
            self._log.debug("watch_event_ignored", path=path)
            return

        self._log.info("new_file_detected", path=path)
        self._debouncer.notify(path)
        if self.state_of(path) is PathState.IDLE:
            self._states[path] = PathState.PENDING

    def _on_stable(self, event: WatchEvent) -> None:
        if event.path in self._queued:
            return
        self._queued.add(event.path)
        self._states[event.path] = PathState.DISPATCH
        self._queue.put_nowait(event)

    def _settle(self, path: str) -> None:
        if self._debouncer.is_pending(path):
            self._states[path] = PathState.PENDING
        else:
            self._states.pop(path, None)

    # ------------------------------------------------------------------
    # Dispatch (single worker)
    # ------------------------------------------------------------------

    async def process_next(self) -> None:
        """Wait for one stabilised event and run it to completion."""
        event = await self._queue.get()
        try:
            async with self._dispatch_lock:
                await self._dispatch(event)
        finally:
            self._queue.task_done()

    async def _dispatch(self, event: WatchEvent) -> None:
        path = event.path
        self._queued.discard(path)
        self._states[path] = PathState.DISPATCH
        self.stats.dispatched += 1

        try:
            result = await self.client.analyze_one(path)
            self._states[path] = PathState.CLASSIFIED
            if self.emitter.maybe_alert(result, self.threshold) is not None:
                self.stats.alerts += 1
        except InputNotFoundError:
            self._log.info("watched_path_vanished", path=path)
        except UnsupportedFileTypeError:
            self._log.debug("watch_event_ignored", path=path)
        except (EngineInvocationError, MalformedResultError) as e:
            self.stats.failed += 1
            self._log.error(
                "monitor_analysis_failed",
                path=path,
                error_type=type(e).__name__,
                error=str(e),
            )
        except Exception as e:  # noqa: BLE001 – isolate per-file failures
            self.stats.failed += 1
            self._log.error(
                "monitor_unexpected_exception",
                path=path,
                error=str(e),
                exc_info=True,
            )
        finally:
            self._settle(path)

    async def _worker(self) -> None:
        while True:
            await self.process_next()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> WatchStats:
        """
        Watch until *stop_event* is set.

        On stop, pending debounce timers are cancelled, the observer is shut
        down, and an analysis already in flight is allowed to finish.  Events
        still waiting in the queue are dropped.

        Raises:
            InputNotFoundError: The watch root does not exist.
        """
        validate_directory(self.root)
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()

        observer = self._observer_factory()
        observer.schedule(
            _EventBridge(loop, self.submit), str(self.root), recursive=self.recursive
        )
        observer.start()
        worker = asyncio.create_task(self._worker())
        self._log.info(
            "monitor_started",
            root=str(self.root),
            threshold=self.threshold,
            debounce_seconds=self._debouncer.delay,
            recursive=self.recursive,
        )

        try:
            await stop_event.wait()
        finally:
            await self._shutdown(observer, worker)
        return self.stats

    async def _shutdown(self, observer: Any, worker: "asyncio.Task[None]") -> None:
        self._accepting = False
        self._debouncer.close()
        observer.stop()
        await asyncio.to_thread(observer.join)

        # Holding the lock means no analysis is running; the worker is parked.
        async with self._dispatch_lock:
            worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker

        self._log.info(
            "monitor_stopped",
            root=str(self.root),
            dropped=self._queue.qsize(),
            dispatched=self.stats.dispatched,
            failed=self.stats.failed,
            alerts=self.stats.alerts,
        )
