from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

import structlog

__all__: list[str] = ["WatchEvent", "PathDebouncer"]


@dataclass(frozen=True)
class WatchEvent:
    """A path that has been quiet for the full debounce window."""

    path: str
    detected_at: datetime


class PathDebouncer:
    """Per-path quiescence timers on the running asyncio loop.

    Every :meth:`notify` for a path (re)starts that path's timer; the
    ``on_stable`` callback fires once the path has seen no further events for
    ``delay`` seconds *and* still exists as a regular file.  Two events inside
    one window therefore yield a single callback.

    The timers only wait; they do not check that the writer has finished.
    """

    def __init__(
        self,
        delay: float,
        on_stable: Callable[[WatchEvent], None],
        *,
        logger: Any = None,
    ) -> None:
        if delay <= 0:
            raise ValueError("delay must be greater than 0")
        self.delay = delay
        self._on_stable = on_stable
        self._log = logger or structlog.get_logger(__name__)
        self._pending: Dict[str, Tuple[asyncio.TimerHandle, datetime]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> FrozenSet[str]:
        return frozenset(self._pending)

    def is_pending(self, path: str) -> bool:
        return path in self._pending

    def notify(self, path: str, detected_at: Optional[datetime] = None) -> None:
        """Record an event for *path*; must run on the event loop thread."""
        if self._closed:
            return

        previous = self._pending.pop(path, None)
        if previous is not None:
            handle, first_seen = previous
            handle.cancel()
            self._log.debug("debounce_timer_reset", path=path)
        else:
            first_seen = detected_at or datetime.now()

        loop = asyncio.get_running_loop()
        handle = loop.call_later(self.delay, self._fire, path)
        self._pending[path] = (handle, first_seen)

    def _fire(self, path: str) -> None:
        entry = self._pending.pop(path, None)
        if entry is None or self._closed:
            return
        _, detected_at = entry

        if not Path(path).is_file():
            self._log.info("watched_path_vanished", path=path)
            return

        self._on_stable(WatchEvent(path=path, detected_at=detected_at))

    def close(self) -> None:
        """Cancel every pending timer and ignore later notifications."""
        self._closed = True
        for handle, _ in self._pending.values():
            handle.cancel()
        if self._pending:
            self._log.debug("debounce_timers_cancelled", count=len(self._pending))
        self._pending.clear()
