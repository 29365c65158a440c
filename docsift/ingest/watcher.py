"""Filesystem watcher that re-syncs a source after changes settle."""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict

from watchdog.events import FileSystemEvent, PatternMatchingEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from docsift.core.logging import get_logger

logger = get_logger(__name__)

FileEventCallback = Callable[[str, Path], None]


@dataclass
class WatchedSource:
    name: str
    path: Path
    include: list[str]
    exclude: list[str]
    callback: FileEventCallback


RELEVANT_EVENTS = frozenset({"created", "modified", "moved", "deleted"})


class SourceEventHandler(PatternMatchingEventHandler):
    """Report content changes under one source root to its callback.

    Directory events and metadata-only events (opened, closed) are ignored.
    """

    def __init__(self, source: WatchedSource) -> None:
        super().__init__(
            patterns=source.include or ["*"],
            ignore_patterns=source.exclude,
            ignore_directories=True,
            case_sensitive=False,
        )
        self.source = source

    def on_any_event(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        if event.event_type not in RELEVANT_EVENTS:
            return
        changed = event.dest_path if event.event_type == "moved" else event.src_path
        self.source.callback(self.source.name, Path(changed))


class ChangeTracker:
    """Thread-safe record of the most recent change per source.

    Observer threads call :meth:`record`; the sync loop asks which sources
    have been quiet for at least ``settle_seconds``.
    """

    def __init__(self, settle_seconds: float = 2.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.settle_seconds = settle_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._last_change: Dict[str, float] = {}

    def record(self, source_name: str, path: Path) -> None:
        with self._lock:
            self._last_change[source_name] = self._clock()
        logger.debug("Change detected in %s: %s", source_name, path)

    def pop_settled(self) -> list[str]:
        now = self._clock()
        with self._lock:
            settled = [
                name for name, changed_at in self._last_change.items() if now - changed_at >= self.settle_seconds
            ]
            for name in settled:
                del self._last_change[name]
        return sorted(settled)

    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._last_change)


class Watcher:
    """High-level wrapper around watchdog observers."""

    def __init__(self) -> None:
        self._observer: BaseObserver = Observer()
        self._lock = threading.Lock()
        self._sources: Dict[str, WatchedSource] = {}
        self._started = False

    def add_source(
        self,
        name: str,
        path: Path,
        callback: FileEventCallback,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        recursive: bool = True,
    ) -> None:
        normalized_path = path.expanduser().resolve()
        watched = WatchedSource(
            name=name,
            path=normalized_path,
            include=include or ["*"],
            exclude=exclude or [],
            callback=callback,
        )
        handler = SourceEventHandler(watched)
        with self._lock:
            self._observer.schedule(event_handler=handler, path=str(normalized_path), recursive=recursive)
            self._sources[name] = watched

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._observer.start()
            self._started = True

    def stop(self) -> None:
        with self._lock:
            if not self._started:
                return
            self._observer.stop()
            self._observer.join(timeout=5)
            self._started = False

    def close(self) -> None:
        self.stop()
        with self._lock:
            self._observer.unschedule_all()
            self._sources.clear()


async def resync_on_change(
    tracker: ChangeTracker,
    sync: Callable[[str], Awaitable[object]],
    stop: asyncio.Event,
    poll_interval: float = 0.5,
) -> int:
    """Run ``sync(name)`` for each source whose changes have settled until ``stop`` is set.

    Returns the number of syncs performed. Syncs run one at a time.
    """
    runs = 0
    while not stop.is_set():
        for name in tracker.pop_settled():
            logger.info("Re-syncing %s after filesystem changes", name)
            await sync(name)
            runs += 1
        try:
            await asyncio.wait_for(stop.wait(), timeout=poll_interval)
        except asyncio.TimeoutError:
            continue
    return runs


def watch_patterns(extensions: frozenset[str], excluded_directories: frozenset[str]) -> tuple[list[str], list[str]]:
    """Translate connector filters into watchdog include / ignore patterns."""
    include = sorted(f"*{extension}" for extension in extensions)
    exclude = sorted(f"*/{directory}/*" for directory in excluded_directories)
    return include, exclude


__all__ = ["Watcher", "ChangeTracker", "FileEventCallback", "resync_on_change", "watch_patterns"]
