"""Async-friendly watcher for the notes tree with debouncing."""

import asyncio
import threading
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

import structlog
from watchdog.events import (
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from mdump.events.normalizer import decode_path
from mdump.events.types import TEMP_FILE_PATTERNS

logger = structlog.get_logger()

EventCallback = Callable[[FileSystemEvent], Coroutine[Any, Any, None]]

# Structural events share a priority so the latest one wins; modifications
# never override a pending create or delete. Of folder events only deletes
# matter: created and moved-in folders report their files individually.
EVENT_PRIORITY: dict[type[FileSystemEvent], int] = {
    FileCreatedEvent: 2,
    FileDeletedEvent: 2,
    DirDeletedEvent: 2,
    FileModifiedEvent: 1,
}


def is_temp_file(path: str) -> bool:
    """Check if path is an editor or OS temporary file.

    Args:
        path: File path to check.

    Returns:
        True if the file should be ignored.
    """
    name = Path(path).name
    return any(
        name.endswith(pattern) or name.startswith(pattern.lstrip("."))
        for pattern in TEMP_FILE_PATTERNS
    )


def get_event_priority(event: FileSystemEvent) -> int:
    """Priority of an event type during debouncing (0 = ignored)."""
    return EVENT_PRIORITY.get(type(event), 0)


def split_move(event: FileMovedEvent) -> tuple[FileDeletedEvent, FileCreatedEvent]:
    """Express a move as a delete of the old path and a create of the new."""
    return (
        FileDeletedEvent(decode_path(event.src_path)),
        FileCreatedEvent(decode_path(event.dest_path)),
    )


class DebouncingHandler(FileSystemEventHandler):
    """Watchdog event handler with per-path debouncing.

    Events for the same path within the debounce window are coalesced
    into one. A pending create or delete is never downgraded to a
    modification; between structural events the latest wins.

    Attributes:
        debounce_ms: Debounce window in milliseconds.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: EventCallback,
        debounce_ms: int = 500,
    ) -> None:
        """Initialize debouncing handler.

        Args:
            loop: Event loop for scheduling async callbacks.
            callback: Async function to call with debounced events.
            debounce_ms: Debounce window in milliseconds.
        """
        super().__init__()
        self._loop = loop
        self._callback = callback
        self._debounce_ms = debounce_ms
        self._pending: dict[str, tuple[threading.Timer, FileSystemEvent, int]] = {}
        self._lock = threading.Lock()
        self._coalesced_count = 0

    @property
    def debounce_ms(self) -> int:
        """Debounce window in milliseconds."""
        return self._debounce_ms

    @property
    def coalesced_events(self) -> int:
        """Number of events coalesced by debouncing."""
        return self._coalesced_count

    def _emit_event(self, path: str) -> None:
        """Hand a debounced event to the async callback.

        Args:
            path: Path key for the pending event.
        """
        with self._lock:
            entry = self._pending.pop(path, None)
            if entry is None:
                return
            _, event, _ = entry

        logger.debug("watcher_emit", path=path, event_type=event.event_type)
        try:
            future = asyncio.run_coroutine_threadsafe(self._callback(event), self._loop)
            future.result(timeout=5.0)
        except Exception as e:
            logger.error("watcher_callback_error", error=str(e), path=path)

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle a raw filesystem event.

        Args:
            event: Raw watchdog filesystem event.
        """
        if isinstance(event, DirMovedEvent):
            # The files below the destination arrive as their own events.
            self._schedule(DirDeletedEvent(decode_path(event.src_path)))
            return

        if isinstance(event, FileMovedEvent):
            for part in split_move(event):
                self._schedule(part)
            return

        self._schedule(event)

    def _schedule(self, event: FileSystemEvent) -> None:
        path = decode_path(event.src_path)
        if is_temp_file(path):
            return

        priority = get_event_priority(event)
        if priority == 0:
            return

        with self._lock:
            existing = self._pending.get(path)
            use_event, use_priority = event, priority

            if existing is not None:
                timer, stored_event, stored_priority = existing
                timer.cancel()
                if priority < stored_priority:
                    use_event, use_priority = stored_event, stored_priority
                self._coalesced_count += 1

            timer = threading.Timer(
                self._debounce_ms / 1000.0,
                self._emit_event,
                args=(path,),
            )
            timer.daemon = True
            self._pending[path] = (timer, use_event, use_priority)
            timer.start()

    def cancel_all(self) -> None:
        """Cancel all pending timers during shutdown."""
        with self._lock:
            for timer, _, _ in self._pending.values():
                timer.cancel()
            self._pending.clear()


class FilesystemWatcher:
    """Watches the notes root for changes.

    Wraps a watchdog Observer and DebouncingHandler behind a
    start/stop interface.

    Attributes:
        root: Directory being watched (recursively).
    """

    def __init__(
        self,
        root: Path,
        loop: asyncio.AbstractEventLoop,
        on_event: EventCallback,
        debounce_ms: int = 500,
    ) -> None:
        """Initialize filesystem watcher.

        Args:
            root: Notes root to watch.
            loop: Event loop for async callbacks.
            on_event: Async callback for filesystem events.
            debounce_ms: Debounce window in milliseconds.
        """
        self._root = Path(root)
        self._handler = DebouncingHandler(loop, on_event, debounce_ms)
        self._observer: Observer | None = None  # pyright: ignore[reportInvalidTypeForm]

    @property
    def root(self) -> Path:
        """Directory being watched."""
        return self._root

    @property
    def is_running(self) -> bool:
        """Whether the observer thread is active."""
        return self._observer is not None

    @property
    def coalesced_events(self) -> int:
        """Number of events coalesced by debouncing."""
        return self._handler.coalesced_events

    def start(self) -> None:
        """Start the filesystem observer.

        Raises:
            ValueError: If the root does not exist or is not a directory.
        """
        if not self._root.exists():
            raise ValueError(f"Watch path does not exist: {self._root}")
        if not self._root.is_dir():
            raise ValueError(f"Watch path is not a directory: {self._root}")

        observer = Observer()
        observer.schedule(self._handler, str(self._root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("watcher_started", root=str(self._root))

    def stop(self) -> None:
        """Stop the filesystem observer."""
        self._handler.cancel_all()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None

        logger.info("watcher_stopped")
