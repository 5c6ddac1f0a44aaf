"""Coalescing scheduler for search snapshot writes."""

import asyncio
import contextlib

import structlog

from mdump.search.index import SearchIndex

logger = structlog.get_logger()


class SnapshotSaver:
    """Single-slot queue of pending snapshot saves.

    At most one save runs at a time. Requests arriving while a save is
    in flight mark the saver dirty, and exactly one follow-up save runs
    once the current one finishes, so a burst of changes costs at most
    two writes and the last write always reflects the latest state.

    Attributes:
        timeout: Seconds after which a save is logged and abandoned.
    """

    def __init__(self, index: SearchIndex, timeout: float = 10.0) -> None:
        """Initialize snapshot saver.

        Args:
            index: Index whose state is persisted.
            timeout: Seconds to wait for each save before giving up on it.
        """
        self._index = index
        self._timeout = timeout
        self._dirty = False
        self._task: asyncio.Task[None] | None = None
        self._completed = 0
        self._failed = 0

    @property
    def timeout(self) -> float:
        """Seconds to wait for each save."""
        return self._timeout

    @property
    def is_saving(self) -> bool:
        """Whether a save is currently in flight."""
        return self._task is not None and not self._task.done()

    @property
    def completed_saves(self) -> int:
        """Number of snapshot saves that succeeded."""
        return self._completed

    @property
    def failed_saves(self) -> int:
        """Number of snapshot saves that failed or timed out."""
        return self._failed

    def request(self) -> None:
        """Ask for the current index state to be persisted.

        Must be called from the event loop thread.
        """
        if self.is_saving:
            self._dirty = True
            return
        self._dirty = False
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            await self._save_once()
            if not self._dirty:
                return
            self._dirty = False
            logger.debug("search_snapshot_resave")

    async def _save_once(self) -> None:
        try:
            saved = await asyncio.wait_for(
                asyncio.to_thread(self._index.save),
                timeout=self._timeout,
            )
        except TimeoutError:
            logger.warning("search_snapshot_timeout", timeout_seconds=self._timeout)
            self._failed += 1
            return

        if saved:
            self._completed += 1
        else:
            self._failed += 1

    async def flush(self) -> None:
        """Wait until no save is pending or in flight."""
        while self._task is not None:
            task = self._task
            with contextlib.suppress(asyncio.CancelledError):
                await task
            if self._task is task:
                if self._dirty:
                    self._dirty = False
                    self._task = asyncio.create_task(self._run())
                else:
                    self._task = None
