"""Bridge from the watcher to the event bus and SSE clients."""

import asyncio
import contextlib
import uuid
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import structlog
from sse_starlette import ServerSentEvent
from watchdog.events import FileSystemEvent

from mdump.events.bus import EventBus
from mdump.events.normalizer import normalize_event
from mdump.events.types import FileChangeEvent, FileEventType

logger = structlog.get_logger()

# Changes buffered per client while it is slow to read.
CLIENT_BUFFER = 10


def _heartbeat() -> FileChangeEvent:
    return FileChangeEvent(
        id=str(uuid.uuid4()),
        type=FileEventType.HEARTBEAT,
        timestamp=datetime.now(UTC),
    )


def _to_sse(event: FileChangeEvent) -> ServerSentEvent:
    return ServerSentEvent(
        id=event.id,
        event=event.type.value,
        data=event.model_dump_json(exclude_none=True),
    )


async def _forward(
    changes: AsyncIterator[FileChangeEvent],
    buffer: "asyncio.Queue[FileChangeEvent]",
) -> None:
    async for event in changes:
        await buffer.put(event)


class BroadcastHub:
    """Publishes note changes and streams them to SSE clients.

    The watcher hands raw events to on_filesystem_event(); each SSE
    client gets its own scoped bus subscription plus heartbeats when
    the notes tree is quiet.
    """

    def __init__(
        self,
        event_bus: EventBus,
        root: Path,
        heartbeat_interval: float = 15.0,
    ) -> None:
        """Initialize broadcast hub.

        Args:
            event_bus: Bus the index subscriber and SSE clients read from.
            root: Notes root used to relativize watcher paths.
            heartbeat_interval: Seconds of silence before a heartbeat.
        """
        self._bus = event_bus
        self._root = Path(root)
        self._heartbeat_interval = heartbeat_interval
        self._active_connections = 0
        self._published = 0

    @property
    def active_connections(self) -> int:
        """Number of open SSE streams."""
        return self._active_connections

    async def on_filesystem_event(self, raw_event: FileSystemEvent) -> None:
        """Publish a debounced watcher event if it concerns a note."""
        event = normalize_event(raw_event, self._root)
        if event is None:
            return

        delivered = await self._bus.publish(event)
        self._published += 1
        logger.info(
            "note_changed",
            event_type=event.type.value,
            path=event.path,
            delivered_to=delivered,
        )

    async def create_sse_generator(
        self,
        scope: str = "",
    ) -> AsyncIterator[ServerSentEvent]:
        """Stream note changes below a folder to one client.

        Args:
            scope: Folder prefix; empty for the whole notes tree.

        Yields:
            One server-sent event per change or heartbeat.
        """
        subscriber_id, changes = await self._bus.subscribe(scope)
        buffer: asyncio.Queue[FileChangeEvent] = asyncio.Queue(maxsize=CLIENT_BUFFER)
        forwarder = asyncio.create_task(_forward(changes, buffer))

        self._active_connections += 1
        logger.info(
            "sse_client_connected",
            subscriber_id=subscriber_id,
            scope=scope,
            active_connections=self._active_connections,
        )

        try:
            while True:
                try:
                    event = await asyncio.wait_for(buffer.get(), self._heartbeat_interval)
                except TimeoutError:
                    event = _heartbeat()
                yield _to_sse(event)
        finally:
            forwarder.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await forwarder
            self._active_connections -= 1
            logger.info(
                "sse_client_disconnected",
                subscriber_id=subscriber_id,
                active_connections=self._active_connections,
            )

    async def shutdown(self) -> None:
        """Log hub statistics at shutdown."""
        logger.info(
            "broadcast_hub_shutdown",
            active_connections=self._active_connections,
            published_events=self._published,
            dropped_events=self._bus.dropped_events,
        )
