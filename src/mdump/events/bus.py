"""In-memory pub/sub for note change events."""
import asyncio
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass

import structlog

from mdump.events.types import FileChangeEvent

logger = structlog.get_logger()


@dataclass
class _Subscription:
    scope: str
    queue: "asyncio.Queue[FileChangeEvent]"

    def wants(self, event: FileChangeEvent) -> bool:
        if not self.scope or event.path is None:
            return True
        return event.path.startswith(self.scope)


class EventBus:
    """Async event bus with scoped fan-out and backpressure.

    Each subscriber owns a queue. Bounded queues drop their oldest
    event on overflow; lossless subscribers get an unbounded queue.

    Attributes:
        queue_size: Maximum size of each bounded subscriber queue.
        max_subscribers: Maximum number of concurrent subscribers.
    """

    def __init__(
        self,
        queue_size: int = 100,
        max_subscribers: int = 100,
    ) -> None:
        """Initialize event bus.

        Args:
            queue_size: Maximum items per bounded subscriber queue.
            max_subscribers: Maximum concurrent subscribers allowed.
        """
        self._subscribers: dict[str, _Subscription] = {}
        self._queue_size = queue_size
        self._max_subscribers = max_subscribers
        self._dropped_count = 0
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        """Number of active subscribers."""
        return len(self._subscribers)

    @property
    def dropped_events(self) -> int:
        """Total number of events dropped due to queue overflow."""
        return self._dropped_count

    async def publish(self, event: FileChangeEvent) -> int:
        """Deliver an event to every subscriber whose scope covers it.

        Args:
            event: Change event to publish.

        Returns:
            Number of subscribers that received the event.
        """
        delivered = 0

        for subscription in list(self._subscribers.values()):
            if not subscription.wants(event):
                continue
            queue = subscription.queue
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                try:
                    queue.get_nowait()
                    queue.put_nowait(event)
                    delivered += 1
                    self._dropped_count += 1
                except asyncio.QueueEmpty:
                    pass

        return delivered

    async def subscribe(
        self,
        scope: str = "",
        lossless: bool = False,
    ) -> tuple[str, AsyncIterator[FileChangeEvent]]:
        """Subscribe to change events.

        Args:
            scope: Path prefix filter; empty for every event.
            lossless: Use an unbounded queue so no event is ever dropped.

        Returns:
            Tuple of (subscriber_id, event_iterator).

        Raises:
            ValueError: If maximum subscribers reached.
        """
        async with self._lock:
            if self.subscriber_count >= self._max_subscribers:
                raise ValueError("Maximum subscribers reached")

            subscriber_id = str(uuid.uuid4())
            queue: asyncio.Queue[FileChangeEvent] = asyncio.Queue(
                maxsize=0 if lossless else self._queue_size,
            )
            self._subscribers[subscriber_id] = _Subscription(
                scope=scope.strip("/"),
                queue=queue,
            )

        async def event_iterator() -> AsyncIterator[FileChangeEvent]:
            try:
                while True:
                    event = await queue.get()
                    yield event
            finally:
                await self.unsubscribe(subscriber_id)

        return subscriber_id, event_iterator()

    async def unsubscribe(self, subscriber_id: str) -> None:
        """Remove a subscriber from the bus.

        Args:
            subscriber_id: ID of the subscriber to remove.
        """
        async with self._lock:
            if self._subscribers.pop(subscriber_id, None) is not None:
                logger.debug("subscriber_removed", subscriber_id=subscriber_id)
