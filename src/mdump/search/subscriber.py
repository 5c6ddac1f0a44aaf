"""Event bus subscriber keeping the search index in sync with the notes."""

import asyncio

import structlog

from mdump.events.bus import EventBus
from mdump.events.types import FileChangeEvent, FileEventType
from mdump.notes import is_hidden_path, is_markdown_file
from mdump.search.index import SearchIndex
from mdump.search.saver import SnapshotSaver

logger = structlog.get_logger()

_UPSERT_EVENTS: frozenset[FileEventType] = frozenset(
    {FileEventType.CREATED, FileEventType.MODIFIED}
)


async def apply_change(search_index: SearchIndex, event: FileChangeEvent) -> bool:
    """Apply one change event to the index.

    Created and modified notes are (re)indexed, deleted notes removed.
    A deleted folder removes every note below it. Events without a path,
    on hidden paths, on non-markdown files or of other types are ignored.

    Args:
        search_index: Index to update.
        event: Normalized change event.

    Returns:
        True if the index may have changed and needs saving.
    """
    path = event.path
    if not path or is_hidden_path(path):
        return False

    if event.is_directory:
        if event.type is not FileEventType.DELETED:
            return False
        removed = await asyncio.to_thread(search_index.remove_prefix, path)
        return removed > 0

    if not is_markdown_file(path):
        return False

    if event.type in _UPSERT_EVENTS:
        await asyncio.to_thread(search_index.index_document, path)
    elif event.type is FileEventType.DELETED:
        await asyncio.to_thread(search_index.remove_document, path)
    else:
        return False
    return True


async def run_search_subscriber(
    event_bus: EventBus,
    search_index: SearchIndex,
    saver: SnapshotSaver,
) -> None:
    """Subscribe to note changes and update the search index.

    Runs as a long-lived asyncio task. Events are applied in the order
    they arrive; every applied event requests a snapshot save.

    Args:
        event_bus: Application event bus instance.
        search_index: Active search index to update.
        saver: Scheduler for snapshot writes.
    """
    subscriber_id, events = await event_bus.subscribe(lossless=True)
    logger.info("search_subscriber_started", subscriber_id=subscriber_id)

    try:
        async for event in events:
            try:
                applied = await apply_change(search_index, event)
            except Exception:
                logger.exception(
                    "search_subscriber_event_failed",
                    event_type=event.type.value,
                    path=event.path,
                )
                continue
            if applied:
                saver.request()
    except asyncio.CancelledError:
        logger.info("search_subscriber_stopped", subscriber_id=subscriber_id)
        raise
