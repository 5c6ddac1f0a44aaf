"""Translation of raw watchdog events into note change events."""

import uuid
from datetime import UTC, datetime
from pathlib import Path

import structlog
from watchdog.events import (
    DirDeletedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileSystemEvent,
)

from mdump.events.types import FileChangeEvent, FileEventType
from mdump.notes import is_hidden_path, is_markdown_file, relative_note_path

logger = structlog.get_logger()

_TYPE_MAP: dict[type[FileSystemEvent], FileEventType] = {
    FileCreatedEvent: FileEventType.CREATED,
    FileModifiedEvent: FileEventType.MODIFIED,
    FileDeletedEvent: FileEventType.DELETED,
}


def decode_path(raw: str | bytes) -> str:
    """Return a watchdog path as text."""
    if isinstance(raw, str):
        return raw
    return bytes(raw).decode("utf-8", errors="replace")


def normalize_event(raw_event: FileSystemEvent, root: Path) -> FileChangeEvent | None:
    """Transform a raw filesystem event into a note change event.

    Events outside the notes root, on hidden paths, on non-markdown
    files, or of unsupported kinds are dropped. A deleted folder is
    kept as a single folder event covering every note below it.

    Args:
        raw_event: Raw watchdog filesystem event.
        root: Notes root directory.

    Returns:
        Normalized change event, or None if the event should be dropped.
    """
    is_directory = isinstance(raw_event, DirDeletedEvent)
    event_type = FileEventType.DELETED if is_directory else _TYPE_MAP.get(type(raw_event))
    if event_type is None:
        return None

    path_str = decode_path(raw_event.src_path)
    relative = relative_note_path(root, path_str)

    if relative is None:
        logger.warning("event_outside_root", path=path_str)
        return None

    if relative == "." or is_hidden_path(relative):
        return None
    if not is_directory and not is_markdown_file(relative):
        return None

    return FileChangeEvent(
        id=str(uuid.uuid4()),
        type=event_type,
        timestamp=datetime.now(UTC),
        path=relative,
        is_directory=is_directory,
    )
