"""Change notification types for the notes tree."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class FileEventType(str, Enum):
    """Kinds of change notifications."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    # Never emitted: renames arrive as a delete of the old path plus a create.
    RENAMED = "renamed"
    HEARTBEAT = "heartbeat"


TEMP_FILE_PATTERNS: tuple[str, ...] = (
    ".swp",
    ".swo",
    ".swn",
    ".tmp",
    ".temp",
    "~",
    ".DS_Store",
    ".4913",
)


class FileChangeEvent(BaseModel):
    """A note changed on disk.

    Attributes:
        id: Unique event identifier (UUID).
        type: What happened to the note.
        timestamp: Event timestamp in UTC.
        path: Note path relative to the notes root (None for heartbeats).
        old_path: Previous path of a renamed note.
        is_directory: Whether the path names a folder (folder deletes only).
    """

    id: str = Field(description="Unique event identifier (UUID)")
    type: FileEventType = Field(description="Event type")
    timestamp: datetime = Field(description="Event timestamp (UTC)")
    path: str | None = Field(default=None, description="Relative note path")
    old_path: str | None = Field(default=None, description="Previous relative path")
    is_directory: bool = Field(default=False, description="Path is a folder")
