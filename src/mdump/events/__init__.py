"""Change notification for the notes tree: watcher, bus and SSE hub."""
from mdump.events.bus import EventBus
from mdump.events.hub import BroadcastHub
from mdump.events.types import FileChangeEvent, FileEventType
from mdump.events.watcher import FilesystemWatcher

__all__ = [
    "BroadcastHub",
    "EventBus",
    "FileChangeEvent",
    "FileEventType",
    "FilesystemWatcher",
]
