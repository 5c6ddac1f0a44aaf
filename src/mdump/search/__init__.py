"""Full-text search over the notes with snapshot persistence and live sync."""

from mdump.search.index import SearchIndex
from mdump.search.saver import SnapshotSaver
from mdump.search.schemas import (
    DocumentIndexResponse,
    ReindexResponse,
    SearchField,
    SearchMatch,
    SearchResponse,
    SearchResult,
    SuggestResponse,
)
from mdump.search.snapshot import Snapshot, SnapshotError
from mdump.search.subscriber import apply_change, run_search_subscriber

__all__ = [
    "DocumentIndexResponse",
    "ReindexResponse",
    "SearchField",
    "SearchIndex",
    "SearchMatch",
    "SearchResponse",
    "SearchResult",
    "Snapshot",
    "SnapshotError",
    "SnapshotSaver",
    "SuggestResponse",
    "apply_change",
    "run_search_subscriber",
]
