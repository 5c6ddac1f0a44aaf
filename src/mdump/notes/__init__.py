"""Read-only access to the markdown notes tree."""

from mdump.notes.paths import (
    SecurityError,
    is_hidden_path,
    is_markdown_file,
    note_name,
    relative_note_path,
    sandbox_path,
)
from mdump.notes.store import (
    DocumentEntry,
    NoteNotFoundError,
    NoteStore,
    NoteStoreError,
    NotMarkdownError,
)

__all__ = [
    "DocumentEntry",
    "NoteNotFoundError",
    "NoteStore",
    "NoteStoreError",
    "NotMarkdownError",
    "SecurityError",
    "is_hidden_path",
    "is_markdown_file",
    "note_name",
    "relative_note_path",
    "sandbox_path",
]
