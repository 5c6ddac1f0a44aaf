"""Filesystem accessor for the notes tree."""

import stat
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import structlog

from mdump.notes.paths import (
    HIDDEN_PREFIX,
    is_markdown_file,
    relative_note_path,
    sandbox_path,
)

logger = structlog.get_logger()

MAX_DEPTH = 32


class NoteStoreError(Exception):
    """Raised when a note cannot be read from the notes tree."""

    def __init__(self, message: str, path: str, code: str | None = None) -> None:
        """Initialize note store error.

        Args:
            message: Error description.
            path: Relative path that caused the error.
            code: Optional error code (e.g., ENOENT).
        """
        super().__init__(message)
        self.path = path
        self.code = code


class NoteNotFoundError(NoteStoreError):
    """Raised when a note path no longer exists."""


class NotMarkdownError(NoteStoreError):
    """Raised when a path exists but is not a markdown document."""


@dataclass(frozen=True)
class DocumentEntry:
    """A node of the notes tree.

    Attributes:
        path: POSIX path relative to the notes root.
        is_directory: Whether the entry is a folder.
    """

    path: str
    is_directory: bool


class NoteStore:
    """Sandboxed, read-only view of the notes directory."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        """Notes root directory."""
        return self._root

    def resolve(self, relative: str) -> Path:
        """Resolve a relative note path inside the sandbox.

        Raises:
            SecurityError: If the path escapes the notes root.
        """
        return sandbox_path(self._root, relative)

    def normalize(self, relative: str) -> str:
        """Return the canonical form of a note path.

        "./a.md", "x/../a.md" and "//a.md" all become "a.md"; the root
        itself becomes "".

        Raises:
            SecurityError: If the path escapes the notes root.
        """
        canonical = relative_note_path(self._root, self.resolve(relative))
        if canonical is None or canonical == ".":
            return ""
        return canonical

    def list_documents(self, relative: str = "") -> Iterator[DocumentEntry]:
        """Recursively enumerate the tree below a folder.

        Hidden entries and symlinks are skipped, as is everything below
        them. Unreadable folders are logged and yield no children.

        Args:
            relative: Folder to start from, relative to the notes root.

        Yields:
            One DocumentEntry per folder and file, parents before children.
        """
        start = self.resolve(relative)
        if not start.is_dir():
            return
        prefix = relative.strip("/")
        yield from self._walk(start, prefix, 0)

    def _walk(self, directory: Path, prefix: str, depth: int) -> Iterator[DocumentEntry]:
        if depth > MAX_DEPTH:
            logger.warning("notes_walk_depth_exceeded", path=prefix)
            return

        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.warning("notes_directory_unreadable", path=prefix, error=str(e))
            return

        for entry in entries:
            if entry.name.startswith(HIDDEN_PREFIX):
                continue

            try:
                mode = entry.lstat().st_mode
            except OSError:
                continue

            rel = f"{prefix}/{entry.name}" if prefix else entry.name

            if stat.S_ISDIR(mode):
                yield DocumentEntry(path=rel, is_directory=True)
                yield from self._walk(entry, rel, depth + 1)
            elif stat.S_ISREG(mode):
                yield DocumentEntry(path=rel, is_directory=False)

    def iter_markdown(self) -> Iterator[str]:
        """Yield the relative path of every markdown note in the tree."""
        for entry in self.list_documents():
            if not entry.is_directory and is_markdown_file(entry.path):
                yield entry.path

    def read_document(self, relative: str) -> str:
        """Read the text of a markdown note.

        Args:
            relative: Note path relative to the notes root.

        Returns:
            The note's full UTF-8 text.

        Raises:
            SecurityError: If the path escapes the notes root.
            NoteNotFoundError: If the note does not exist.
            NotMarkdownError: If the path is not a markdown file.
            NoteStoreError: If the file cannot be read or decoded.
        """
        filepath = self.resolve(relative)

        if not is_markdown_file(filepath):
            raise NotMarkdownError(f"Not a markdown document: {relative}", relative)

        try:
            return filepath.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise NoteNotFoundError(
                f"Note not found: {relative}", relative, "ENOENT"
            ) from e
        except IsADirectoryError as e:
            raise NotMarkdownError(
                f"Not a markdown document: {relative}", relative, "EISDIR"
            ) from e
        except PermissionError as e:
            raise NoteStoreError(
                f"Permission denied: {relative}", relative, "EACCES"
            ) from e
        except UnicodeDecodeError as e:
            raise NoteStoreError(
                f"Note is not valid UTF-8: {relative}", relative, "EILSEQ"
            ) from e
        except OSError as e:
            raise NoteStoreError(
                f"Failed to read note: {e}", relative, str(e.errno) if e.errno else None
            ) from e
