"""Sandboxed path handling for the notes root."""
from pathlib import Path, PurePosixPath

HIDDEN_PREFIX = "."
MARKDOWN_EXTENSION = ".md"


class SecurityError(Exception):
    """Raised when a path operation violates security constraints."""

    def __init__(self, message: str, path: str) -> None:
        """Initialize security error.

        Args:
            message: Error description.
            path: The offending path value.
        """
        super().__init__(message)
        self.path = path


def sandbox_path(root: Path, relative: str) -> Path:
    """Resolve a note path to an absolute path inside the notes root.

    Args:
        root: Notes root directory.
        relative: Path relative to the root, with either separator.

    Returns:
        Absolute Path object for the resolved location.

    Raises:
        SecurityError: If the path contains null bytes or resolves
            outside the notes root.
    """
    if "\0" in relative:
        raise SecurityError("Path contains null byte", relative)

    root_path = root.resolve()
    cleaned = relative.replace("\\", "/").lstrip("/")
    resolved = (root_path / cleaned).resolve()

    if resolved != root_path and root_path not in resolved.parents:
        raise SecurityError(f"Path resolves outside notes root: {root_path}", relative)

    return resolved


def relative_note_path(root: Path, absolute: str | Path) -> str | None:
    """Convert an absolute path to a POSIX path relative to the notes root.

    Args:
        root: Notes root directory.
        absolute: Absolute filesystem path.

    Returns:
        Relative path using forward slashes, or None if outside the root.
    """
    try:
        rel = Path(absolute).resolve().relative_to(root.resolve())
    except ValueError:
        return None
    return rel.as_posix()


def is_hidden_path(relative: str) -> bool:
    """Check if any segment of a relative path is hidden.

    A bare "." segment does not count as hidden.

    Args:
        relative: Path relative to the notes root.

    Returns:
        True if the path is, or lives under, a hidden entry.
    """
    parts = relative.replace("\\", "/").split("/")
    return any(part.startswith(HIDDEN_PREFIX) and len(part) > 1 for part in parts)


def is_markdown_file(name: str | Path) -> bool:
    """Check if a filename has the markdown extension (case-insensitive)."""
    return PurePosixPath(str(name)).suffix.lower() == MARKDOWN_EXTENSION


def note_name(relative: str) -> str:
    """Return the basename of a note path without its extension."""
    return PurePosixPath(relative.replace("\\", "/")).stem
