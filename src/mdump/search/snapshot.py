"""On-disk snapshot of the search index."""

import base64
import binascii
import json
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

SNAPSHOT_VERSION = 1
SNAPSHOT_FORMAT = "sqlite-fts5"


class SnapshotError(Exception):
    """Raised when a snapshot is unreadable or incompatible."""

    def __init__(self, message: str, path: str) -> None:
        """Initialize snapshot error.

        Args:
            message: Error description.
            path: Snapshot file location.
        """
        super().__init__(message)
        self.path = path


class Snapshot(BaseModel):
    """Persisted index state.

    Attributes:
        version: Layout version; mismatches force a rebuild.
        format: Identifier of the serialization routine behind data.
        data: Opaque, base64-encoded index blob.
        paths: Tracked note paths at the time of the snapshot.
    """

    version: int = SNAPSHOT_VERSION
    format: str = SNAPSHOT_FORMAT
    data: str = Field(description="Base64-encoded serialized index")
    paths: list[str]

    @classmethod
    def from_bytes(cls, blob: bytes, paths: list[str]) -> "Snapshot":
        """Wrap a raw index blob."""
        return cls(data=base64.b64encode(blob).decode("ascii"), paths=paths)

    def blob(self) -> bytes:
        """Decode the index blob.

        Raises:
            ValueError: If data is not valid base64.
        """
        try:
            return base64.b64decode(self.data, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Snapshot data is not base64: {e}") from e


def read_snapshot(path: Path) -> Snapshot | None:
    """Load a snapshot file.

    Args:
        path: Snapshot location.

    Returns:
        The parsed snapshot, or None if no file exists.

    Raises:
        SnapshotError: If the file is unreadable, malformed or was
            written by an incompatible version.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotError(f"Cannot read snapshot: {e}", str(path)) from e

    try:
        snapshot = Snapshot.model_validate_json(raw)
    except ValidationError as e:
        raise SnapshotError(f"Malformed snapshot: {e}", str(path)) from e

    if snapshot.version != SNAPSHOT_VERSION or snapshot.format != SNAPSHOT_FORMAT:
        raise SnapshotError(
            f"Incompatible snapshot {snapshot.format} v{snapshot.version}",
            str(path),
        )

    return snapshot


def write_snapshot(path: Path, snapshot: Snapshot) -> None:
    """Atomically replace the snapshot file.

    The payload goes to a temporary file in the same directory which is
    then renamed over the target, so readers never see a partial file.

    Args:
        path: Snapshot location.
        snapshot: State to persist.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(snapshot.model_dump(), separators=(",", ":"))

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
