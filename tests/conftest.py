"""Pytest configuration and fixtures."""

import sys
from collections.abc import Callable, Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from mdump.app import create_app
from mdump.config import Settings
from mdump.notes import NoteStore
from mdump.search import SearchIndex

WriteNote = Callable[[str, str], Path]


@pytest.fixture
def notes_dir(tmp_path: Path) -> Path:
    """Empty notes root."""
    path = tmp_path / "data" / "notes"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    """Snapshot location outside the notes tree."""
    return tmp_path / "data" / ".search-index.json"


@pytest.fixture
def write_note(notes_dir: Path) -> WriteNote:
    """Write a note below the notes root, creating folders as needed."""

    def _write(relative: str, content: str) -> Path:
        path = notes_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def store(notes_dir: Path) -> NoteStore:
    """Accessor for the temporary notes tree."""
    return NoteStore(notes_dir)


@pytest.fixture
def make_index(store: NoteStore, snapshot_path: Path) -> Iterator[Callable[[], SearchIndex]]:
    """Factory for independent indexes sharing the notes tree and snapshot."""
    created: list[SearchIndex] = []

    def _make() -> SearchIndex:
        index = SearchIndex(store, snapshot_path)
        created.append(index)
        return index

    yield _make

    for index in created:
        index.close()


@pytest.fixture
def sample_notes(write_note: WriteNote) -> None:
    """Two notes sharing the word "roadmap"."""
    write_note("a.md", "# Project Plan\n\nroadmap and milestones")
    write_note("b/c.md", "# Notes\n\nroadmap changes for Q3")


@pytest.fixture
def index(make_index: Callable[[], SearchIndex], sample_notes: None) -> SearchIndex:
    """Warm index over the sample notes."""
    search_index = make_index()
    search_index.build()
    return search_index


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create test settings."""
    return Settings(
        host="127.0.0.1",
        port=8080,
        debug=True,
        data_dir=tmp_path / "data",
        watch_enabled=False,
    )


@pytest.fixture
def client(settings: Settings, sample_notes: None) -> Iterator[TestClient]:
    """Test client with the lifespan (index build) running."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
