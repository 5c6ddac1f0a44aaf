"""Watcher event normalization, debouncing and bus fan-out."""

import asyncio
import uuid
from datetime import UTC, datetime
from pathlib import Path

import pytest
from watchdog.events import (
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
)

from mdump.events import BroadcastHub, EventBus, FileChangeEvent, FileEventType
from mdump.events.normalizer import normalize_event
from mdump.events.watcher import DebouncingHandler, is_temp_file, split_move


def _event(path: str | None, event_type: FileEventType = FileEventType.MODIFIED) -> FileChangeEvent:
    return FileChangeEvent(
        id=str(uuid.uuid4()),
        type=event_type,
        timestamp=datetime.now(UTC),
        path=path,
    )


class TestNormalizer:
    """Raw watchdog events to note change events."""

    @pytest.mark.parametrize(
        ("raw_type", "expected"),
        [
            (FileCreatedEvent, FileEventType.CREATED),
            (FileModifiedEvent, FileEventType.MODIFIED),
            (FileDeletedEvent, FileEventType.DELETED),
        ],
    )
    def test_maps_event_types(
        self, notes_dir: Path, raw_type: type[FileSystemEvent], expected: FileEventType
    ) -> None:
        event = normalize_event(raw_type(str(notes_dir / "b" / "c.md")), notes_dir)

        assert event is not None
        assert event.type is expected
        assert event.path == "b/c.md"

    @pytest.mark.parametrize("relative", [".hidden.md", "x/.trash/y.md", "picture.png"])
    def test_drops_ineligible_paths(self, notes_dir: Path, relative: str) -> None:
        assert normalize_event(FileCreatedEvent(str(notes_dir / relative)), notes_dir) is None

    def test_drops_paths_outside_root(self, notes_dir: Path, tmp_path: Path) -> None:
        assert normalize_event(FileCreatedEvent(str(tmp_path / "elsewhere.md")), notes_dir) is None

    def test_drops_unsupported_kinds(self, notes_dir: Path) -> None:
        moved = FileMovedEvent(str(notes_dir / "a.md"), str(notes_dir / "b.md"))
        assert normalize_event(moved, notes_dir) is None
        assert normalize_event(DirModifiedEvent(str(notes_dir)), notes_dir) is None

    def test_folder_delete_keeps_folder_path(self, notes_dir: Path) -> None:
        event = normalize_event(DirDeletedEvent(str(notes_dir / "proj" / "sub")), notes_dir)

        assert event is not None
        assert event.type is FileEventType.DELETED
        assert event.is_directory is True
        assert event.path == "proj/sub"

    def test_folder_delete_of_hidden_or_root_dropped(self, notes_dir: Path) -> None:
        assert normalize_event(DirDeletedEvent(str(notes_dir / ".trash")), notes_dir) is None
        assert normalize_event(DirDeletedEvent(str(notes_dir)), notes_dir) is None


def test_split_move_is_delete_then_create() -> None:
    """A rename becomes a delete of the old path plus a create of the new."""
    deleted, created = split_move(FileMovedEvent("/n/old.md", "/n/new.md"))

    assert isinstance(deleted, FileDeletedEvent)
    assert deleted.src_path == "/n/old.md"
    assert isinstance(created, FileCreatedEvent)
    assert created.src_path == "/n/new.md"


@pytest.mark.parametrize(
    ("name", "temp"),
    [("note.md", False), ("note.md.swp", True), ("note.md~", True), (".DS_Store", True), ("4913", True)],
)
def test_is_temp_file(name: str, temp: bool) -> None:
    """Editor swap and backup files are recognised."""
    assert is_temp_file(f"/notes/{name}") is temp


class TestDebouncingHandler:
    """Coalescing of rapid events per path."""

    @pytest.mark.asyncio
    async def test_burst_collapses_to_one_event(self) -> None:
        received: list[FileSystemEvent] = []

        async def collect(event: FileSystemEvent) -> None:
            received.append(event)

        handler = DebouncingHandler(asyncio.get_running_loop(), collect, debounce_ms=50)
        for _ in range(5):
            handler.on_any_event(FileModifiedEvent("/notes/a.md"))
        await asyncio.sleep(0.4)

        assert len(received) == 1
        assert handler.coalesced_events == 4

    @pytest.mark.asyncio
    async def test_create_is_not_downgraded_by_modify(self) -> None:
        received: list[FileSystemEvent] = []

        async def collect(event: FileSystemEvent) -> None:
            received.append(event)

        handler = DebouncingHandler(asyncio.get_running_loop(), collect, debounce_ms=50)
        handler.on_any_event(FileCreatedEvent("/notes/a.md"))
        handler.on_any_event(FileModifiedEvent("/notes/a.md"))
        await asyncio.sleep(0.4)

        assert [type(e) for e in received] == [FileCreatedEvent]

    @pytest.mark.asyncio
    async def test_latest_structural_event_wins(self) -> None:
        received: list[FileSystemEvent] = []

        async def collect(event: FileSystemEvent) -> None:
            received.append(event)

        handler = DebouncingHandler(asyncio.get_running_loop(), collect, debounce_ms=50)
        handler.on_any_event(FileCreatedEvent("/notes/a.md"))
        handler.on_any_event(FileDeletedEvent("/notes/a.md"))
        await asyncio.sleep(0.4)

        assert [type(e) for e in received] == [FileDeletedEvent]

    @pytest.mark.asyncio
    async def test_move_emits_both_halves(self) -> None:
        received: list[FileSystemEvent] = []

        async def collect(event: FileSystemEvent) -> None:
            received.append(event)

        handler = DebouncingHandler(asyncio.get_running_loop(), collect, debounce_ms=50)
        handler.on_any_event(FileMovedEvent("/notes/old.md", "/notes/new.md"))
        await asyncio.sleep(0.4)

        kinds = {(type(e), e.src_path) for e in received}
        assert kinds == {(FileDeletedEvent, "/notes/old.md"), (FileCreatedEvent, "/notes/new.md")}

    @pytest.mark.asyncio
    async def test_folder_events(self) -> None:
        received: list[FileSystemEvent] = []

        async def collect(event: FileSystemEvent) -> None:
            received.append(event)

        handler = DebouncingHandler(asyncio.get_running_loop(), collect, debounce_ms=50)
        handler.on_any_event(DirModifiedEvent("/notes/kept"))
        handler.on_any_event(DirDeletedEvent("/notes/gone"))
        handler.on_any_event(DirMovedEvent("/notes/old", "/notes/new"))
        await asyncio.sleep(0.4)

        assert sorted((type(e).__name__, e.src_path) for e in received) == [
            ("DirDeletedEvent", "/notes/gone"),
            ("DirDeletedEvent", "/notes/old"),
        ]

    @pytest.mark.asyncio
    async def test_temp_files_and_cancel(self) -> None:
        received: list[FileSystemEvent] = []

        async def collect(event: FileSystemEvent) -> None:
            received.append(event)

        handler = DebouncingHandler(asyncio.get_running_loop(), collect, debounce_ms=50)
        handler.on_any_event(FileModifiedEvent("/notes/a.md.swp"))
        handler.on_any_event(FileModifiedEvent("/notes/b.md"))
        handler.cancel_all()
        await asyncio.sleep(0.2)

        assert received == []


class TestEventBus:
    """Scoped fan-out and overflow handling."""

    @pytest.mark.asyncio
    async def test_scope_filters_events(self) -> None:
        bus = EventBus()
        _, scoped = await bus.subscribe("/projects/")
        _, everything = await bus.subscribe()

        assert await bus.publish(_event("projects/plan.md")) == 2
        assert await bus.publish(_event("journal/today.md")) == 1

        assert (await anext(scoped)).path == "projects/plan.md"
        assert (await anext(everything)).path == "projects/plan.md"
        assert (await anext(everything)).path == "journal/today.md"

    @pytest.mark.asyncio
    async def test_bounded_queue_drops_oldest(self) -> None:
        bus = EventBus(queue_size=2)
        _, events = await bus.subscribe()

        for name in ("one.md", "two.md", "three.md"):
            await bus.publish(_event(name))

        assert bus.dropped_events == 1
        assert (await anext(events)).path == "two.md"
        assert (await anext(events)).path == "three.md"

    @pytest.mark.asyncio
    async def test_lossless_subscriber_keeps_everything(self) -> None:
        bus = EventBus(queue_size=2)
        _, events = await bus.subscribe(lossless=True)

        for i in range(10):
            await bus.publish(_event(f"n{i}.md"))

        assert bus.dropped_events == 0
        assert [(await anext(events)).path for _ in range(10)] == [f"n{i}.md" for i in range(10)]

    @pytest.mark.asyncio
    async def test_subscriber_limit(self) -> None:
        bus = EventBus(max_subscribers=1)
        await bus.subscribe()

        with pytest.raises(ValueError):
            await bus.subscribe()

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        bus = EventBus()
        subscriber_id, _ = await bus.subscribe()

        await bus.unsubscribe(subscriber_id)

        assert bus.subscriber_count == 0
        assert await bus.publish(_event("a.md")) == 0


class TestBroadcastHub:
    """Watcher to bus bridge and SSE streaming."""

    @pytest.mark.asyncio
    async def test_filesystem_event_is_published(self, notes_dir: Path) -> None:
        bus = EventBus()
        hub = BroadcastHub(bus, notes_dir)
        _, events = await bus.subscribe()

        await hub.on_filesystem_event(FileCreatedEvent(str(notes_dir / "x" / "y.md")))
        await hub.on_filesystem_event(FileCreatedEvent(str(notes_dir / "image.png")))

        event = await anext(events)
        assert event.type is FileEventType.CREATED
        assert event.path == "x/y.md"
        assert bus.dropped_events == 0

    @pytest.mark.asyncio
    async def test_sse_stream_sends_changes_and_heartbeats(self, notes_dir: Path) -> None:
        bus = EventBus()
        hub = BroadcastHub(bus, notes_dir, heartbeat_interval=0.05)
        stream = hub.create_sse_generator("x")

        heartbeat = await anext(stream)
        assert heartbeat.event == "heartbeat"
        assert hub.active_connections == 1

        await bus.publish(_event("x/y.md", FileEventType.DELETED))
        change = await anext(stream)
        assert change.event == "deleted"
        assert FileChangeEvent.model_validate_json(change.data).path == "x/y.md"

        await stream.aclose()
        assert hub.active_connections == 0
