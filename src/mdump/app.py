"""FastAPI application factory and lifespan management."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from mdump import __version__
from mdump.config import Settings
from mdump.events import BroadcastHub, EventBus, FilesystemWatcher
from mdump.middleware.cors import configure_cors
from mdump.middleware.logging import RequestLoggingMiddleware
from mdump.notes import NoteStore
from mdump.routes import events, health, search
from mdump.search import SearchIndex, SnapshotSaver, run_search_subscriber

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Builds the search index before serving, then starts the watcher
    and the subscriber that keeps the index in sync. On shutdown the
    pending snapshot save is flushed before the index is closed.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info(
        "api_startup",
        host=settings.host,
        port=settings.port,
        notes_dir=str(settings.notes_dir),
    )

    settings.notes_dir.mkdir(parents=True, exist_ok=True)
    note_store = NoteStore(settings.notes_dir)
    search_index = SearchIndex(
        note_store,
        settings.search_index_file,
        boosts=settings.search_boosts,
        fuzziness=settings.search_fuzzy,
    )
    saver = SnapshotSaver(search_index, timeout=settings.snapshot_timeout)

    event_bus = EventBus(
        queue_size=settings.event_queue_size,
        max_subscribers=settings.event_max_subscribers,
    )
    broadcast_hub = BroadcastHub(
        event_bus,
        settings.notes_dir,
        heartbeat_interval=settings.sse_heartbeat_interval,
    )

    app.state.note_store = note_store
    app.state.search_index = search_index
    app.state.snapshot_saver = saver
    app.state.event_bus = event_bus
    app.state.broadcast_hub = broadcast_hub

    doc_count = await asyncio.to_thread(search_index.build)
    logger.info("search_index_ready", document_count=doc_count)

    search_task = asyncio.create_task(
        run_search_subscriber(event_bus, search_index, saver)
    )

    watcher: FilesystemWatcher | None = None
    if settings.watch_enabled:
        watcher = FilesystemWatcher(
            root=settings.notes_dir,
            loop=asyncio.get_running_loop(),
            on_event=broadcast_hub.on_filesystem_event,
            debounce_ms=settings.event_debounce_ms,
        )
        watcher.start()
    app.state.watcher = watcher

    try:
        yield
    finally:
        if watcher is not None:
            watcher.stop()

        search_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await search_task

        await saver.flush()
        search_index.close()

        await broadcast_hub.shutdown()
        logger.info("api_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="mdump notes search",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/v1/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    configure_cors(app, settings.cors_origins)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(search.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")

    return app
