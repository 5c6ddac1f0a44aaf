"""Service configuration loaded from environment variables."""
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        host: Bind address for the API server.
        port: Port number for the API server.
        debug: Enable debug logging and API documentation.
        cors_origins_raw: Raw comma-separated CORS origins string.
        shutdown_timeout: Seconds to wait for graceful shutdown.
        data_dir: Base directory for notes and service state.
        notes_dir_raw: Notes root override; defaults to data_dir/notes.
        search_index_file_raw: Snapshot path override; defaults to
            data_dir/.search-index.json.
        search_default_limit: Default number of search results.
        search_boost_title: Ranking weight for title matches.
        search_boost_body: Ranking weight for body matches.
        search_boost_path: Ranking weight for path matches.
        search_fuzzy: Fraction of a term's length tolerated as edit distance.
        snapshot_timeout: Seconds before a snapshot write is abandoned.
        watch_enabled: Start the filesystem watcher on startup.
        event_debounce_ms: Debounce window for filesystem events.
        event_queue_size: Maximum size of each subscriber queue.
        event_max_subscribers: Maximum number of concurrent subscribers.
        sse_heartbeat_interval: Seconds between SSE heartbeat events.
    """

    model_config = SettingsConfigDict(
        env_prefix="MDUMP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    cors_origins_raw: str = "http://localhost:5173"
    shutdown_timeout: float = 30.0

    data_dir: Path = Path("data")
    notes_dir_raw: str = ""
    search_index_file_raw: str = ""

    search_default_limit: int = 50
    search_boost_title: float = 2.0
    search_boost_body: float = 1.0
    search_boost_path: float = 0.5
    search_fuzzy: float = 0.2
    snapshot_timeout: float = 10.0

    watch_enabled: bool = True
    event_debounce_ms: int = 500
    event_queue_size: int = 100
    event_max_subscribers: int = 100
    sse_heartbeat_interval: float = 15.0

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string.

        Returns:
            List of allowed origin URLs.
        """
        return [
            origin.strip()
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]

    @computed_field
    @property
    def notes_dir(self) -> Path:
        """Root directory holding the markdown notes."""
        if self.notes_dir_raw:
            return Path(self.notes_dir_raw)
        return self.data_dir / "notes"

    @computed_field
    @property
    def search_index_file(self) -> Path:
        """Location of the persisted search snapshot."""
        if self.search_index_file_raw:
            return Path(self.search_index_file_raw)
        return self.data_dir / ".search-index.json"

    @property
    def search_boosts(self) -> tuple[float, float, float]:
        """Per-field ranking weights in index column order (title, body, path)."""
        return (
            self.search_boost_title,
            self.search_boost_body,
            self.search_boost_path,
        )
