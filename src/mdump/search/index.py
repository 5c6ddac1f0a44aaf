"""FTS5-backed full-text index over the notes tree."""

import sqlite3
import threading
from pathlib import Path

import structlog

from mdump.notes import (
    NoteNotFoundError,
    NoteStore,
    NoteStoreError,
    NotMarkdownError,
    SecurityError,
    note_name,
)
from mdump.search.query import (
    CompiledQuery,
    compile_query,
    fuzzy_distance,
    match_positions,
    quote_term,
    tokenize,
)
from mdump.search.schemas import SearchField, SearchMatch, SearchResult
from mdump.search.snapshot import (
    Snapshot,
    SnapshotError,
    read_snapshot,
    write_snapshot,
)

logger = structlog.get_logger()

DEFAULT_BOOSTS: tuple[float, float, float] = (2.0, 1.0, 0.5)
DEFAULT_SEARCH_LIMIT = 50
DEFAULT_SUGGEST_LIMIT = 10

_SCHEMA: tuple[str, ...] = (
    "CREATE TABLE documents (id INTEGER PRIMARY KEY, path TEXT NOT NULL UNIQUE)",
    """
    CREATE VIRTUAL TABLE notes_fts USING fts5(
        title,
        body,
        path,
        tokenize='unicode61 remove_diacritics 2'
    )
    """,
    "CREATE VIRTUAL TABLE notes_vocab USING fts5vocab(notes_fts, row)",
)

_FIELDS: tuple[SearchField, ...] = (SearchField.TITLE, SearchField.BODY, SearchField.PATH)

# Largest code point; appended to a prefix it bounds a term range scan.
_MAX_CHAR = "\U0010ffff"


class SearchIndex:
    """In-memory SQLite FTS5 index over the markdown notes.

    The index is cold until build() completes and warm afterwards;
    queries against a cold index return no results. Every mutation
    updates the FTS tables and the tracked-paths set together.

    Thread-safe: a writer lock serializes build/index/remove, and a
    connection lock guards every use of the SQLite connection. Builds
    work on a private connection that is swapped in when complete, so
    queries are never held up by a rebuild.
    """

    def __init__(
        self,
        store: NoteStore,
        snapshot_path: Path,
        boosts: tuple[float, float, float] = DEFAULT_BOOSTS,
        fuzziness: float = 0.2,
    ) -> None:
        """Initialize a cold search index (call build() before use).

        Args:
            store: Accessor for the notes tree.
            snapshot_path: Where the persisted snapshot lives.
            boosts: Ranking weights for title, body and path.
            fuzziness: Fraction of a term's length tolerated as typos.
        """
        self._store = store
        self._snapshot_path = Path(snapshot_path)
        self._boosts = boosts
        self._fuzziness = fuzziness
        self._conn: sqlite3.Connection | None = None
        self._paths: set[str] = set()
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._save_lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        """Whether the index has been built and can serve queries."""
        return self._conn is not None

    @property
    def document_count(self) -> int:
        """Number of notes currently indexed."""
        return len(self._paths)

    @property
    def indexed_paths(self) -> frozenset[str]:
        """Snapshot of the tracked note paths."""
        with self._lock:
            return frozenset(self._paths)

    @property
    def snapshot_path(self) -> Path:
        """Location of the persisted snapshot."""
        return self._snapshot_path

    @staticmethod
    def _connect() -> sqlite3.Connection:
        return sqlite3.connect(":memory:", check_same_thread=False)

    def build(self, use_snapshot: bool = True) -> int:
        """Make the index warm, from the snapshot or from the notes tree.

        A readable snapshot is trusted as-is and no traversal happens.
        Otherwise every visible markdown note is indexed and the result
        is persisted. Unreadable notes are logged and skipped.

        Args:
            use_snapshot: Try the persisted snapshot before traversing.

        Returns:
            Number of documents in the index afterwards.
        """
        with self._write_lock:
            if use_snapshot:
                restored = self._restore()
                if restored is not None:
                    conn, paths = restored
                    self._swap(conn, paths)
                    logger.info(
                        "search_index_loaded",
                        document_count=len(paths),
                        snapshot=str(self._snapshot_path),
                    )
                    return len(paths)

            conn = self._connect()
            for statement in _SCHEMA:
                conn.execute(statement)

            paths: set[str] = set()
            for rel in self._store.iter_markdown():
                content = self._read(rel)
                if content is None:
                    continue
                self._insert(conn, rel, content)
                paths.add(rel)
            conn.commit()

            self._swap(conn, paths)

        logger.info("search_index_built", document_count=len(paths))
        self.save()
        return len(paths)

    def _restore(self) -> tuple[sqlite3.Connection, set[str]] | None:
        """Load the snapshot into a fresh connection, or None to rebuild."""
        try:
            snapshot = read_snapshot(self._snapshot_path)
        except SnapshotError as e:
            logger.warning("search_snapshot_invalid", path=e.path, error=str(e))
            return None

        if snapshot is None:
            logger.info("search_snapshot_missing", path=str(self._snapshot_path))
            return None

        try:
            return self._load(snapshot)
        except SnapshotError as e:
            logger.warning("search_snapshot_invalid", path=e.path, error=str(e))
            return None

    def _load(self, snapshot: Snapshot) -> tuple[sqlite3.Connection, set[str]]:
        """Deserialize a snapshot and check it against its tracked paths.

        Raises:
            SnapshotError: If the blob is corrupt or disagrees with paths.
        """
        conn = self._connect()
        try:
            conn.deserialize(snapshot.blob())
            conn.execute("INSERT INTO notes_fts(notes_fts) VALUES ('integrity-check')")
            stored = {row[0] for row in conn.execute("SELECT path FROM documents")}
            conn.execute("SELECT count(*) FROM notes_vocab").fetchone()
            conn.commit()
        except (ValueError, sqlite3.DatabaseError) as e:
            conn.close()
            raise SnapshotError(
                f"Corrupt index data: {e}", str(self._snapshot_path)
            ) from e

        if stored != set(snapshot.paths):
            conn.close()
            raise SnapshotError(
                "Indexed documents do not match tracked paths",
                str(self._snapshot_path),
            )
        return conn, stored

    def _swap(self, conn: sqlite3.Connection, paths: set[str]) -> None:
        with self._lock:
            previous = self._conn
            self._conn = conn
            self._paths = paths
        if previous is not None:
            previous.close()

    def _read(self, rel: str) -> str | None:
        """Read a note, or None if it cannot be indexed right now."""
        try:
            return self._store.read_document(rel)
        except (NoteNotFoundError, NotMarkdownError) as e:
            logger.debug("search_index_skip", path=rel, reason=e.code or str(e))
        except (NoteStoreError, SecurityError) as e:
            logger.warning("search_index_read_failed", path=rel, error=str(e))
        return None

    @staticmethod
    def _insert(conn: sqlite3.Connection, rel: str, content: str) -> None:
        cursor = conn.execute("INSERT INTO documents (path) VALUES (?)", (rel,))
        conn.execute(
            "INSERT INTO notes_fts (rowid, title, body, path) VALUES (?, ?, ?, ?)",
            (cursor.lastrowid, note_name(rel), content, rel),
        )

    @staticmethod
    def _delete(conn: sqlite3.Connection, rel: str) -> bool:
        row = conn.execute("SELECT id FROM documents WHERE path = ?", (rel,)).fetchone()
        if row is None:
            return False
        conn.execute("DELETE FROM notes_fts WHERE rowid = ?", (row[0],))
        conn.execute("DELETE FROM documents WHERE id = ?", (row[0],))
        return True

    def _canonical(self, rel: str) -> str | None:
        try:
            return self._store.normalize(rel) or None
        except SecurityError as e:
            logger.warning("search_index_path_rejected", path=rel, error=str(e))
            return None

    def index_document(self, rel: str) -> bool:
        """Index or re-index a single note (handles create + modify).

        The path is canonicalized first, so "./a.md" and "a.md" share one
        entry. Prior postings for the same path are removed first. Missing
        or non-markdown paths are ignored. Does not persist the index.

        Args:
            rel: Note path relative to the notes root.

        Returns:
            True if the note is indexed with its current content.
        """
        with self._write_lock:
            if self._conn is None:
                logger.warning("search_index_not_ready", action="index", path=rel)
                return False

            rel = self._canonical(rel)
            if rel is None:
                return False

            content = self._read(rel)
            if content is None:
                return False

            with self._lock:
                conn = self._conn
                try:
                    replaced = self._delete(conn, rel)
                    self._insert(conn, rel, content)
                    conn.commit()
                except sqlite3.Error as e:
                    conn.rollback()
                    logger.error("search_document_index_failed", path=rel, error=str(e))
                    return False
                self._paths.add(rel)

        logger.info("search_document_indexed", path=rel, replaced=replaced)
        return True

    def remove_document(self, rel: str) -> bool:
        """Remove a note from the index; a no-op for untracked paths.

        Args:
            rel: Note path relative to the notes root.

        Returns:
            True if the note was indexed and has been removed.
        """
        rel = self._canonical(rel)
        if rel is None:
            return False

        with self._write_lock, self._lock:
            conn = self._conn
            if conn is None or rel not in self._paths:
                return False
            try:
                self._delete(conn, rel)
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                logger.error("search_document_remove_failed", path=rel, error=str(e))
                return False
            self._paths.discard(rel)

        logger.info("search_document_removed", path=rel)
        return True

    def remove_prefix(self, folder: str) -> int:
        """Remove every indexed note below a folder.

        Used when a folder is deleted or moved out of the notes tree,
        which the watcher reports as one event for the folder.

        Args:
            folder: Folder path relative to the notes root.

        Returns:
            Number of notes removed.
        """
        canonical = self._canonical(folder)
        if canonical is None:
            return 0
        prefix = canonical + "/"

        with self._write_lock, self._lock:
            conn = self._conn
            if conn is None:
                return 0
            doomed = sorted(p for p in self._paths if p.startswith(prefix))
            if not doomed:
                return 0
            try:
                for rel in doomed:
                    self._delete(conn, rel)
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                logger.error("search_folder_remove_failed", folder=folder, error=str(e))
                return 0
            self._paths.difference_update(doomed)

        logger.info("search_folder_removed", folder=folder, document_count=len(doomed))
        return len(doomed)

    def save(self) -> bool:
        """Persist the index and tracked paths to the snapshot file.

        Failures are logged; the in-memory index stays authoritative.

        Returns:
            True if the snapshot was written.
        """
        with self._save_lock:
            with self._lock:
                conn = self._conn
                if conn is None:
                    logger.warning("search_index_not_ready", action="save")
                    return False
                try:
                    blob = conn.serialize()
                except sqlite3.Error as e:
                    logger.error("search_snapshot_save_failed", error=str(e))
                    return False
                paths = sorted(self._paths)

            try:
                write_snapshot(self._snapshot_path, Snapshot.from_bytes(blob, paths))
            except OSError as e:
                logger.error(
                    "search_snapshot_save_failed",
                    path=str(self._snapshot_path),
                    error=str(e),
                )
                return False

        logger.debug(
            "search_snapshot_saved",
            path=str(self._snapshot_path),
            document_count=len(paths),
            size_bytes=len(blob),
        )
        return True

    def search(
        self,
        query: str,
        scope: str | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[SearchResult]:
        """Execute a ranked search with prefix and fuzzy term matching.

        Args:
            query: Raw user search query.
            scope: Optional path prefix restricting results.
            limit: Maximum results, applied after scope filtering.

        Returns:
            Results ordered by descending score; empty on blank or
            unusable queries and while the index is cold.
        """
        if not query or not query.strip() or limit <= 0:
            return []

        scope_path = scope.strip("/") if scope else ""
        weights = self._boosts

        sql = (
            "SELECT d.path, -bm25(notes_fts, ?, ?, ?) AS score, "
            "notes_fts.title, notes_fts.body, "
            "snippet(notes_fts, 0, '<mark>', '</mark>', '...', 16), "
            "snippet(notes_fts, 1, '<mark>', '</mark>', '...', 32), "
            "snippet(notes_fts, 2, '<mark>', '</mark>', '...', 16) "
            "FROM notes_fts JOIN documents d ON d.id = notes_fts.rowid "
            "WHERE notes_fts MATCH ? "
        )

        with self._lock:
            conn = self._conn
            if conn is None:
                logger.warning("search_index_not_ready", action="search")
                return []
            try:
                vocabulary = self._fuzzy_vocabulary(conn, query)
            except sqlite3.Error as e:
                logger.warning("search_query_failed", query=query, error=str(e))
                return []

        # Fuzzy expansion is pure Python; writers may proceed meanwhile.
        compiled = compile_query(query, vocabulary, self._fuzziness)
        if compiled is None:
            return []

        params: list[str | int | float] = [*weights, compiled.expression]
        if scope_path:
            sql += "AND substr(d.path, 1, ?) = ? "
            params.extend([len(scope_path), scope_path])
        sql += "ORDER BY score DESC LIMIT ?"
        params.append(limit)

        with self._lock:
            conn = self._conn
            if conn is None:
                return []
            try:
                rows = conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.warning("search_query_failed", query=query, error=str(e))
                return []

        return [self._hydrate(row, compiled) for row in rows]

    def _fuzzy_vocabulary(self, conn: sqlite3.Connection, query: str) -> list[str]:
        """Live index terms, read only when some query token has an edit budget."""
        if not any(fuzzy_distance(t, self._fuzziness) for t in tokenize(query)):
            return []
        return [
            row[0]
            for row in conn.execute("SELECT term FROM notes_vocab WHERE doc > 0")
        ]

    @staticmethod
    def _hydrate(row: tuple, compiled: CompiledQuery) -> SearchResult:
        path, score, title, body, *snippets = row
        matches: list[SearchMatch] = []

        for field, text, snippet in zip(_FIELDS, (title, body, path), snippets):
            found = match_positions(text, compiled)
            if not found:
                continue
            matches.append(
                SearchMatch(
                    field=field,
                    terms=list(found),
                    positions=list(found.values()),
                    snippet=snippet or "",
                )
            )

        return SearchResult(
            path=path,
            name=note_name(path),
            matches=matches,
            score=score,
        )

    def get_suggestions(self, prefix: str, limit: int = DEFAULT_SUGGEST_LIMIT) -> list[str]:
        """Complete the last word of the input from the index vocabulary.

        Prefix-only, no typo tolerance. Only the last word is completed
        and only index terms are returned, so "road mil" yields
        "milestones".

        Args:
            prefix: Partial user input.
            limit: Maximum number of suggestions.

        Returns:
            Completions, most widespread terms first.
        """
        if not prefix or not prefix.strip() or limit <= 0:
            return []

        tokens = tokenize(prefix)
        if not tokens:
            return []
        last = tokens[-1]

        terms: list[str] = []
        with self._lock:
            conn = self._conn
            if conn is None:
                logger.warning("search_index_not_ready", action="suggest")
                return []

            try:
                candidates = conn.execute(
                    "SELECT term FROM notes_vocab "
                    "WHERE term >= ? AND term < ? AND doc > 0 "
                    "ORDER BY doc DESC, term",
                    (last, last + _MAX_CHAR),
                ).fetchall()
                for (term,) in candidates:
                    # The vocabulary can lag behind deletions until segments merge.
                    live = conn.execute(
                        "SELECT 1 FROM notes_fts WHERE notes_fts MATCH ? LIMIT 1",
                        (quote_term(term),),
                    ).fetchone()
                    if live:
                        terms.append(term)
                        if len(terms) >= limit:
                            break
            except sqlite3.Error as e:
                logger.warning("search_suggest_failed", prefix=prefix, error=str(e))
                return []

        return terms

    def close(self) -> None:
        """Close the database connection; the index becomes cold."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("search_index_closed")
