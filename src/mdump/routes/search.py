"""Search API endpoints."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Query, Request, status

from mdump.notes import SecurityError, is_hidden_path, is_markdown_file
from mdump.search.schemas import (
    DocumentIndexResponse,
    ReindexResponse,
    SearchResponse,
    SuggestResponse,
)

if TYPE_CHECKING:
    from mdump.notes import NoteStore
    from mdump.search.index import SearchIndex
    from mdump.search.saver import SnapshotSaver

router = APIRouter(prefix="/search", tags=["search"])


@router.get(
    "",
    response_model=SearchResponse,
    summary="Full-text search across notes",
    description="Ranked search over note titles, bodies and paths with typo tolerance.",
)
async def search(
    request: Request,
    q: str = Query(..., min_length=1, max_length=200, description="Search query"),
    scope: str | None = Query(default=None, description="Folder path prefix"),
    limit: int | None = Query(default=None, ge=1, le=200, description="Maximum results"),
) -> SearchResponse:
    """Search notes, optionally restricted to a folder.

    Args:
        request: FastAPI request (provides access to app state).
        q: Search query string (1-200 characters).
        scope: Optional folder prefix, e.g. "projects/2024".
        limit: Maximum results (1-200, configured default otherwise).

    Returns:
        Results ordered by descending relevance.
    """
    search_index: SearchIndex = request.app.state.search_index
    if limit is None:
        limit = request.app.state.settings.search_default_limit

    results = await asyncio.to_thread(search_index.search, q, scope, limit)
    return SearchResponse(query=q, scope=scope, results=results, total=len(results))


@router.get(
    "/suggest",
    response_model=SuggestResponse,
    summary="Autocomplete suggestions",
)
async def suggest(
    request: Request,
    q: str = Query(default="", max_length=200, description="Partial input"),
    limit: int = Query(default=10, ge=1, le=50, description="Maximum suggestions"),
) -> SuggestResponse:
    """Complete the last word of a partially typed query.

    Args:
        request: FastAPI request (provides access to app state).
        q: Partial user input; empty input yields no suggestions.
        limit: Maximum suggestions (1-50, default 10).

    Returns:
        Suggested completions.
    """
    search_index: SearchIndex = request.app.state.search_index
    suggestions = await asyncio.to_thread(search_index.get_suggestions, q, limit)
    return SuggestResponse(prefix=q, suggestions=suggestions)


@router.post(
    "/reindex",
    response_model=ReindexResponse,
    summary="Rebuild the search index from the notes on disk",
)
async def reindex(request: Request) -> ReindexResponse:
    """Rebuild the whole index from disk, ignoring the snapshot."""
    search_index: SearchIndex = request.app.state.search_index
    count = await asyncio.to_thread(search_index.build, False)
    return ReindexResponse(document_count=count, message="Search index rebuilt")


def _validate_note_path(request: Request, path: str) -> str:
    store: NoteStore = request.app.state.note_store
    try:
        rel = store.normalize(path)
    except SecurityError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e

    if not rel or is_hidden_path(rel) or not is_markdown_file(rel):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Not an indexable note: {path}",
        )
    return rel


@router.post(
    "/documents",
    response_model=DocumentIndexResponse,
    summary="Re-index a single note",
)
async def index_document(
    request: Request,
    path: str = Query(..., min_length=1, description="Note path relative to the notes root"),
) -> DocumentIndexResponse:
    """Re-read one note from disk and update its index entry."""
    rel = _validate_note_path(request, path)
    search_index: SearchIndex = request.app.state.search_index
    saver: SnapshotSaver = request.app.state.snapshot_saver

    indexed = await asyncio.to_thread(search_index.index_document, rel)
    if indexed:
        saver.request()
    return DocumentIndexResponse(path=rel, indexed=rel in search_index.indexed_paths)


@router.delete(
    "/documents",
    response_model=DocumentIndexResponse,
    summary="Remove a single note from the index",
)
async def remove_document(
    request: Request,
    path: str = Query(..., min_length=1, description="Note path relative to the notes root"),
) -> DocumentIndexResponse:
    """Drop one note from the index without touching the file."""
    rel = _validate_note_path(request, path)
    search_index: SearchIndex = request.app.state.search_index
    saver: SnapshotSaver = request.app.state.snapshot_saver

    removed = await asyncio.to_thread(search_index.remove_document, rel)
    if removed:
        saver.request()
    return DocumentIndexResponse(path=rel, indexed=False)
