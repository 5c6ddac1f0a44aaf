"""Pydantic schemas for search API responses."""

from enum import Enum

from pydantic import BaseModel, Field


class SearchField(str, Enum):
    """Indexed document fields, in index column order."""

    TITLE = "title"
    BODY = "body"
    PATH = "path"


class SearchMatch(BaseModel):
    """Terms of one field that matched the query.

    Attributes:
        field: Field the terms were found in.
        terms: Matched index terms.
        positions: Token positions per term, aligned with terms.
        snippet: Field excerpt with <mark> highlight tags.
    """

    field: SearchField
    terms: list[str]
    positions: list[list[int]]
    snippet: str = Field(description="Excerpt with <mark> highlight tags")


class SearchResult(BaseModel):
    """Individual search hit.

    Attributes:
        path: Note path relative to the notes root.
        name: Basename of path without extension.
        matches: Matched terms per field.
        score: Relevance score (higher is better).
    """

    path: str
    name: str
    matches: list[SearchMatch]
    score: float


class SearchResponse(BaseModel):
    """Search response envelope."""

    query: str
    scope: str | None = None
    results: list[SearchResult]
    total: int


class SuggestResponse(BaseModel):
    """Autocomplete response."""

    prefix: str
    suggestions: list[str]


class ReindexResponse(BaseModel):
    """Result of a full index rebuild."""

    document_count: int
    message: str


class DocumentIndexResponse(BaseModel):
    """Result of indexing or removing a single note.

    Attributes:
        path: Note path the action applied to.
        indexed: Whether the note is in the index afterwards.
    """

    path: str
    indexed: bool
