"""Search HTTP endpoints."""

from fastapi.testclient import TestClient

from conftest import WriteNote


def test_search_returns_ranked_results(client: TestClient) -> None:
    """Both roadmap notes come back with match details."""
    response = client.get("/api/v1/search", params={"q": "roadmap"})

    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "roadmap"
    assert data["total"] == 2
    assert {r["path"] for r in data["results"]} == {"a.md", "b/c.md"}
    scores = [r["score"] for r in data["results"]]
    assert scores == sorted(scores, reverse=True)
    assert data["results"][0]["matches"][0]["terms"] == ["roadmap"]


def test_search_with_scope(client: TestClient) -> None:
    """Scope limits results to the folder."""
    response = client.get("/api/v1/search", params={"q": "roadmap", "scope": "b"})

    data = response.json()
    assert data["scope"] == "b"
    assert [r["path"] for r in data["results"]] == ["b/c.md"]


def test_search_limit(client: TestClient) -> None:
    """The limit parameter caps the result count."""
    response = client.get("/api/v1/search", params={"q": "roadmap", "limit": 1})
    assert response.json()["total"] == 1


def test_search_requires_query(client: TestClient) -> None:
    """An empty or missing query is a validation error."""
    assert client.get("/api/v1/search", params={"q": ""}).status_code == 422
    assert client.get("/api/v1/search").status_code == 422


def test_search_rejects_bad_limit(client: TestClient) -> None:
    """Limits outside 1..200 are rejected."""
    assert client.get("/api/v1/search", params={"q": "x", "limit": 0}).status_code == 422


def test_suggest(client: TestClient) -> None:
    """Suggestions complete the typed prefix."""
    response = client.get("/api/v1/search/suggest", params={"q": "road"})

    assert response.status_code == 200
    assert response.json() == {"prefix": "road", "suggestions": ["roadmap"]}


def test_suggest_without_input(client: TestClient) -> None:
    """No input, no suggestions."""
    response = client.get("/api/v1/search/suggest")
    assert response.json()["suggestions"] == []


def test_reindex_picks_up_unwatched_changes(client: TestClient, write_note: WriteNote) -> None:
    """A full rebuild sees notes written without a watcher running."""
    write_note("later.md", "written behind the server's back")

    response = client.post("/api/v1/search/reindex")

    assert response.status_code == 200
    assert response.json()["document_count"] == 3
    assert client.get("/api/v1/search", params={"q": "behind"}).json()["total"] == 1


def test_index_single_document(client: TestClient, write_note: WriteNote) -> None:
    """Posting a path indexes that note."""
    write_note("folder/new.md", "a brand new idea")

    response = client.post("/api/v1/search/documents", params={"path": "folder/new.md"})

    assert response.status_code == 200
    assert response.json() == {"path": "folder/new.md", "indexed": True}
    results = client.get("/api/v1/search", params={"q": "brand"}).json()["results"]
    assert [r["path"] for r in results] == ["folder/new.md"]


def test_index_missing_document(client: TestClient) -> None:
    """A path with no file on disk is reported as not indexed."""
    response = client.post("/api/v1/search/documents", params={"path": "ghost.md"})

    assert response.status_code == 200
    assert response.json()["indexed"] is False


def test_remove_document(client: TestClient) -> None:
    """Deleting a path drops the note from results."""
    response = client.delete("/api/v1/search/documents", params={"path": "a.md"})

    assert response.status_code == 200
    assert response.json() == {"path": "a.md", "indexed": False}
    results = client.get("/api/v1/search", params={"q": "roadmap"}).json()["results"]
    assert [r["path"] for r in results] == ["b/c.md"]


def test_document_path_is_canonicalized(client: TestClient) -> None:
    """Aliases of an indexed note do not create a second entry."""
    for alias in ("./a.md", "x/../a.md"):
        response = client.post("/api/v1/search/documents", params={"path": alias})
        assert response.json() == {"path": "a.md", "indexed": True}

    results = client.get("/api/v1/search", params={"q": "milestones"}).json()["results"]
    assert [r["path"] for r in results] == ["a.md"]
    assert client.app.state.search_index.indexed_paths == {"a.md", "b/c.md"}


def test_document_path_traversal_forbidden(client: TestClient) -> None:
    """Paths escaping the notes root are refused."""
    response = client.post("/api/v1/search/documents", params={"path": "../outside.md"})
    assert response.status_code == 403


def test_document_path_must_be_note(client: TestClient) -> None:
    """Hidden and non-markdown paths are rejected."""
    assert client.post("/api/v1/search/documents", params={"path": "data.txt"}).status_code == 400
    assert client.delete("/api/v1/search/documents", params={"path": ".trash/a.md"}).status_code == 400
