"""Tests for the admin HTTP API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from memdex.api import create_app

CONTACTS = "# Contacts\n\n## Sarah Chen\n\nPhone: 555-1234\n"


@pytest.fixture
def client(memdex, notebook, write):
    write(notebook, "reference/contacts.md", CONTACTS)
    with TestClient(create_app(memdex)) as c:
        yield c


def test_status(client):
    resp = client.get("/status")
    assert resp.status_code == 200
    body = resp.json()
    assert body["filesIndexed"] == 1
    assert body["totalChunks"] == 2
    assert body["vectorsStored"] == 2
    assert body["vectorPending"] == 0
    assert body["dbHealthy"] is True
    assert body["provider"]["id"] == "fake"
    assert "degraded" not in body


def test_search(client):
    resp = client.get("/search", params={"q": "Sarah phone"})
    assert resp.status_code == 200
    body = resp.json()
    assert list(body) == ["notebook", "daily", "sessions"]
    top = body["notebook"][0]
    assert top["path"] == "reference/contacts.md"
    assert top["lines"] == {"start": 3, "end": 5}


def test_search_sources_filter(client):
    body = client.get("/search", params={"q": "Sarah", "sources": "daily"}).json()
    assert body == {"daily": []}


def test_search_requires_query(client):
    assert client.get("/search").status_code == 422


def test_files(client):
    files = client.get("/files").json()
    assert [f["path"] for f in files] == ["reference/contacts.md"]
    assert files[0]["chunkCount"] == 2
    assert files[0]["stale"] is False


def test_read_note(client):
    resp = client.get("/notebook/reference/contacts.md", params={"startLine": 5, "lineCount": 1})
    assert resp.json() == {"path": "reference/contacts.md", "content": "Phone: 555-1234"}


def test_read_missing_note_is_404(client):
    resp = client.get("/notebook/reference/nobody.md")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_read_note_section(client):
    resp = client.get("/notebook/reference/contacts.md", params={"section": "Sarah Chen"})
    assert resp.json()["content"] == "Phone: 555-1234"
    assert client.get("/notebook/reference/contacts.md", params={"section": "Bob"}).status_code == 404


def test_delete_note_section(client):
    resp = client.delete("/notebook/reference/contacts.md", params={"section": "Sarah Chen"})
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "path": "reference/contacts.md",
        "message": "Section deleted",
    }
    again = client.delete("/notebook/reference/contacts.md", params={"section": "Sarah Chen"})
    assert again.status_code == 404
    assert again.json()["success"] is False


def test_delete_requires_section(client):
    assert client.delete("/notebook/reference/contacts.md").status_code == 422


def test_write_note_and_search(client):
    resp = client.put("/notebook/lists/todos.md", json={"content": "# Todos\n\n- water the ficus\n"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "path": "lists/todos.md", "message": "File written"}

    # the write is indexed once the debounce window passes; a rebuild forces it now
    client.post("/rebuild")
    body = client.get("/search", params={"q": "ficus"}).json()
    assert body["notebook"][0]["path"] == "lists/todos.md"


def test_write_non_markdown_is_400(client):
    resp = client.put("/notebook/notes.txt", json={"content": "x"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_daily(client):
    resp = client.post("/daily", json={"text": "Called the plumber"})
    assert resp.status_code == 200
    assert resp.json()["path"].startswith("daily/")


def test_daily_rejects_empty_text(client):
    assert client.post("/daily", json={"text": ""}).status_code == 422


def test_rebuild(client):
    body = client.post("/rebuild").json()
    assert body["filesScanned"] == 1
    assert body["embeddingsCachedHit"] == 2
    assert body["errors"] == []


def test_activate_disabled(client):
    resp = client.post("/providers/activate", json={"providerId": "none"})
    assert resp.status_code == 200
    assert resp.json()["providerId"] == "disabled"
    assert client.get("/status").json()["vectorsStored"] == 0


def test_activate_unknown_is_400(client):
    resp = client.post("/providers/activate", json={"providerId": "quantum"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "bad_request"
