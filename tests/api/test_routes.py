"""Tests for FastAPI thumbnail routes."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from toolvault import ToolVault
from toolvault.api import create_router
from toolvault.thumbnails import MemoryStore

from tests.conftest import make_png


@pytest.fixture
def vault(tmp_path: Path) -> ToolVault:
    return ToolVault(tmp_path, store=MemoryStore())


@pytest.fixture
def route_client(vault: ToolVault) -> TestClient:
    """Create a test client for an app with the thumbnail routes."""
    app = FastAPI()
    app.include_router(create_router(vault))
    return TestClient(app)


class TestThumbnailRoutes:
    """Tests for FastAPI thumbnail routes."""

    def test_stats_empty(self, route_client: TestClient) -> None:
        response = route_client.get("/thumbnails/stats")
        assert response.status_code == 200

        data = response.json()
        assert data["count"] == 0
        assert data["total_size_bytes"] == 0
        assert data["max_items"] == 100
        assert data["max_size_bytes"] == 50 * 1024 * 1024

    def test_get_thumbnail(self, route_client: TestClient, vault: ToolVault) -> None:
        png = make_png(8, 8)
        vault.cache.set("model_1", png)

        response = route_client.get("/thumbnails/model_1")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == png

    def test_get_missing_thumbnail(self, route_client: TestClient) -> None:
        response = route_client.get("/thumbnails/nope")
        assert response.status_code == 404

    def test_delete_thumbnail(self, route_client: TestClient, vault: ToolVault) -> None:
        vault.cache.set("model_1", b"png")

        response = route_client.delete("/thumbnails/model_1")

        assert response.status_code == 204
        assert vault.get_thumbnail("model_1") is None
        # Deleting again is fine
        assert route_client.delete("/thumbnails/model_1").status_code == 204

    def test_clear(self, route_client: TestClient, vault: ToolVault) -> None:
        vault.cache.set("a", b"1")
        vault.cache.set("b", b"2")

        response = route_client.post("/thumbnails/clear")

        assert response.status_code == 200
        assert response.json() == {"removed": 2}
        assert route_client.get("/thumbnails/stats").json()["count"] == 0

    def test_purge(self, route_client: TestClient) -> None:
        response = route_client.post("/thumbnails/purge")

        assert response.status_code == 200
        assert response.json() == {"removed": 0}

    def test_custom_prefix(self, vault: ToolVault) -> None:
        app = FastAPI()
        app.include_router(create_router(vault, prefix="/api/previews", tags=["previews"]))
        client = TestClient(app)

        assert client.get("/api/previews/stats").status_code == 200
