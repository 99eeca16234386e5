"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
import re
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Generator

import httpx
import pytest
import trimesh
from PIL import Image

from toolvault.client import AssetApiClient
from toolvault.models.config import ApiConfig
from toolvault.thumbnails import (
    MemoryStore,
    ThumbnailCache,
    ThumbnailConfig,
    ThumbnailGenerator,
)

SERVICE_URL = "https://assets.test"
FILES_HOST = "files.test"


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_png(width: int, height: int, color: str | tuple = "red", mode: str = "RGB") -> bytes:
    """Encode a solid-color image as PNG."""
    image = Image.new(mode, (width, height), color=color)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class FakeAssetService:
    """In-process stand-in for the asset service and its file storage."""

    def __init__(self) -> None:
        self.assets: dict[str, dict] = {}
        self.files: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.url_failures: set[str] = set()
        self.expires_in: float | None = 3600
        # Per-asset fields merged into the content URL reply
        self.url_overrides: dict[str, dict] = {}

    def add(self, asset_id: str, asset_type: str, data: bytes, file_name: str) -> None:
        self.assets[asset_id] = {
            "id": asset_id,
            "name": f"Tool {asset_id}",
            "type": asset_type,
            "fileName": file_name,
            "filePath": f"{asset_type}/{file_name}",
            "fileSize": len(data),
            "mimeType": "application/octet-stream",
            "groupId": "default",
            "uploadedAt": "2024-05-01T12:00:00Z",
        }
        self.files[asset_id] = data

    def count(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call == (method, path))

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))

        if request.url.host == FILES_HOST:
            asset_id = path.strip("/").split("/")[0]
            if asset_id not in self.files:
                return httpx.Response(404)
            return httpx.Response(200, content=self.files[asset_id])

        if request.method == "GET" and path == "/models":
            return httpx.Response(200, json={"success": True, "models": list(self.assets.values())})

        match = re.fullmatch(r"/model/([^/]+)/url", path)
        if request.method == "GET" and match:
            asset_id = match.group(1)
            if asset_id in self.url_failures:
                return httpx.Response(500, json={"error": "Failed to generate URL"})
            if asset_id not in self.assets:
                return httpx.Response(404, json={"error": "Model not found"})
            file_name = self.assets[asset_id]["fileName"]
            body = {
                "success": True,
                "url": f"https://{FILES_HOST}/{asset_id}/{file_name}?token=abc",
                "expiresInSeconds": self.expires_in,
            }
            body.update(self.url_overrides.get(asset_id, {}))
            return httpx.Response(200, json=body)

        match = re.fullmatch(r"/models/([^/]+)", path)
        if request.method == "DELETE" and match:
            asset_id = match.group(1)
            if self.assets.pop(asset_id, None) is None:
                return httpx.Response(404, json={"error": "Model not found"})
            self.files.pop(asset_id, None)
            return httpx.Response(200, json={"success": True, "message": "Model deleted successfully"})

        return httpx.Response(404, content=json.dumps({"error": "Not found"}))


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy for async tests."""
    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def cache(memory_store: MemoryStore, clock: FakeClock) -> ThumbnailCache:
    """Thumbnail cache over an in-memory store with a fake clock."""
    return ThumbnailCache(memory_store, clock=clock)


@pytest.fixture
def thumbnail_config() -> ThumbnailConfig:
    """Default thumbnail config without the settle delay."""
    return ThumbnailConfig(settle_delay=0.0)


@pytest.fixture
def box_glb() -> bytes:
    """A 2 x 1 x 0.5 box exported as binary glTF."""
    mesh = trimesh.creation.box(extents=(2.0, 1.0, 0.5))
    return mesh.export(file_type="glb")


@pytest.fixture
def drawing_png() -> bytes:
    return make_png(800, 400, color="blue")


@pytest.fixture
def asset_service(box_glb: bytes, drawing_png: bytes) -> FakeAssetService:
    service = FakeAssetService()
    service.add("model_1", "3d", box_glb, "wrench.glb")
    service.add("model_2", "2d", drawing_png, "drawing.png")
    return service


@pytest.fixture
def http_client(asset_service: FakeAssetService) -> httpx.AsyncClient:
    """HTTP client routed to the fake asset service."""
    return httpx.AsyncClient(transport=httpx.MockTransport(asset_service.handler))


@pytest.fixture
def api_client(http_client: httpx.AsyncClient) -> AssetApiClient:
    return AssetApiClient(ApiConfig(base_url=SERVICE_URL), client=http_client)


@pytest.fixture
def generator(
    cache: ThumbnailCache,
    thumbnail_config: ThumbnailConfig,
    http_client: httpx.AsyncClient,
) -> ThumbnailGenerator:
    return ThumbnailGenerator(cache, thumbnail_config, client=http_client)


# Markers for test categories
def pytest_configure(config):
    config.addinivalue_line("markers", "slow: slow running tests")
