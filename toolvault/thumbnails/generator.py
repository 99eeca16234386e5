"""Thumbnail generation coordinator.

Turns ``(asset_id, content_url, asset_type)`` into a fixed-size PNG preview
and writes it to the cache. Concurrent requests for the same asset share a
single in-flight task.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from toolvault.models.asset import AssetType, GenerationRequest, file_format_of
from toolvault.thumbnails.cache import ThumbnailCache
from toolvault.thumbnails.config import ThumbnailConfig
from toolvault.thumbnails.renderer import ThumbnailRenderError, ThumbnailRenderer
from toolvault.thumbnails.scene import SceneRenderError, SceneRenderer

logger = logging.getLogger(__name__)


class ThumbnailGenerationError(Exception):
    """Raised when an asset cannot be fetched or rendered."""

    def __init__(self, asset_id: str, message: str) -> None:
        super().__init__(f"{asset_id}: {message}")
        self.asset_id = asset_id


class ThumbnailGenerator:
    """Produces thumbnails, at most one in-flight generation per asset."""

    def __init__(
        self,
        cache: ThumbnailCache | None = None,
        config: ThumbnailConfig | None = None,
        client: httpx.AsyncClient | None = None,
        renderer: ThumbnailRenderer | None = None,
        scene_renderer: SceneRenderer | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.cache = cache
        self.config = config or ThumbnailConfig()
        self.renderer = renderer or ThumbnailRenderer(self.config)
        self.scene_renderer = scene_renderer or SceneRenderer(self.config)
        self._client = client
        self._timeout = timeout
        self._in_flight: dict[str, asyncio.Task[bytes]] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def is_pending(self, asset_id: str) -> bool:
        """Check if a generation is in flight for an asset."""
        return asset_id in self._in_flight

    async def generate(self, request: GenerationRequest) -> bytes:
        """Generate a thumbnail, joining any pending generation for the asset.

        Returns:
            PNG bytes of the thumbnail

        Raises:
            ThumbnailGenerationError: If fetching or rendering fails
        """
        task = self._in_flight.get(request.asset_id)
        if task is None:
            task = asyncio.create_task(self._run(request))
            self._in_flight[request.asset_id] = task
            task.add_done_callback(lambda t: self._release(request.asset_id, t))
        else:
            logger.debug(f"Joining pending thumbnail generation for {request.asset_id}")
        return await asyncio.shield(task)

    def discard(self, asset_id: str) -> None:
        """Forget an in-flight generation; its result will not be cached."""
        if self._in_flight.pop(asset_id, None) is not None:
            logger.debug(f"Discarded pending thumbnail generation for {asset_id}")

    def _release(self, asset_id: str, task: asyncio.Task[bytes]) -> None:
        if self._in_flight.get(asset_id) is task:
            del self._in_flight[asset_id]

    async def _run(self, request: GenerationRequest) -> bytes:
        current = asyncio.current_task()
        data = await self.fetch(request)
        payload = await self.render(data, request.asset_type, request.file_format, request.asset_id)

        if self.cache is not None and self._in_flight.get(request.asset_id) is current:
            self.cache.set(request.asset_id, payload)
        return payload

    async def fetch(self, request: GenerationRequest) -> bytes:
        """Download asset bytes from the signed content URL."""
        try:
            response = await self.client.get(request.content_url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Failed to fetch asset {request.asset_id}: {e}")
            raise ThumbnailGenerationError(request.asset_id, f"fetch failed: {e}") from e
        return response.content

    async def render(
        self,
        data: bytes,
        asset_type: AssetType,
        file_format: str | None = None,
        asset_id: str = "<local>",
    ) -> bytes:
        """Render asset bytes to PNG thumbnail bytes."""
        try:
            if asset_type is AssetType.MODEL_3D:
                image = await self.scene_renderer.render(data, file_format)
            else:
                image_format = file_format if file_format in self.config.supported_image_formats else None
                result = await asyncio.to_thread(self.renderer.render, data, image_format)
                image = result.image
            return await asyncio.to_thread(self.renderer.to_png, image)
        except (ThumbnailRenderError, SceneRenderError) as e:
            logger.error(f"Failed to generate thumbnail for {asset_id}: {e}")
            raise ThumbnailGenerationError(asset_id, str(e)) from e

    async def render_file(self, path: str, asset_type: AssetType) -> bytes:
        """Render a local file, bypassing the cache."""
        data = await asyncio.to_thread(_read_bytes, path)
        return await self.render(data, asset_type, file_format_of(path), asset_id=path)


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()
