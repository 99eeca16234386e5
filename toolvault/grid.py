"""Asset grid controller.

Decides, for each asset in the current view, whether its thumbnail comes
from the cache, needs a content URL from the asset service, or needs to be
generated, and keeps the resulting tile states.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable

from pydantic import BaseModel

from toolvault.client import AssetApiClient, AssetNotFoundError, AssetServiceError
from toolvault.models.asset import Asset, AssetType, ContentUrl, GenerationRequest
from toolvault.thumbnails.cache import ThumbnailCache, encode_data_url
from toolvault.thumbnails.generator import ThumbnailGenerationError, ThumbnailGenerator

logger = logging.getLogger(__name__)


class TileStatus(str, Enum):
    """Display state of a grid tile."""

    LOADING = "loading"
    CACHED = "cached"
    READY = "ready"
    PLACEHOLDER = "placeholder"


class TileState(BaseModel):
    """What the grid shows for one asset."""

    asset_id: str
    asset_type: AssetType
    status: TileStatus
    thumbnail: bytes | None = None
    error: str | None = None

    @property
    def placeholder_icon(self) -> str | None:
        """Type icon shown instead of a thumbnail."""
        return None if self.thumbnail else self.asset_type.placeholder_icon

    @property
    def data_url(self) -> str | None:
        return encode_data_url(self.thumbnail) if self.thumbnail else None


class AssetGridController:
    """Reconciles a list of assets with cached and generated thumbnails."""

    def __init__(
        self,
        cache: ThumbnailCache,
        generator: ThumbnailGenerator,
        api: AssetApiClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.generator = generator
        self.api = api
        self._clock = clock
        self._visible: dict[str, Asset] = {}
        self._tiles: dict[str, TileState] = {}
        self._content_urls: dict[str, ContentUrl] = {}
        self._url_requests: dict[str, asyncio.Task[ContentUrl]] = {}
        self._failed: dict[str, str] = {}
        # Bumped by forget() so late results for a deleted id are dropped
        self._epochs: dict[str, int] = {}

    @property
    def tiles(self) -> dict[str, TileState]:
        """Tiles for the current view, in view order."""
        return {aid: self._tiles[aid] for aid in self._visible if aid in self._tiles}

    def is_fetching_url(self, asset_id: str) -> bool:
        return asset_id in self._url_requests

    async def refresh(self, assets: list[Asset]) -> dict[str, TileState]:
        """Load thumbnails for the given assets and return their tiles."""
        self._visible = {asset.id: asset for asset in assets}
        self._tiles = {aid: t for aid, t in self._tiles.items() if aid in self._visible}
        results = await asyncio.gather(
            *(self._load(asset) for asset in assets), return_exceptions=True
        )

        for asset, result in zip(assets, results):
            if isinstance(result, Exception):
                logger.error(f"Unexpected error loading thumbnail for {asset.id}: {result!r}")
                self._show(
                    asset,
                    self._epochs.get(asset.id, 0),
                    TileStatus.PLACEHOLDER,
                    error=str(result),
                )
        return self.tiles

    async def _load(self, asset: Asset) -> None:
        epoch = self._epochs.get(asset.id, 0)

        cached = self.cache.get(asset.id)
        if cached is not None:
            self._show(asset, epoch, TileStatus.CACHED, thumbnail=cached)
            return

        current = self._tiles.get(asset.id)
        if current is not None and current.status is TileStatus.READY:
            # Generated this session but no longer persisted
            return

        if asset.id in self._failed:
            self._show(asset, epoch, TileStatus.PLACEHOLDER, error=self._failed[asset.id])
            return

        self._show(asset, epoch, TileStatus.LOADING)

        try:
            content_url = await self._content_url(asset.id, epoch)
        except AssetServiceError as e:
            logger.warning(f"No content URL for {asset.id}: {e}")
            self._show(asset, epoch, TileStatus.PLACEHOLDER, error=str(e))
            return

        cached = self.cache.get(asset.id)
        if cached is not None:
            self._show(asset, epoch, TileStatus.CACHED, thumbnail=cached)
            return

        request = GenerationRequest(
            asset_id=asset.id,
            content_url=content_url.url,
            asset_type=asset.asset_type,
            file_name=asset.file_name,
        )
        try:
            payload = await self.generator.generate(request)
        except ThumbnailGenerationError as e:
            if self._epochs.get(asset.id, 0) == epoch:
                self._failed[asset.id] = str(e)
            self._show(asset, epoch, TileStatus.PLACEHOLDER, error=str(e))
            return
        finally:
            if self._epochs.get(asset.id, 0) == epoch:
                self._content_urls.pop(asset.id, None)

        self._show(asset, epoch, TileStatus.READY, thumbnail=payload)

    async def _content_url(self, asset_id: str, epoch: int) -> ContentUrl:
        """Get a usable content URL, joining an outstanding request if any."""
        known = self._content_urls.get(asset_id)
        if known is not None and not known.is_expired(self._clock()):
            return known

        task = self._url_requests.get(asset_id)
        if task is None:
            task = asyncio.create_task(self.api.get_content_url(asset_id))
            self._url_requests[asset_id] = task
            task.add_done_callback(lambda t: self._release_url_request(asset_id, t))

        content_url = await asyncio.shield(task)
        if self._epochs.get(asset_id, 0) == epoch:
            self._content_urls[asset_id] = content_url
        return content_url

    def _release_url_request(self, asset_id: str, task: asyncio.Task[ContentUrl]) -> None:
        if self._url_requests.get(asset_id) is task:
            del self._url_requests[asset_id]
        if not task.cancelled():
            # Mark retrieved; awaiting callers handle the error
            task.exception()

    def _show(
        self,
        asset: Asset,
        epoch: int,
        status: TileStatus,
        thumbnail: bytes | None = None,
        error: str | None = None,
    ) -> None:
        if self._epochs.get(asset.id, 0) != epoch or asset.id not in self._visible:
            return
        self._tiles[asset.id] = TileState(
            asset_id=asset.id,
            asset_type=asset.asset_type,
            status=status,
            thumbnail=thumbnail,
            error=error,
        )

    def retry(self, asset_id: str) -> None:
        """Allow a failed asset to be generated again on the next refresh."""
        self._failed.pop(asset_id, None)

    def forget(self, asset_id: str) -> None:
        """Drop every trace of an asset: cache entry, tile and in-flight work."""
        self.cache.remove(asset_id)
        self._epochs[asset_id] = self._epochs.get(asset_id, 0) + 1
        self._tiles.pop(asset_id, None)
        self._visible.pop(asset_id, None)
        self._content_urls.pop(asset_id, None)
        self._url_requests.pop(asset_id, None)
        self._failed.pop(asset_id, None)
        self.generator.discard(asset_id)

    async def delete(self, asset_id: str) -> None:
        """Delete an asset on the service and invalidate its thumbnail."""
        try:
            await self.api.delete_asset(asset_id)
        except AssetNotFoundError:
            logger.info(f"Asset {asset_id} already gone on the service")
        self.forget(asset_id)
