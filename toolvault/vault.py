"""Main ToolVault class - wires the thumbnail pipeline together."""

from __future__ import annotations

from pathlib import Path

from toolvault.client import AssetApiClient
from toolvault.grid import AssetGridController
from toolvault.models.asset import Asset, AssetType
from toolvault.models.config import VaultConfig
from toolvault.thumbnails import (
    CacheStats,
    SQLiteStore,
    Store,
    ThumbnailCache,
    ThumbnailGenerator,
)


class ToolVault:
    """Main interface for the ToolVault thumbnail pipeline."""

    def __init__(
        self,
        data_dir: str | Path,
        config: VaultConfig | None = None,
        store: Store | None = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.config = config or VaultConfig()

        self._store = store
        self._cache: ThumbnailCache | None = None
        self._api: AssetApiClient | None = None
        self._generator: ThumbnailGenerator | None = None
        self._grid: AssetGridController | None = None

    @property
    def store(self) -> Store:
        if self._store is None:
            self._store = SQLiteStore(self.data_dir / self.config.db_name)
        return self._store

    @property
    def cache(self) -> ThumbnailCache:
        if self._cache is None:
            self._cache = ThumbnailCache(self.store, self.config.cache)
        return self._cache

    @property
    def api(self) -> AssetApiClient:
        if self._api is None:
            self._api = AssetApiClient(self.config.api)
        return self._api

    @property
    def generator(self) -> ThumbnailGenerator:
        if self._generator is None:
            self._generator = ThumbnailGenerator(self.cache, self.config.thumbnails)
        return self._generator

    @property
    def grid(self) -> AssetGridController:
        if self._grid is None:
            self._grid = AssetGridController(self.cache, self.generator, self.api)
        return self._grid

    async def list_assets(self) -> list[Asset]:
        return await self.api.list_assets()

    async def render_file(
        self,
        path: str | Path,
        asset_type: AssetType,
        cache_as: str | None = None,
    ) -> bytes:
        """Render a local file to a thumbnail, optionally caching it under an id."""
        payload = await self.generator.render_file(str(path), asset_type)
        if cache_as:
            self.cache.set(cache_as, payload)
        return payload

    def get_thumbnail(self, asset_id: str) -> bytes | None:
        return self.cache.get(asset_id)

    def remove_thumbnail(self, asset_id: str) -> None:
        self.cache.remove(asset_id)

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self) -> int:
        return self.cache.clear()

    def purge_expired(self) -> int:
        return self.cache.purge_expired()

    async def close(self) -> None:
        """Close clients and the store."""
        if self._generator is not None:
            await self._generator.close()
        if self._api is not None:
            await self._api.close()
        if self._store is not None:
            self._store.close()
