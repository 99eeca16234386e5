"""Thumbnail generation and caching module."""

from toolvault.thumbnails.cache import CacheEntry, CacheStats, ThumbnailCache
from toolvault.thumbnails.config import (
    CacheLimits,
    CameraConfig,
    LightConfig,
    LightingConfig,
    ThumbnailConfig,
)
from toolvault.thumbnails.generator import ThumbnailGenerationError, ThumbnailGenerator
from toolvault.thumbnails.renderer import (
    FitLayout,
    ThumbnailRenderError,
    ThumbnailRenderer,
    compute_fit,
)
from toolvault.thumbnails.scene import SceneRenderError, SceneRenderer
from toolvault.thumbnails.store import (
    MemoryStore,
    SQLiteStore,
    Store,
    StoreError,
    StoreFullError,
    StoreWriteError,
)

__all__ = [
    "CacheEntry",
    "CacheLimits",
    "CacheStats",
    "CameraConfig",
    "FitLayout",
    "LightConfig",
    "LightingConfig",
    "MemoryStore",
    "SQLiteStore",
    "SceneRenderError",
    "SceneRenderer",
    "Store",
    "StoreError",
    "StoreFullError",
    "StoreWriteError",
    "ThumbnailCache",
    "ThumbnailConfig",
    "ThumbnailGenerationError",
    "ThumbnailGenerator",
    "ThumbnailRenderError",
    "ThumbnailRenderer",
    "compute_fit",
]
