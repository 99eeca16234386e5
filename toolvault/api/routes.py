"""FastAPI router exposing the thumbnail cache.

Usage:
    from fastapi import FastAPI
    from toolvault.api import create_router
    from toolvault import ToolVault

    app = FastAPI()
    vault = ToolVault("./data")

    # Mount with default prefix /thumbnails
    app.include_router(create_router(vault))
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from toolvault.vault import ToolVault


# Response models
class CacheStatsResponse(BaseModel):
    count: int
    total_size_bytes: int
    size_formatted: str
    max_items: int
    max_size_bytes: int


class CountResponse(BaseModel):
    removed: int


def create_router(
    vault: ToolVault,
    *,
    prefix: str = "/thumbnails",
    tags: list[str] | None = None,
) -> APIRouter:
    """Create a FastAPI router for the thumbnail cache.

    Args:
        vault: ToolVault instance to use
        prefix: URL prefix for all routes (default: /thumbnails)
        tags: OpenAPI tags for the router

    Returns:
        APIRouter that can be included in a FastAPI app
    """
    if tags is None:
        tags = ["thumbnails"]

    router = APIRouter(prefix=prefix, tags=tags)

    def get_vault() -> ToolVault:
        return vault

    # --- Cache management (must be before dynamic routes) ---

    @router.get("/stats", response_model=CacheStatsResponse)
    async def get_stats(
        vault: Annotated[ToolVault, Depends(get_vault)],
    ) -> CacheStatsResponse:
        """Get thumbnail cache statistics."""
        stats = vault.get_cache_stats()
        return CacheStatsResponse(
            count=stats.count,
            total_size_bytes=stats.total_size_bytes,
            size_formatted=stats.size_formatted,
            max_items=vault.cache.limits.max_items,
            max_size_bytes=vault.cache.limits.max_size_bytes,
        )

    @router.post("/clear", response_model=CountResponse)
    async def clear_cache(
        vault: Annotated[ToolVault, Depends(get_vault)],
    ) -> CountResponse:
        """Remove all cached thumbnails."""
        return CountResponse(removed=vault.clear_cache())

    @router.post("/purge", response_model=CountResponse)
    async def purge_expired(
        vault: Annotated[ToolVault, Depends(get_vault)],
    ) -> CountResponse:
        """Remove expired thumbnails."""
        return CountResponse(removed=vault.purge_expired())

    # --- Per-asset thumbnails ---

    @router.get("/{asset_id}")
    async def get_thumbnail(
        asset_id: str,
        vault: Annotated[ToolVault, Depends(get_vault)],
    ) -> Response:
        """Get a cached thumbnail as PNG."""
        payload = vault.get_thumbnail(asset_id)
        if payload is None:
            raise HTTPException(status_code=404, detail=f"No cached thumbnail: {asset_id}")
        return Response(content=payload, media_type="image/png")

    @router.delete("/{asset_id}", status_code=204)
    async def delete_thumbnail(
        asset_id: str,
        vault: Annotated[ToolVault, Depends(get_vault)],
    ) -> Response:
        """Invalidate a cached thumbnail."""
        vault.remove_thumbnail(asset_id)
        return Response(status_code=204)

    return router
