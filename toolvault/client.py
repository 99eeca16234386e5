"""Client for the external asset service.

The service owns uploads and metadata. ToolVault only needs three calls from
it: list assets, get a signed content URL, and delete an asset.

Authentication: bearer token read from the environment variable named by
``ApiConfig.api_key_env``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from toolvault.models.asset import Asset, ContentUrl
from toolvault.models.config import ApiConfig

logger = logging.getLogger(__name__)


class AssetServiceError(Exception):
    """Base error for asset service calls."""


class ContentUrlError(AssetServiceError):
    """Raised when a content URL cannot be obtained."""


class AssetNotFoundError(AssetServiceError):
    """Raised when the service does not know an asset."""

    def __init__(self, asset_id: str) -> None:
        super().__init__(f"Asset not found: {asset_id}")
        self.asset_id = asset_id


class AssetApiClient:
    """Async client for the asset service REST API."""

    def __init__(self, config: ApiConfig | None = None, client: httpx.AsyncClient | None = None) -> None:
        self.config = config or ApiConfig()
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def get_auth_headers(self) -> dict[str, str]:
        """Get authentication headers for requests."""
        api_key = self.config.api_key
        if api_key:
            return {"Authorization": f"Bearer {api_key}"}
        return {}

    def _url(self, endpoint: str, **params: str) -> str:
        path = self.config.endpoints[endpoint].format(**params)
        return f"{self.config.base_url.rstrip('/')}{path}"

    async def _request(self, method: str, url: str) -> tuple[int, dict[str, Any]]:
        response = await self.client.request(method, url, headers=self.get_auth_headers())
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        return response.status_code, data

    async def list_assets(self) -> list[Asset]:
        """Fetch all asset descriptors."""
        try:
            status, data = await self._request("GET", self._url("list"))
        except httpx.HTTPError as e:
            raise AssetServiceError(f"Failed to fetch assets: {e}") from e

        if status >= 400 or not data.get("success", True):
            raise AssetServiceError(data.get("error") or f"Failed to fetch assets (HTTP {status})")

        assets: list[Asset] = []
        for raw in data.get("models", []):
            try:
                assets.append(Asset.model_validate(raw))
            except ValueError as e:
                logger.warning(f"Skipping malformed asset descriptor: {e}")
        return assets

    async def get_content_url(self, asset_id: str) -> ContentUrl:
        """Request a signed URL for an asset's bytes.

        Raises:
            AssetNotFoundError: If the asset (or its file) no longer exists
            ContentUrlError: On any other failure
        """
        try:
            status, data = await self._request("GET", self._url("content_url", asset_id=asset_id))
        except httpx.HTTPError as e:
            raise ContentUrlError(f"Failed to get content URL for {asset_id}: {e}") from e

        if status == 404:
            raise AssetNotFoundError(asset_id)
        if status >= 400 or not data.get("success", True) or not data.get("url"):
            raise ContentUrlError(
                data.get("error") or f"Failed to get content URL for {asset_id} (HTTP {status})"
            )

        try:
            if "expiresInSeconds" in data:
                return ContentUrl(url=data["url"], expires_in_seconds=data["expiresInSeconds"])
            return ContentUrl(url=data["url"])
        except ValueError as e:
            raise ContentUrlError(f"Malformed content URL reply for {asset_id}: {e}") from e

    async def delete_asset(self, asset_id: str) -> None:
        """Delete an asset on the service.

        Raises:
            AssetNotFoundError: If the asset does not exist
            AssetServiceError: On any other failure
        """
        try:
            status, data = await self._request("DELETE", self._url("delete", asset_id=asset_id))
        except httpx.HTTPError as e:
            raise AssetServiceError(f"Failed to delete {asset_id}: {e}") from e

        if status == 404:
            raise AssetNotFoundError(asset_id)
        if status >= 400 or not data.get("success", True):
            raise AssetServiceError(data.get("error") or f"Failed to delete {asset_id} (HTTP {status})")
