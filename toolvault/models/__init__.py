"""Data models for ToolVault."""

from toolvault.models.asset import Asset, AssetType, ContentUrl, GenerationRequest
from toolvault.models.config import ApiConfig, VaultConfig

__all__ = [
    # Asset models
    "Asset",
    "AssetType",
    "ContentUrl",
    "GenerationRequest",
    # Config
    "ApiConfig",
    "VaultConfig",
]
