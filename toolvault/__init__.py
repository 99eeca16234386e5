"""ToolVault - Equipment asset library with cached preview thumbnails."""

from toolvault.models.asset import Asset, AssetType
from toolvault.vault import ToolVault

__version__ = "0.1.0"
__all__ = ["ToolVault", "Asset", "AssetType"]
