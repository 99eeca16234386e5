"""Asset data models."""

from __future__ import annotations

import time
from enum import Enum
from pathlib import PurePosixPath
from urllib.parse import urlparse

from pydantic import BaseModel, Field


class AssetType(str, Enum):
    """Kind of uploaded asset; selects the thumbnail strategy."""

    MODEL_3D = "3d"
    DRAWING_2D = "2d"

    @property
    def placeholder_icon(self) -> str:
        """Icon shown when no thumbnail is available."""
        return "wrench" if self is AssetType.MODEL_3D else "file-image"


class Asset(BaseModel):
    """An uploaded equipment asset as described by the asset service."""

    id: str = Field(..., description="Stable asset identifier")
    asset_type: AssetType = Field(..., alias="type")
    name: str | None = Field(default=None)
    file_name: str | None = Field(default=None, alias="fileName")
    file_path: str | None = Field(default=None, alias="filePath")
    file_size: int | None = Field(default=None, alias="fileSize")
    mime_type: str | None = Field(default=None, alias="mimeType")
    group_id: str | None = Field(default=None, alias="groupId")
    uploaded_at: str | None = Field(default=None, alias="uploadedAt")

    model_config = {"populate_by_name": True}

    @property
    def file_format(self) -> str | None:
        """Lowercase file extension, if the file name has one."""
        return file_format_of(self.file_name or self.file_path)


def file_format_of(name: str | None) -> str | None:
    """Extract a lowercase format from a file name or URL path."""
    if not name:
        return None
    path = urlparse(name).path if "://" in name else name
    suffix = PurePosixPath(path).suffix
    return suffix.lstrip(".").lower() or None


class ContentUrl(BaseModel):
    """A time-limited signed URL granting read access to an asset's bytes."""

    url: str
    expires_in_seconds: float = Field(default=3600, alias="expiresInSeconds")
    issued_at: float = Field(default_factory=time.time)

    model_config = {"populate_by_name": True}

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.expires_in_seconds

    def is_expired(self, now: float | None = None) -> bool:
        """Check whether the URL has passed its validity window."""
        return (time.time() if now is None else now) >= self.expires_at


class GenerationRequest(BaseModel):
    """A request to produce one thumbnail."""

    asset_id: str
    content_url: str
    asset_type: AssetType
    file_name: str | None = Field(default=None, description="Format hint for the loader")

    @property
    def file_format(self) -> str | None:
        return file_format_of(self.file_name) or file_format_of(self.content_url)
