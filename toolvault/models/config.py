"""Configuration models for ToolVault."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from toolvault.thumbnails.config import CacheLimits, ThumbnailConfig


class ApiConfig(BaseModel):
    """Asset service configuration."""

    base_url: str = Field(
        default="http://localhost:8000", description="Base URL of the asset service"
    )
    api_key_env: str = Field(
        default="TOOLVAULT_API_KEY", description="Environment variable holding the bearer token"
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    endpoints: dict[str, str] = Field(
        default_factory=lambda: {
            "list": "/models",
            "content_url": "/model/{asset_id}/url",
            "delete": "/models/{asset_id}",
        },
        description="API endpoint paths",
    )

    @property
    def api_key(self) -> str | None:
        """Bearer token from the environment. Never stored in config files."""
        return os.environ.get(self.api_key_env) or None


class VaultConfig(BaseModel):
    """Complete ToolVault configuration."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    cache: CacheLimits = Field(default_factory=CacheLimits)
    thumbnails: ThumbnailConfig = Field(default_factory=ThumbnailConfig)
    db_name: str = Field(default="thumbnails.db", description="SQLite file under the data dir")

    @classmethod
    def from_yaml(cls, path: Path) -> "VaultConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    @classmethod
    def load(cls, path: Path | None) -> "VaultConfig":
        """Load from `path` if it exists, otherwise use defaults."""
        if path is not None and path.exists():
            return cls.from_yaml(path)
        return cls()
