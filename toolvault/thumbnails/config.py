"""Thumbnail cache limits and rendering configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

MIB = 1024 * 1024
DAY_SECONDS = 24 * 60 * 60


class CacheLimits(BaseModel):
    """Capacity and expiry bounds for the thumbnail cache."""

    max_size_bytes: int = Field(default=50 * MIB, description="Total payload bytes allowed")
    max_items: int = Field(default=100, description="Maximum number of cached thumbnails")
    max_age_seconds: float = Field(default=7 * DAY_SECONDS, description="Entry time-to-live")
    key_prefix: str = Field(default="thumbnail_", description="Namespace prefix for store keys")
    retry_evict_count: int = Field(
        default=10, description="Oldest entries evicted before retrying a failed write"
    )
    headroom_items: int = Field(
        default=10, description="Extra entries freed below max_items on eviction"
    )
    evict_fraction: float = Field(
        default=0.2, description="Minimum share of entries evicted per pass"
    )


class CameraConfig(BaseModel):
    """Fixed camera pose for 3D thumbnails."""

    position: tuple[float, float, float] = (2.0, 2.0, 2.0)
    target: tuple[float, float, float] = (0.0, 0.0, 0.0)
    up: tuple[float, float, float] = (0.0, 1.0, 0.0)
    fov_degrees: float = Field(default=50.0, description="Vertical field of view")
    near: float = Field(default=0.05, description="Near clipping distance")


class LightConfig(BaseModel):
    """A directional light, pointing from `direction` towards the origin."""

    direction: tuple[float, float, float]
    intensity: float


def _default_lights() -> list[LightConfig]:
    return [
        LightConfig(direction=(5.0, 5.0, 5.0), intensity=0.75),  # key
        LightConfig(direction=(-5.0, 3.0, -5.0), intensity=0.3),  # fill
        LightConfig(direction=(0.0, 4.0, -6.0), intensity=0.25),  # rim
    ]


class LightingConfig(BaseModel):
    """Three-point lighting rig with ambient and hemisphere terms."""

    ambient: float = Field(default=0.3, description="Uniform ambient intensity")
    hemisphere: float = Field(default=0.2, description="Sky/ground blend intensity")
    sky_color: str = Field(default="#ffffff")
    ground_color: str = Field(default="#444444")
    lights: list[LightConfig] = Field(default_factory=_default_lights)


class ThumbnailConfig(BaseModel):
    """Configuration for thumbnail generation."""

    size: int = Field(default=400, description="Side length of the square thumbnail")
    background: str = Field(default="#f9fafb", description="Canvas fill color (hex)")
    model_color: str = Field(default="#b4b9c2", description="Base color for untextured meshes")
    model_scale: float = Field(default=1.5, description="Largest model dimension after scaling")
    settle_delay: float = Field(
        default=0.15, description="Seconds to wait after scene load before capture"
    )
    supersample: int = Field(default=2, description="Render scale factor before downsampling")
    default_model_format: str = Field(
        default="glb", description="3D format assumed when the file name has no suffix"
    )
    camera: CameraConfig = Field(default_factory=CameraConfig)
    lighting: LightingConfig = Field(default_factory=LightingConfig)

    @property
    def supported_image_formats(self) -> set[str]:
        """2D formats that can be rendered as thumbnails."""
        return {"svg", "png", "jpg", "jpeg", "gif", "webp", "bmp", "ico", "tif", "tiff"}

    @property
    def supported_model_formats(self) -> set[str]:
        """3D formats the scene renderer can load."""
        return {"glb", "gltf", "obj", "stl", "ply", "off"}
