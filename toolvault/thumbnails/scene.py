"""Off-screen 3D thumbnail rendering with trimesh, numpy and Pillow.

Rendering happens in two phases. `load_and_normalize` parses the model,
centers it on the origin and scales it to a reference size. After a settle
delay, `capture` rasterizes one frame from a fixed camera with a flat-shaded
painter's algorithm. Both phases run in worker threads so the event loop
stays responsive.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from io import BytesIO

import numpy as np
import trimesh
from PIL import Image, ImageDraw

from toolvault.thumbnails.config import ThumbnailConfig

logger = logging.getLogger(__name__)


class SceneRenderError(Exception):
    """Raised when a 3D asset cannot be loaded or rendered."""


@dataclass
class NormalizedScene:
    """Triangle soup centered on the origin, largest dimension == model_scale."""

    vertices: np.ndarray  # (n, 3) float
    faces: np.ndarray  # (m, 3) int
    face_colors: np.ndarray  # (m, 3) float in [0, 1]
    original_extents: tuple[float, float, float]

    @property
    def extents(self) -> np.ndarray:
        return self.vertices.max(axis=0) - self.vertices.min(axis=0)

    @property
    def center(self) -> np.ndarray:
        return (self.vertices.max(axis=0) + self.vertices.min(axis=0)) / 2


def _hex_to_unit_rgb(hex_color: str) -> np.ndarray:
    hex_color = hex_color.lstrip("#")
    return np.array([int(hex_color[i : i + 2], 16) for i in (0, 2, 4)], dtype=float) / 255.0


def _normalize(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
    return vectors / np.where(norms == 0, 1.0, norms)


class SceneRenderer:
    """Renders a 3D model to a fixed-size square thumbnail."""

    def __init__(self, config: ThumbnailConfig | None = None) -> None:
        self.config = config or ThumbnailConfig()

    async def render(self, data: bytes, file_type: str | None = None) -> Image.Image:
        """Load, settle and capture a model.

        Raises:
            SceneRenderError: If the model cannot be loaded or rendered
        """
        scene = await asyncio.to_thread(self.load_and_normalize, data, file_type)
        if self.config.settle_delay > 0:
            await asyncio.sleep(self.config.settle_delay)
        return await asyncio.to_thread(self.capture, scene)

    def load_and_normalize(self, data: bytes, file_type: str | None = None) -> NormalizedScene:
        """Parse a model and fit it into the reference cube."""
        file_type = (file_type or self.config.default_model_format).lower()
        if file_type not in self.config.supported_model_formats:
            raise SceneRenderError(f"Unsupported model format: {file_type}")

        try:
            mesh = trimesh.load(BytesIO(data), file_type=file_type, force="mesh")
        except Exception as e:
            raise SceneRenderError(f"Cannot load {file_type} model: {e}") from e

        if not isinstance(mesh, trimesh.Trimesh) or len(mesh.faces) == 0:
            raise SceneRenderError("Model contains no triangles")

        vertices = np.asarray(mesh.vertices, dtype=float)
        faces = np.asarray(mesh.faces, dtype=np.int64)

        lower, upper = vertices.min(axis=0), vertices.max(axis=0)
        extents = upper - lower
        max_dim = float(extents.max())
        if not math.isfinite(max_dim) or max_dim <= 0:
            raise SceneRenderError("Model has a degenerate bounding box")

        center = (lower + upper) / 2
        scale = self.config.model_scale / max_dim
        normalized = (vertices - center) * scale

        logger.debug(
            f"Normalized model: {len(faces)} faces, extents {extents.tolist()}, scale {scale:.4f}"
        )

        return NormalizedScene(
            vertices=normalized,
            faces=faces,
            face_colors=self._face_colors(mesh, len(faces)),
            original_extents=(float(extents[0]), float(extents[1]), float(extents[2])),
        )

    def _face_colors(self, mesh: trimesh.Trimesh, face_count: int) -> np.ndarray:
        """Per-face base colors from the mesh, falling back to the configured color."""
        base = _hex_to_unit_rgb(self.config.model_color)
        visual = getattr(mesh, "visual", None)
        if visual is not None and getattr(visual, "kind", None) in ("face", "vertex"):
            colors = np.asarray(visual.face_colors, dtype=float)
            if colors.shape[0] == face_count:
                return colors[:, :3] / 255.0
        return np.tile(base, (face_count, 1))

    def capture(self, scene: NormalizedScene) -> Image.Image:
        """Rasterize one frame of a normalized scene.

        Raises:
            SceneRenderError: If the frame cannot be drawn
        """
        try:
            return self._rasterize(scene)
        except Exception as e:
            raise SceneRenderError(f"Cannot render scene: {e}") from e

    def _rasterize(self, scene: NormalizedScene) -> Image.Image:
        camera = self.config.camera
        size = self.config.size
        render_size = size * max(1, self.config.supersample)

        eye = np.array(camera.position, dtype=float)
        forward = _normalize(np.array(camera.target, dtype=float) - eye)
        right = _normalize(np.cross(forward, np.array(camera.up, dtype=float)))
        up = np.cross(right, forward)

        relative = scene.vertices - eye
        cam_x = relative @ right
        cam_y = relative @ up
        depth = relative @ forward

        focal = 1.0 / math.tan(math.radians(camera.fov_degrees) / 2)
        safe_depth = np.where(depth > camera.near, depth, camera.near)
        screen_x = (focal * cam_x / safe_depth + 1.0) * 0.5 * render_size
        screen_y = (1.0 - focal * cam_y / safe_depth) * 0.5 * render_size

        faces = scene.faces
        tri_depth = depth[faces]
        visible = (tri_depth > camera.near).all(axis=1)

        corners = scene.vertices[faces]
        normals = _normalize(np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0]))
        centroids = corners.mean(axis=1)
        # Faces seen from behind are lit as their front side
        facing_away = np.einsum("ij,ij->i", normals, centroids - eye) > 0
        normals[facing_away] *= -1

        shades = self._shade(normals, scene.face_colors)

        order = np.argsort(-tri_depth.mean(axis=1), kind="stable")
        image = Image.new("RGB", (render_size, render_size), self._background())
        draw = ImageDraw.Draw(image)
        for index in order:
            if not visible[index]:
                continue
            tri = faces[index]
            polygon = [(float(screen_x[v]), float(screen_y[v])) for v in tri]
            color = tuple(int(c) for c in shades[index])
            draw.polygon(polygon, fill=color, outline=color)

        if render_size != size:
            image = image.resize((size, size), Image.Resampling.LANCZOS)
        return image

    def _shade(self, normals: np.ndarray, base_colors: np.ndarray) -> np.ndarray:
        """Lambert shading with ambient, hemisphere and directional lights."""
        lighting = self.config.lighting
        intensity = np.full((len(normals), 1), lighting.ambient)

        for light in lighting.lights:
            direction = _normalize(np.array(light.direction, dtype=float))
            lambert = np.clip(normals @ direction, 0.0, None)[:, None]
            intensity = intensity + lambert * light.intensity

        sky = _hex_to_unit_rgb(lighting.sky_color)
        ground = _hex_to_unit_rgb(lighting.ground_color)
        blend = (normals[:, 1:2] * 0.5) + 0.5
        hemisphere = (ground + (sky - ground) * blend) * lighting.hemisphere

        rgb = base_colors * intensity + base_colors * hemisphere
        return np.clip(rgb * 255.0, 0, 255).round()

    def _background(self) -> tuple[int, int, int]:
        rgb = _hex_to_unit_rgb(self.config.background) * 255.0
        return (int(round(rgb[0])), int(round(rgb[1])), int(round(rgb[2])))
