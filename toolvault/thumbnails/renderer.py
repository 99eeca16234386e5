"""2D thumbnail renderer using Pillow and resvg."""

from __future__ import annotations

import re
from dataclasses import dataclass
from io import BytesIO

import resvg_py
from PIL import Image, ImageOps, UnidentifiedImageError

from toolvault.thumbnails.config import ThumbnailConfig


class ThumbnailRenderError(Exception):
    """Raised when a 2D asset cannot be decoded or composed."""


@dataclass(frozen=True)
class FitLayout:
    """Placement of a source image scaled into a square canvas."""

    scale: float
    width: float
    height: float
    x: float
    y: float

    @property
    def box(self) -> tuple[int, int, int, int]:
        """Integer paste box (left, top, right, bottom)."""
        left, top = round(self.x), round(self.y)
        return (left, top, left + max(1, round(self.width)), top + max(1, round(self.height)))


def compute_fit(src_width: float, src_height: float, side: int) -> FitLayout:
    """Scale a source to fit within a square, preserving aspect ratio, centered."""
    if src_width <= 0 or src_height <= 0:
        raise ThumbnailRenderError(f"Invalid source dimensions {src_width}x{src_height}")
    scale = min(side / src_width, side / src_height)
    width = src_width * scale
    height = src_height * scale
    return FitLayout(
        scale=scale,
        width=width,
        height=height,
        x=(side - width) / 2,
        y=(side - height) / 2,
    )


class RenderResult:
    """Result of rendering a thumbnail."""

    def __init__(
        self,
        image: Image.Image,
        original_width: int | None = None,
        original_height: int | None = None,
        layout: FitLayout | None = None,
    ) -> None:
        self.image = image
        self.original_width = original_width
        self.original_height = original_height
        self.layout = layout


class ThumbnailRenderer:
    """Composes 2D drawings and images onto a fixed square canvas."""

    def __init__(self, config: ThumbnailConfig | None = None) -> None:
        self.config = config or ThumbnailConfig()

    @property
    def size(self) -> int:
        return self.config.size

    def render(self, data: bytes, format: str | None = None) -> RenderResult:
        """Render a thumbnail from image bytes.

        Args:
            data: Encoded image (or SVG document)
            format: Source format hint (e.g., 'svg', 'png'). Sniffed if None.

        Returns:
            RenderResult with the composed RGB canvas and placement metadata

        Raises:
            ThumbnailRenderError: If the data cannot be decoded
        """
        if format == "svg" or (format is None and self._looks_like_svg(data)):
            return self._render_svg(data)
        return self._render_raster(data)

    def new_canvas(self) -> Image.Image:
        """Create a blank canvas filled with the background color."""
        return Image.new("RGB", (self.size, self.size), self._hex_to_rgb(self.config.background))

    def compose(self, image: Image.Image) -> RenderResult:
        """Scale an image to fit the canvas and center it."""
        layout = compute_fit(image.width, image.height, self.size)
        left, top, right, bottom = layout.box
        scaled = image.convert("RGBA").resize((right - left, bottom - top), Image.Resampling.LANCZOS)

        canvas = self.new_canvas()
        canvas.paste(scaled, (left, top), scaled)

        return RenderResult(
            image=canvas,
            original_width=image.width,
            original_height=image.height,
            layout=layout,
        )

    def to_png(self, image: Image.Image) -> bytes:
        """Encode an image as PNG."""
        if image.mode not in ("RGBA", "RGB"):
            image = image.convert("RGBA")

        output = BytesIO()
        image.save(output, format="PNG", optimize=True)
        return output.getvalue()

    def _render_raster(self, data: bytes) -> RenderResult:
        """Decode a raster image and compose it."""
        try:
            image = Image.open(BytesIO(data))
            image.load()
            image = ImageOps.exif_transpose(image)
            return self.compose(image)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ThumbnailRenderError(f"Cannot decode image: {e}") from e

    def _render_svg(self, data: bytes) -> RenderResult:
        """Rasterize an SVG drawing at its fitted size and compose it."""
        try:
            svg_string = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ThumbnailRenderError(f"SVG is not valid UTF-8: {e}") from e

        width, height = self._svg_dimensions(svg_string)
        layout = compute_fit(width, height, self.size)
        left, top, right, bottom = layout.box

        try:
            png_data = resvg_py.svg_to_bytes(
                svg_string=svg_string,
                width=right - left,
                height=bottom - top,
            )
            image = Image.open(BytesIO(bytes(png_data)))
            image.load()
        except Exception as e:
            raise ThumbnailRenderError(f"Cannot render SVG: {e}") from e

        result = self.compose(image)
        result.original_width = round(width)
        result.original_height = round(height)
        result.layout = layout
        return result

    @staticmethod
    def _svg_dimensions(svg_string: str) -> tuple[float, float]:
        """Intrinsic SVG size from viewBox or width/height, square if unknown."""
        viewbox_match = re.search(r'viewBox=["\']([^"\']+)["\']', svg_string)
        if viewbox_match:
            parts = viewbox_match.group(1).replace(",", " ").split()
            if len(parts) >= 4:
                try:
                    width, height = float(parts[2]), float(parts[3])
                    if width > 0 and height > 0:
                        return width, height
                except ValueError:
                    pass

        width_match = re.search(r'<svg[^>]*\swidth=["\']([\d.]+)', svg_string)
        height_match = re.search(r'<svg[^>]*\sheight=["\']([\d.]+)', svg_string)
        if width_match and height_match:
            width, height = float(width_match.group(1)), float(height_match.group(1))
            if width > 0 and height > 0:
                return width, height

        return 1.0, 1.0

    @staticmethod
    def _looks_like_svg(data: bytes) -> bool:
        head = data[:512].lstrip().lower()
        return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in data[:2048].lower())

    @staticmethod
    def _hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
        """Convert hex color to RGB tuple."""
        hex_color = hex_color.lstrip("#")
        return tuple(int(hex_color[i : i + 2], 16) for i in (0, 2, 4))  # type: ignore[return-value]
