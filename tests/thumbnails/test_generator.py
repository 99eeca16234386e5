"""Tests for the thumbnail generation coordinator."""

from __future__ import annotations

import asyncio
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from toolvault.models.asset import AssetType, GenerationRequest
from toolvault.thumbnails import ThumbnailCache, ThumbnailGenerationError, ThumbnailGenerator

from tests.conftest import FILES_HOST, FakeAssetService

DRAWING_PATH = "/model_2/drawing.png"


def drawing_request(asset_id: str = "model_2") -> GenerationRequest:
    return GenerationRequest(
        asset_id=asset_id,
        content_url=f"https://{FILES_HOST}/model_2/drawing.png?token=abc",
        asset_type=AssetType.DRAWING_2D,
        file_name="drawing.png",
    )


async def wait_until_pending(generator: ThumbnailGenerator, asset_id: str) -> None:
    for _ in range(1000):
        if generator.is_pending(asset_id):
            return
        await asyncio.sleep(0)
    raise AssertionError(f"Generation for {asset_id} never started")


class TestGenerate:
    """Tests for ThumbnailGenerator.generate."""

    @pytest.mark.asyncio
    async def test_generate_2d(self, generator: ThumbnailGenerator, cache: ThumbnailCache) -> None:
        payload = await generator.generate(drawing_request())

        image = Image.open(BytesIO(payload))
        assert image.format == "PNG"
        assert image.size == (400, 400)
        assert cache.get("model_2") == payload
        assert not generator.is_pending("model_2")

    @pytest.mark.asyncio
    async def test_generate_3d(self, generator: ThumbnailGenerator, cache: ThumbnailCache) -> None:
        request = GenerationRequest(
            asset_id="model_1",
            content_url=f"https://{FILES_HOST}/model_1/wrench.glb?token=abc",
            asset_type=AssetType.MODEL_3D,
            file_name="wrench.glb",
        )

        payload = await generator.generate(request)

        image = Image.open(BytesIO(payload))
        assert image.size == (400, 400)
        assert image.getpixel((200, 200))[:3] != (249, 250, 251)
        assert cache.get("model_1") == payload

    @pytest.mark.asyncio
    async def test_format_taken_from_url(
        self, generator: ThumbnailGenerator, asset_service: FakeAssetService
    ) -> None:
        svg = b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10"><rect width="10" height="10"/></svg>'
        asset_service.add("plan", "2d", svg, "plan.svg")
        request = GenerationRequest(
            asset_id="plan",
            content_url=f"https://{FILES_HOST}/plan/plan.svg?token=abc",
            asset_type=AssetType.DRAWING_2D,
        )

        payload = await generator.generate(request)

        assert Image.open(BytesIO(payload)).size == (400, 400)

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_work(
        self,
        generator: ThumbnailGenerator,
        cache: ThumbnailCache,
        asset_service: FakeAssetService,
    ) -> None:
        writes: list[str] = []
        original_set = cache.set

        def recording_set(asset_id: str, payload: bytes) -> None:
            writes.append(asset_id)
            original_set(asset_id, payload)

        cache.set = recording_set  # type: ignore[method-assign]

        first, second = await asyncio.gather(
            generator.generate(drawing_request()),
            generator.generate(drawing_request()),
        )

        assert first == second
        assert asset_service.count("GET", DRAWING_PATH) == 1
        assert writes == ["model_2"]

    @pytest.mark.asyncio
    async def test_sequential_requests_run_again(
        self, generator: ThumbnailGenerator, asset_service: FakeAssetService
    ) -> None:
        await generator.generate(drawing_request())
        await generator.generate(drawing_request())

        assert asset_service.count("GET", DRAWING_PATH) == 2


class TestFailures:
    """Tests for fetch and render failures."""

    @pytest.mark.asyncio
    async def test_fetch_failure(self, generator: ThumbnailGenerator, cache: ThumbnailCache) -> None:
        request = GenerationRequest(
            asset_id="ghost",
            content_url=f"https://{FILES_HOST}/ghost/gone.png",
            asset_type=AssetType.DRAWING_2D,
        )

        with pytest.raises(ThumbnailGenerationError) as exc_info:
            await generator.generate(request)

        assert exc_info.value.asset_id == "ghost"
        assert cache.get("ghost") is None
        assert not generator.is_pending("ghost")

    @pytest.mark.asyncio
    async def test_unparseable_url(self, generator: ThumbnailGenerator, cache: ThumbnailCache) -> None:
        request = GenerationRequest(
            asset_id="model_2",
            content_url=f"https://{FILES_HOST}:notaport/model_2/drawing.png",
            asset_type=AssetType.DRAWING_2D,
        )

        with pytest.raises(ThumbnailGenerationError, match="fetch failed"):
            await generator.generate(request)

        assert cache.get("model_2") is None

    @pytest.mark.asyncio
    async def test_oversized_image(
        self,
        generator: ThumbnailGenerator,
        cache: ThumbnailCache,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)

        with pytest.raises(ThumbnailGenerationError):
            await generator.generate(drawing_request())

        assert cache.get("model_2") is None

    @pytest.mark.asyncio
    async def test_render_failure(
        self,
        generator: ThumbnailGenerator,
        cache: ThumbnailCache,
        asset_service: FakeAssetService,
    ) -> None:
        asset_service.add("broken", "2d", b"not an image", "broken.png")
        request = GenerationRequest(
            asset_id="broken",
            content_url=f"https://{FILES_HOST}/broken/broken.png",
            asset_type=AssetType.DRAWING_2D,
        )

        with pytest.raises(ThumbnailGenerationError):
            await generator.generate(request)

        assert cache.get("broken") is None

    @pytest.mark.asyncio
    async def test_failure_propagates_to_every_waiter(
        self, generator: ThumbnailGenerator, asset_service: FakeAssetService
    ) -> None:
        asset_service.add("broken", "3d", b"not a model", "broken.glb")
        request = GenerationRequest(
            asset_id="broken",
            content_url=f"https://{FILES_HOST}/broken/broken.glb",
            asset_type=AssetType.MODEL_3D,
        )

        results = await asyncio.gather(
            generator.generate(request),
            generator.generate(request),
            return_exceptions=True,
        )

        assert all(isinstance(r, ThumbnailGenerationError) for r in results)
        assert asset_service.count("GET", "/broken/broken.glb") == 1


class TestDiscard:
    """Tests for dropping in-flight generations."""

    @pytest.mark.asyncio
    async def test_discarded_result_not_cached(
        self, generator: ThumbnailGenerator, cache: ThumbnailCache
    ) -> None:
        task = asyncio.create_task(generator.generate(drawing_request()))
        await wait_until_pending(generator, "model_2")

        generator.discard("model_2")
        payload = await task

        assert payload
        assert cache.get("model_2") is None

    @pytest.mark.asyncio
    async def test_discard_unknown_is_noop(self, generator: ThumbnailGenerator) -> None:
        generator.discard("nothing")
        assert not generator.is_pending("nothing")


class TestRenderFile:
    """Tests for rendering local files."""

    @pytest.mark.asyncio
    async def test_render_local_model(self, tmp_path: Path, box_glb: bytes) -> None:
        path = tmp_path / "part.glb"
        path.write_bytes(box_glb)
        generator = ThumbnailGenerator()

        payload = await generator.render_file(str(path), AssetType.MODEL_3D)

        assert Image.open(BytesIO(payload)).size == (400, 400)

    @pytest.mark.asyncio
    async def test_render_local_garbage(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.png"
        path.write_bytes(b"nope")
        generator = ThumbnailGenerator()

        with pytest.raises(ThumbnailGenerationError):
            await generator.render_file(str(path), AssetType.DRAWING_2D)
