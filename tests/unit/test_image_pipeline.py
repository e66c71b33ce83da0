"""Unit tests for the derived image pipeline."""

from __future__ import annotations

import threading
from io import BytesIO

import pytest
from PIL import Image

from capes.errors import CollaboratorTimeout, StorageFailure
from capes.services import image_pipeline
from capes.services.image_pipeline import DerivedImagePipeline
from capes.services.providers.base import STANDARD_CAPE_TRANSFORMS, ProviderCapabilities
from capes.utils.hashing import content_hash
from tests.unit.fakes import FakeContentStore, make_png, make_sheet

STATIC = ProviderCapabilities(transforms=STANDARD_CAPE_TRANSFORMS, dynamic_coordinates=True)
ANIMATED = ProviderCapabilities(
    transforms=STANDARD_CAPE_TRANSFORMS,
    dynamic_coordinates=True,
    supports_animation=True,
    frame_delay=50,
)


@pytest.mark.asyncio
class TestDerivedImagePipeline:
    async def test_uploads_canonical_and_transforms(
        self, pipeline: DerivedImagePipeline, content_store: FakeContentStore
    ):
        data = make_png(64, 32)
        h = content_hash(data)

        result = await pipeline.process(data, h, "optifine", STATIC, (64, 32))

        assert result.frame_count == 0
        assert sorted(result.keys) == sorted([h, f"{h}_front", f"{h}_back"])
        assert content_store.objects[h] == (data, "image/png")

    async def test_transforms_use_configured_scale(
        self, pipeline: DerivedImagePipeline, content_store: FakeContentStore
    ):
        """The pipeline fixture upscales crops by 2."""
        data = make_png(64, 32)
        h = content_hash(data)

        await pipeline.process(data, h, "optifine", STATIC, (64, 32))

        front, content_type = content_store.objects[f"{h}_front"]
        assert content_type == "image/png"
        with Image.open(BytesIO(front)) as img:
            assert img.size == (20, 32)

    async def test_hd_cape_crops_scale_with_width(
        self, pipeline: DerivedImagePipeline, content_store: FakeContentStore
    ):
        data = make_png(128, 64)
        h = content_hash(data)

        await pipeline.process(data, h, "optifine", STATIC, (128, 64))

        with Image.open(BytesIO(content_store.objects[f"{h}_back"][0])) as img:
            assert img.size == (40, 64)

    async def test_animated_sheet_adds_still_and_gif(
        self, pipeline: DerivedImagePipeline, content_store: FakeContentStore
    ):
        data = make_sheet(frames=4)
        h = content_hash(data)

        result = await pipeline.process(data, h, "minecraftcapes", ANIMATED, (64, 128))

        assert result.frame_count == 4
        assert f"{h}_still" in result.keys
        gif, content_type = content_store.objects[f"{h}_animated"]
        assert content_type == "image/gif"
        with Image.open(BytesIO(gif)) as img:
            assert img.n_frames == 4

    async def test_animation_ignored_for_static_providers(
        self, pipeline: DerivedImagePipeline
    ):
        data = make_sheet(frames=4)

        result = await pipeline.process(data, content_hash(data), "optifine", STATIC, (64, 128))

        assert result.frame_count == 0

    async def test_upload_error_is_storage_failure(
        self, pipeline: DerivedImagePipeline, content_store: FakeContentStore
    ):
        content_store.fail = True
        data = make_png()

        with pytest.raises(StorageFailure):
            await pipeline.process(data, content_hash(data), "optifine", STATIC, (64, 32))

    async def test_slow_upload_times_out(self, content_store: FakeContentStore):
        content_store.delay = 0.2
        pipeline = DerivedImagePipeline(
            content_store,  # type: ignore[arg-type]
            upload_timeout=0.01,
            settle_seconds=0,
        )
        data = make_png()

        with pytest.raises(CollaboratorTimeout):
            await pipeline.process(data, content_hash(data), "optifine", STATIC, (64, 32))

    async def test_image_work_runs_off_the_event_loop(
        self,
        pipeline: DerivedImagePipeline,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """Decoding and cropping happen in a worker thread, not the loop thread."""
        loop_thread = threading.get_ident()
        crop_threads: list[int] = []
        original = image_pipeline.crop_transform

        def recording_crop(*args, **kwargs):
            crop_threads.append(threading.get_ident())
            return original(*args, **kwargs)

        monkeypatch.setattr(image_pipeline, "crop_transform", recording_crop)
        data = make_png()

        await pipeline.process(data, content_hash(data), "optifine", STATIC, (64, 32))

        assert len(crop_threads) == len(STANDARD_CAPE_TRANSFORMS)
        assert loop_thread not in crop_threads
