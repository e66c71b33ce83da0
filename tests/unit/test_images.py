"""Unit tests for image utility functions."""

from io import BytesIO

import pytest
from PIL import Image

from capes.services.providers.base import CropSpec
from capes.utils.images import (
    content_type_for,
    crop_transform,
    render_animation,
    render_still,
    scale_crop_box,
    sniff_image,
    split_frames,
)
from tests.unit.fakes import make_png, make_sheet

FRONT = CropSpec(x=1, y=1, width=10, height=16)


def _make_gif(frames: int = 3, size=(64, 32)) -> bytes:
    images = [
        Image.new("RGBA", size, (60 * i, 20, 120, 255)).convert("P") for i in range(frames)
    ]
    buffer = BytesIO()
    images[0].save(
        buffer, format="GIF", save_all=True, append_images=images[1:], duration=100
    )
    return buffer.getvalue()


class TestSniffImage:
    def test_reads_png_dimensions(self):
        info = sniff_image(make_png(128, 64))

        assert (info.width, info.height, info.extension) == (128, 64, "png")

    def test_reads_gif_extension(self):
        assert sniff_image(_make_gif()).extension == "gif"

    def test_rejects_non_image_bytes(self):
        with pytest.raises(ValueError):
            sniff_image(b"definitely not an image")


class TestContentTypeFor:
    def test_known_extensions(self):
        assert content_type_for("png") == "image/png"
        assert content_type_for("gif") == "image/gif"

    def test_unknown_extension_falls_back(self):
        assert content_type_for("") == "application/octet-stream"


class TestScaleCropBox:
    """Tests for mapping declared rectangles onto real images."""

    def test_static_coordinates_are_used_as_is(self):
        box = scale_crop_box(FRONT, dynamic=False, size=(128, 64), base_width=64)

        assert box == (1, 1, 11, 17)

    def test_dynamic_coordinates_scale_with_width(self):
        """An HD cape twice the base width doubles the rectangle."""
        box = scale_crop_box(FRONT, dynamic=True, size=(128, 64), base_width=64)

        assert box == (2, 2, 22, 34)

    def test_box_is_clamped_to_image(self):
        rect = CropSpec(x=60, y=30, width=10, height=10)

        box = scale_crop_box(rect, dynamic=False, size=(64, 32), base_width=64)

        assert box == (60, 30, 64, 32)


class TestCropTransform:
    def test_output_is_upscaled_png(self):
        png = crop_transform(
            make_png(), FRONT, dynamic=True, size=(64, 32), base_width=64, scale=4
        )

        with Image.open(BytesIO(png)) as img:
            assert img.format == "PNG"
            assert img.size == (40, 64)

    def test_empty_crop_raises(self):
        rect = CropSpec(x=100, y=100, width=5, height=5)

        with pytest.raises(ValueError):
            crop_transform(make_png(), rect, dynamic=False, size=(64, 32))


class TestSplitFrames:
    def test_stacked_sheet_is_split_by_aspect_ratio(self):
        frames = split_frames(make_sheet(width=64, frames=4), aspect_ratio=2.0)

        assert len(frames) == 4
        assert all(frame.size == (64, 32) for frame in frames)
        assert frames[0].getpixel((0, 0)) != frames[1].getpixel((0, 0))

    def test_single_frame_image_is_not_split(self):
        frames = split_frames(make_png(64, 32), aspect_ratio=2.0)

        assert len(frames) == 1

    def test_partial_second_frame_is_not_split(self):
        """A sheet shorter than two whole frames counts as a still image."""
        frames = split_frames(make_png(64, 50), aspect_ratio=2.0)

        assert len(frames) == 1

    def test_native_gif_frames_are_used(self):
        frames = split_frames(_make_gif(frames=3), aspect_ratio=2.0)

        assert len(frames) == 3


class TestRendering:
    def test_still_is_first_frame(self):
        frames = split_frames(make_sheet(frames=2), aspect_ratio=2.0)

        with Image.open(BytesIO(render_still(frames))) as img:
            assert img.size == (64, 32)

    def test_animation_loops_every_frame(self):
        frames = split_frames(make_sheet(frames=3), aspect_ratio=2.0)

        gif = render_animation(frames, frame_delay=80)

        with Image.open(BytesIO(gif)) as img:
            assert img.format == "GIF"
            assert img.n_frames == 3
            assert img.info.get("loop") == 0
            assert img.info.get("duration") == 80
