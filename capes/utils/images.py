"""Pillow helpers for sniffing, cropping and splitting cape images."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING, Tuple

from PIL import Image, ImageSequence, UnidentifiedImageError

if TYPE_CHECKING:
    from capes.services.providers.base import CropSpec

# Pillow format name -> stored file extension
FORMAT_EXTENSIONS = {
    "PNG": "png",
    "GIF": "gif",
    "JPEG": "jpg",
    "WEBP": "webp",
    "BMP": "bmp",
}

CONTENT_TYPES = {
    "png": "image/png",
    "gif": "image/gif",
    "jpg": "image/jpeg",
    "webp": "image/webp",
    "bmp": "image/bmp",
}


@dataclass(frozen=True)
class ImageInfo:
    width: int
    height: int
    extension: str


def sniff_image(data: bytes) -> ImageInfo:
    """Read dimensions and file extension from raw image bytes.

    Raises:
        ValueError: If the bytes are not a readable image
    """
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
            fmt = img.format or ""
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"unreadable image: {e}") from e
    return ImageInfo(width=width, height=height, extension=FORMAT_EXTENSIONS.get(fmt, ""))


def content_type_for(extension: str) -> str:
    return CONTENT_TYPES.get(extension, "application/octet-stream")


def scale_crop_box(
    rect: CropSpec,
    *,
    dynamic: bool,
    size: Tuple[int, int],
    base_width: int,
) -> Tuple[int, int, int, int]:
    """Turn a declared crop rectangle into a Pillow box for an actual image.

    With dynamic coordinates the rectangle is declared against an image
    ``base_width`` pixels wide and is scaled to the real width (HD capes).
    The box is clamped to the image bounds.
    """
    width, height = size
    factor = width / base_width if dynamic and base_width > 0 else 1.0
    left = round(rect.x * factor)
    top = round(rect.y * factor)
    right = round((rect.x + rect.width) * factor)
    bottom = round((rect.y + rect.height) * factor)
    return (
        max(0, min(left, width)),
        max(0, min(top, height)),
        max(0, min(right, width)),
        max(0, min(bottom, height)),
    )


def crop_transform(
    data: bytes,
    rect: CropSpec,
    *,
    dynamic: bool,
    size: Tuple[int, int],
    base_width: int = 64,
    scale: int = 1,
) -> bytes:
    """Crop a region out of the image and return it as PNG bytes.

    The crop is upscaled with nearest-neighbour so pixel art stays sharp.
    """
    box = scale_crop_box(rect, dynamic=dynamic, size=size, base_width=base_width)
    if box[2] <= box[0] or box[3] <= box[1]:
        raise ValueError(f"crop {rect} is empty for a {size[0]}x{size[1]} image")

    with Image.open(BytesIO(data)) as img:
        region = img.convert("RGBA").crop(box)

    if scale > 1:
        region = region.resize(
            (region.width * scale, region.height * scale),
            Image.Resampling.NEAREST,
        )
    return _to_png(region)


def split_frames(data: bytes, aspect_ratio: float) -> list[Image.Image]:
    """Split an animated cape into frames.

    Multi-frame formats (GIF, WebP) yield their native frames. Static sheets
    are split into vertically stacked frames, each ``width / aspect_ratio``
    pixels tall. A single-element list means the image is not animated.
    """
    with Image.open(BytesIO(data)) as img:
        if getattr(img, "n_frames", 1) > 1:
            return [frame.convert("RGBA") for frame in ImageSequence.Iterator(img)]
        sheet = img.convert("RGBA")

    width, height = sheet.size
    frame_height = round(width / aspect_ratio) if aspect_ratio > 0 else 0
    if frame_height <= 0 or height < frame_height * 2:
        return [sheet]

    count = height // frame_height
    return [
        sheet.crop((0, i * frame_height, width, (i + 1) * frame_height))
        for i in range(count)
    ]


def render_still(frames: list[Image.Image]) -> bytes:
    """Representative static frame as PNG."""
    return _to_png(frames[0])


def render_animation(frames: list[Image.Image], frame_delay: int) -> bytes:
    """Looping GIF of all frames, ``frame_delay`` milliseconds each."""
    buffer = BytesIO()
    frames[0].save(
        buffer,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=frame_delay,
        loop=0,
        disposal=2,
    )
    return buffer.getvalue()


def _to_png(img: Image.Image) -> bytes:
    buffer = BytesIO()
    img.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()
