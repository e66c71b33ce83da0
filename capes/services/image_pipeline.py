"""Derived image pipeline for newly seen cape content.

Uploads the canonical image, one cropped variant per provider transform and,
for animated providers, a still frame and a looping GIF. Every upload must
succeed before the caller persists a record describing them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Tuple

from botocore.exceptions import BotoCoreError, ClientError

from capes.config import settings
from capes.errors import CollaboratorTimeout, StorageFailure
from capes.services.providers.base import ProviderCapabilities
from capes.services.s3_client import S3Client
from capes.utils.hashing import transform_key
from capes.utils.images import (
    content_type_for,
    crop_transform,
    render_animation,
    render_still,
    split_frames,
)

logger = logging.getLogger(__name__)

# Wait after all uploads settle before reporting completion, for CDNs that
# serve stale 404s briefly after a write. S3 itself is read-after-write
# consistent, so this defaults to 0.
ARTIFACT_SETTLE_SECONDS = settings.artifact_settle_seconds

STILL_TRANSFORM = "still"
ANIMATED_TRANSFORM = "animated"


@dataclass
class PipelineResult:
    """Keys written to the content store and the detected frame count.

    A frame count of 0 means the image is not animated.
    """

    keys: list[str] = field(default_factory=list)
    frame_count: int = 0


class DerivedImagePipeline:
    """Produces and uploads every artifact for one image hash."""

    def __init__(
        self,
        store: S3Client,
        *,
        upload_timeout: float | None = None,
        settle_seconds: float | None = None,
        transform_scale: int | None = None,
    ) -> None:
        self.store = store
        self.upload_timeout = (
            upload_timeout if upload_timeout is not None else settings.content_store_timeout
        )
        self.settle_seconds = (
            settle_seconds if settle_seconds is not None else ARTIFACT_SETTLE_SECONDS
        )
        self.transform_scale = transform_scale or settings.transform_scale

    async def process(
        self,
        data: bytes,
        image_hash: str,
        cape_type: str,
        capabilities: ProviderCapabilities,
        size: Tuple[int, int],
        extension: str = "png",
    ) -> PipelineResult:
        """Generate and upload all artifacts for a new image.

        Raises:
            StorageFailure: An upload failed
            CollaboratorTimeout: An upload did not finish in time
            ValueError: The image could not be decoded or cropped
        """
        start_time = time.perf_counter()
        artifacts, frame_count = await asyncio.to_thread(
            self._build_artifacts, data, image_hash, capabilities, size, extension
        )
        result = PipelineResult(frame_count=frame_count)
        if frame_count:
            logger.info(f"{cape_type} cape {image_hash} has {frame_count} frames")

        await asyncio.gather(
            *(self._upload(key, body, content_type) for key, body, content_type in artifacts)
        )
        result.keys = [key for key, _, _ in artifacts]

        if self.settle_seconds > 0:
            await asyncio.sleep(self.settle_seconds)

        logger.info(
            f"Uploaded {len(result.keys)} artifact(s) for {cape_type} cape {image_hash} "
            f"in {time.perf_counter() - start_time:.3f}s"
        )
        return result

    def _build_artifacts(
        self,
        data: bytes,
        image_hash: str,
        capabilities: ProviderCapabilities,
        size: Tuple[int, int],
        extension: str,
    ) -> tuple[list[tuple[str, bytes, str]], int]:
        """Decode, crop and encode every artifact. Runs in a worker thread."""
        frame_count = 0
        artifacts: list[tuple[str, bytes, str]] = [
            (image_hash, data, content_type_for(extension))
        ]

        for name, rect in capabilities.transforms.items():
            png_bytes = crop_transform(
                data,
                rect,
                dynamic=capabilities.dynamic_coordinates,
                size=size,
                base_width=capabilities.base_width,
                scale=self.transform_scale,
            )
            artifacts.append((transform_key(image_hash, name), png_bytes, "image/png"))

        if capabilities.supports_animation:
            frames = split_frames(data, capabilities.aspect_ratio)
            if len(frames) > 1:
                frame_count = len(frames)
                artifacts.append(
                    (transform_key(image_hash, STILL_TRANSFORM), render_still(frames), "image/png")
                )
                artifacts.append(
                    (
                        transform_key(image_hash, ANIMATED_TRANSFORM),
                        render_animation(frames, capabilities.frame_delay),
                        "image/gif",
                    )
                )
        return artifacts, frame_count

    async def _upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.store.upload, key, data, content_type),
                timeout=self.upload_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Upload of {key} timed out after {self.upload_timeout}s")
            raise CollaboratorTimeout("content store timed out") from e
        except (BotoCoreError, ClientError, OSError, ValueError) as e:
            logger.exception(f"Failed to upload {key}")
            raise StorageFailure("failed to upload cape image") from e
