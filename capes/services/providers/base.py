"""Base class and capability metadata shared by cape providers."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

import httpx

from capes.errors import UpstreamFetchFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CropSpec:
    """Rectangle of a named transform, in source pixels."""

    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class ProviderCapabilities:
    """Static layout and animation metadata for a provider's images.

    ``dynamic_coordinates`` means transform rectangles are declared against an
    image ``base_width`` pixels wide and scale with the actual width.
    ``aspect_ratio`` is width / height of a single animation frame and
    ``frame_delay`` is in milliseconds.
    """

    transforms: dict[str, CropSpec] = field(default_factory=dict)
    aspect_ratio: float = 2.0
    dynamic_coordinates: bool = False
    supports_animation: bool = False
    frame_delay: int = 100
    base_width: int = 64


# Front and back panels of the standard 64x32 cape layout
STANDARD_CAPE_TRANSFORMS = {
    "front": CropSpec(x=1, y=1, width=10, height=16),
    "back": CropSpec(x=12, y=1, width=10, height=16),
}


class CapeProvider:
    """A source of cape images for one cape type.

    Subclasses set ``type_name`` and ``capabilities`` and implement ``fetch``.
    """

    type_name: ClassVar[str]
    capabilities: ClassVar[ProviderCapabilities] = ProviderCapabilities()

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def fetch(self, name: str, player_id: str) -> Optional[bytes]:
        """Return the raw cape image, or None if the player has no cape.

        Raises:
            UpstreamFetchFailure: The provider errored or was unreachable
        """
        raise NotImplementedError

    async def _get(self, url: str) -> Optional[httpx.Response]:
        """GET a URL, mapping "no such cape" responses to None."""
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"{self.type_name}: request to {url} failed: {e}")
            raise UpstreamFetchFailure(f"failed to load {self.type_name} cape") from e

        if response.status_code in (204, 404):
            return None
        if response.status_code >= 400:
            logger.warning(
                f"{self.type_name}: {url} returned HTTP {response.status_code}"
            )
            raise UpstreamFetchFailure(f"failed to load {self.type_name} cape")
        return response

    async def _get_image(self, url: str) -> Optional[bytes]:
        response = await self._get(url)
        if response is None or not response.content:
            return None
        return response.content

    async def _get_json(self, url: str) -> Optional[dict[str, Any]]:
        response = await self._get(url)
        if response is None or not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamFetchFailure(
                f"{self.type_name} returned malformed JSON"
            ) from e
        return payload if isinstance(payload, dict) else None


def decode_base64_image(value: Optional[str]) -> Optional[bytes]:
    """Decode a base64 image field, treating empty values as no image."""
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True) or None
    except ValueError as e:
        raise UpstreamFetchFailure("provider returned a malformed image") from e


def dashed_uuid(player_id: str) -> str:
    """Format a 32-char hex id as a dashed UUID."""
    p = player_id
    return f"{p[:8]}-{p[8:12]}-{p[12:16]}-{p[16:20]}-{p[20:]}"
