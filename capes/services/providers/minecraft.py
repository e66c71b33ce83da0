"""Official Minecraft capes, read from the Mojang session server profile."""

import base64
import json
import logging
from typing import Optional

from capes.config import settings
from capes.errors import UpstreamFetchFailure
from capes.services.providers.base import (
    STANDARD_CAPE_TRANSFORMS,
    CapeProvider,
    ProviderCapabilities,
)

logger = logging.getLogger(__name__)


class MinecraftProvider(CapeProvider):
    type_name = "minecraft"
    capabilities = ProviderCapabilities(
        transforms=STANDARD_CAPE_TRANSFORMS,
        dynamic_coordinates=True,
    )

    async def fetch(self, name: str, player_id: str) -> Optional[bytes]:
        base = settings.session_server_url.rstrip("/")
        profile = await self._get_json(f"{base}/session/minecraft/profile/{player_id}")
        if profile is None:
            return None

        cape_url = _cape_url_from_profile(profile)
        if not cape_url:
            return None
        return await self._get_image(cape_url)


def _cape_url_from_profile(profile: dict) -> Optional[str]:
    """Extract the CAPE texture URL from a session server profile."""
    for prop in profile.get("properties", []):
        if prop.get("name") != "textures":
            continue
        try:
            textures = json.loads(base64.b64decode(prop.get("value", "")))
        except ValueError as e:
            raise UpstreamFetchFailure("malformed textures property") from e
        entries = (textures.get("textures") or {}) if isinstance(textures, dict) else None
        if not isinstance(entries, dict):
            raise UpstreamFetchFailure("malformed textures property")
        cape = entries.get("CAPE")
        if isinstance(cape, dict):
            return cape.get("url")
    return None
