"""MinecraftCapes.net capes, which may be animated sprite sheets."""

from typing import Optional

from capes.services.providers.base import (
    STANDARD_CAPE_TRANSFORMS,
    CapeProvider,
    ProviderCapabilities,
    decode_base64_image,
)

MINECRAFTCAPES_PROFILE_URL = "https://api.minecraftcapes.net/profile/{uuid}"


class MinecraftcapesProvider(CapeProvider):
    type_name = "minecraftcapes"
    # Animated capes stack 2:1 frames vertically
    capabilities = ProviderCapabilities(
        transforms=STANDARD_CAPE_TRANSFORMS,
        aspect_ratio=2.0,
        dynamic_coordinates=True,
        supports_animation=True,
        frame_delay=100,
    )

    async def fetch(self, name: str, player_id: str) -> Optional[bytes]:
        profile = await self._get_json(MINECRAFTCAPES_PROFILE_URL.format(uuid=player_id))
        if profile is None:
            return None
        textures = profile.get("textures") or {}
        return decode_base64_image(textures.get("cape"))
