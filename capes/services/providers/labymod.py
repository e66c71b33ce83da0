from typing import Optional

from capes.services.providers.base import (
    STANDARD_CAPE_TRANSFORMS,
    CapeProvider,
    ProviderCapabilities,
    dashed_uuid,
)

LABYMOD_CAPE_URL = "https://dl.labymod.net/capes/{uuid}"


class LabymodProvider(CapeProvider):
    type_name = "labymod"
    capabilities = ProviderCapabilities(
        transforms=STANDARD_CAPE_TRANSFORMS,
        dynamic_coordinates=True,
    )

    async def fetch(self, name: str, player_id: str) -> Optional[bytes]:
        return await self._get_image(LABYMOD_CAPE_URL.format(uuid=dashed_uuid(player_id)))
