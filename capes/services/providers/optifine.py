"""OptiFine capes, served as plain PNGs keyed by player name."""

from typing import Optional

from capes.services.providers.base import (
    STANDARD_CAPE_TRANSFORMS,
    CapeProvider,
    ProviderCapabilities,
)

OPTIFINE_CAPE_URL = "http://s.optifine.net/capes/{name}.png"


class OptifineProvider(CapeProvider):
    type_name = "optifine"
    # OptiFine capes use a 46x22 layout on a canvas that doubles for HD capes
    capabilities = ProviderCapabilities(
        transforms=STANDARD_CAPE_TRANSFORMS,
        dynamic_coordinates=True,
        base_width=46,
    )

    async def fetch(self, name: str, player_id: str) -> Optional[bytes]:
        return await self._get_image(OPTIFINE_CAPE_URL.format(name=name))
