"""Cape provider registry.

Providers are instantiated once at startup for the configured cape types and
handed to the resolver; nothing looks them up globally at request time.
"""

import httpx

from capes.services.providers.base import CapeProvider, CropSpec, ProviderCapabilities
from capes.services.providers.labymod import LabymodProvider
from capes.services.providers.minecraft import MinecraftProvider
from capes.services.providers.minecraftcapes import MinecraftcapesProvider
from capes.services.providers.optifine import OptifineProvider

PROVIDER_CLASSES: dict[str, type[CapeProvider]] = {
    cls.type_name: cls
    for cls in (
        MinecraftProvider,
        OptifineProvider,
        LabymodProvider,
        MinecraftcapesProvider,
    )
}


def build_providers(
    cape_types: list[str],
    client: httpx.AsyncClient,
) -> dict[str, CapeProvider]:
    """Instantiate the providers for the configured cape types, in order.

    Raises:
        ValueError: If a configured type has no provider implementation
    """
    unknown = [t for t in cape_types if t not in PROVIDER_CLASSES]
    if unknown:
        raise ValueError(
            f"Unknown cape type(s) {unknown}; available: {sorted(PROVIDER_CLASSES)}"
        )
    return {t: PROVIDER_CLASSES[t](client) for t in cape_types}


__all__ = [
    "CapeProvider",
    "CropSpec",
    "PROVIDER_CLASSES",
    "ProviderCapabilities",
    "build_providers",
]
