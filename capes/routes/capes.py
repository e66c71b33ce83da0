import asyncio
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, Request, Response

from capes.errors import CapeNotFound, StorageFailure
from capes.models.capes import CapeHistory, CapeInfo, CapeStats
from capes.services.cape_service import CapeResolver
from capes.utils.hashing import transform_key
from capes.utils.players import parse_player_reference

router = APIRouter(tags=["capes"])


def get_resolver(request: Request) -> CapeResolver:
    """Resolver built at startup and kept on app state."""
    return request.app.state.resolver


@router.get("/")
async def index():
    return {"msg": "Hi!"}


@router.get("/types", response_model=list[str])
async def list_types(resolver: CapeResolver = Depends(get_resolver)) -> list[str]:
    """Configured cape types."""
    return resolver.supported_types


@router.get("/stats", response_model=CapeStats)
async def stats(resolver: CapeResolver = Depends(get_resolver)) -> CapeStats:
    """Record counts overall, by distinct player, and by type."""
    return CapeStats(**await resolver.records.stats())


@router.get("/load/{player}", response_model=dict[str, CapeInfo])
async def load_all_capes(
    player: str,
    resolver: CapeResolver = Depends(get_resolver),
) -> dict[str, CapeInfo]:
    """Load or refresh the player's capes for every configured type."""
    parse_player_reference(player)
    capes = await asyncio.gather(
        *(resolver.resolve(cape_type, player) for cape_type in resolver.supported_types)
    )
    return {cape.type: cape for cape in capes}


@router.get("/load/{player}/{cape_type}", response_model=CapeInfo)
async def load_cape(
    player: str,
    cape_type: str,
    resolver: CapeResolver = Depends(get_resolver),
) -> CapeInfo:
    """Load or refresh the player's cape for one type."""
    return await resolver.resolve(cape_type, player)


@router.get("/history/{player}", response_model=CapeHistory)
@router.get("/history/{player}/{cape_type}", response_model=CapeHistory)
async def cape_history(
    player: str,
    cape_type: Optional[str] = None,
    resolver: CapeResolver = Depends(get_resolver),
) -> CapeHistory:
    """Every cape the player has been seen with, newest first."""
    reference = parse_player_reference(player)
    if cape_type is not None:
        resolver.provider_for(cape_type)
    capes = await resolver.records.history(reference, cape_type)
    return CapeHistory(
        type=cape_type or "all",
        player=reference.value,
        history=[resolver.cape_info(cape, message=False) for cape in capes],
    )


@router.get("/get/{record_hash}", response_model=CapeInfo)
async def get_cape(
    record_hash: str,
    resolver: CapeResolver = Depends(get_resolver),
) -> CapeInfo:
    """A single stored observation by its record hash."""
    cape = await resolver.records.get_by_hash(record_hash)
    if cape is None:
        raise CapeNotFound()
    return resolver.cape_info(cape)


@router.get("/img/{image_hash}")
async def cape_image(
    image_hash: str,
    resolver: CapeResolver = Depends(get_resolver),
) -> Response:
    """Canonical cape image."""
    return await _send_cape_image(resolver, image_hash)


@router.get("/img/{transform}/{image_hash}")
async def cape_transform_image(
    transform: str,
    image_hash: str,
    resolver: CapeResolver = Depends(get_resolver),
) -> Response:
    """A derived variant (crop, still frame or animation) of a cape image."""
    return await _send_cape_image(resolver, image_hash, transform)


async def _send_cape_image(
    resolver: CapeResolver, image_hash: str, transform: Optional[str] = None
) -> Response:
    # Drop a potential file extension
    image_hash = image_hash.split(".")[0]
    cape = await resolver.records.find_by_image_hash(image_hash)
    if cape is None:
        raise CapeNotFound()

    key = transform_key(cape.image_hash, transform) if transform else cape.image_hash
    store = resolver.pipeline.store
    try:
        found = await asyncio.to_thread(store.download, key)
    except (BotoCoreError, ClientError, OSError, ValueError) as e:
        raise StorageFailure("failed to load cape image") from e
    if found is None:
        raise CapeNotFound("cape image not found")

    data, content_type = found
    return Response(
        content=data,
        media_type=content_type,
        headers={"X-Image-Location": store.get_public_url(key)},
    )
