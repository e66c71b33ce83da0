"""Response models for the cape API."""

from typing import Optional

from sqlmodel import SQLModel

from capes.schemas.capes import Cape
from capes.services.providers.base import ProviderCapabilities
from capes.utils.hashing import NO_CAPE


class CapeInfo(SQLModel):
    """Client-facing projection of a cape record.

    ``changed`` is only set on responses produced by a fresh provider fetch:
    False when the fetched image matched the stored one, True when a new
    record was created.
    """

    hash: str
    player: str
    player_name: str
    type: str
    time: int
    width: int
    height: int
    extension: str
    exists: bool
    image_hash: Optional[str] = None
    cape_url: Optional[str] = None
    image_url: Optional[str] = None
    still_image_url: Optional[str] = None
    transform_urls: dict[str, str] = {}
    animated: bool = False
    animation_frames: Optional[int] = None
    animated_image_url: Optional[str] = None
    changed: Optional[bool] = None
    msg: Optional[str] = None


class CapeHistory(SQLModel):
    type: str
    player: str
    history: list[CapeInfo]


class CapeStats(SQLModel):
    total: int
    players: int
    types: dict[str, int]


def make_cape_info(
    cape: Cape,
    *,
    base_url: str,
    capabilities: Optional[ProviderCapabilities] = None,
    changed: Optional[bool] = None,
    message: bool = True,
) -> CapeInfo:
    """Project a stored record into the API shape.

    Args:
        cape: Stored record
        base_url: Public base URL of this API, used for asset links
        capabilities: Provider metadata; its transforms become per-transform URLs
        changed: Which resolution branch produced the record, if any
        message: Whether to include the human-readable ``msg``
    """
    exists = cape.image_hash != NO_CAPE
    base = base_url.rstrip("/")
    info = CapeInfo(
        hash=cape.hash,
        player=cape.player,
        player_name=cape.player_name,
        type=cape.type,
        time=cape.time,
        width=cape.width,
        height=cape.height,
        extension=cape.extension,
        exists=exists,
        changed=changed,
    )
    if message:
        info.msg = "Cape found" if exists else "Player has no cape"
    if not exists:
        return info

    image_url = f"{base}/img/{cape.image_hash}"
    info.image_hash = cape.image_hash
    info.cape_url = f"{base}/get/{cape.hash}"
    info.image_url = image_url
    if capabilities is not None:
        info.transform_urls = {
            name: f"{base}/img/{name}/{cape.image_hash}"
            for name in capabilities.transforms
        }
    if cape.animated:
        info.animated = True
        info.animation_frames = cape.animation_frames
        info.still_image_url = f"{base}/img/still/{cape.image_hash}"
        info.animated_image_url = f"{base}/img/animated/{cape.image_hash}"
    else:
        # Non-animated capes are their own still image
        info.still_image_url = image_url
    return info
