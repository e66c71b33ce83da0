"""Cape resolution: serve a cached record or fetch, dedup and store a new one.

A lookup is served from the record store while the latest record for the
(type, player) is younger than the freshness window. Otherwise the player is
resolved, the provider is asked for the current cape and its content hash is
compared with the latest record:

- same hash: the existing record's time is moved forward (``changed=False``)
- new hash or no record: derived images are uploaded, then a new record is
  inserted (``changed=True``)

Records are never deleted, so every distinct cape a player has worn remains in
the history.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from capes.config import settings
from capes.errors import (
    CollaboratorTimeout,
    DuplicateObservation,
    PlayerNotFound,
    UnsupportedType,
    UpstreamFetchFailure,
)
from capes.models.capes import CapeInfo, make_cape_info
from capes.schemas.capes import Cape
from capes.services.cape_repository import CapeRepository
from capes.services.identity_service import MojangIdentityResolver
from capes.services.image_pipeline import DerivedImagePipeline
from capes.services.providers.base import CapeProvider
from capes.utils.hashing import NO_CAPE, content_hash, record_hash
from capes.utils.images import sniff_image
from capes.utils.players import PlayerReference, parse_player_reference

logger = logging.getLogger(__name__)

T = TypeVar("T")


def epoch_seconds() -> int:
    return int(time.time())


class RequestCoalescer:
    """Shares one in-flight resolution among concurrent identical requests.

    Keys are (cape type, normalized player reference). Waiters get a shielded
    view of the shared task so one cancelled caller does not cancel the work
    the others are waiting on.
    """

    def __init__(self) -> None:
        self._pending: dict[tuple[str, str], asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._pending)

    async def run(
        self, key: tuple[str, str], factory: Callable[[], Awaitable[T]]
    ) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda _t: self._pending.pop(key, None))
        else:
            logger.debug(f"Joining in-flight resolution for {key}")
        return await asyncio.shield(task)


class CapeResolver:
    """Resolves the current cape of a player for one provider type."""

    def __init__(
        self,
        *,
        records: CapeRepository,
        identity: MojangIdentityResolver,
        providers: dict[str, CapeProvider],
        pipeline: DerivedImagePipeline,
        coalescer: Optional[RequestCoalescer] = None,
        freshness_seconds: int | None = None,
        identity_timeout: float | None = None,
        provider_timeout: float | None = None,
        base_url: str | None = None,
        clock: Callable[[], int] = epoch_seconds,
    ) -> None:
        self.records = records
        self.identity = identity
        self.providers = providers
        self.pipeline = pipeline
        self.coalescer = coalescer
        self.freshness_seconds = (
            freshness_seconds if freshness_seconds is not None else settings.freshness_seconds
        )
        self.identity_timeout = identity_timeout or settings.identity_timeout
        self.provider_timeout = provider_timeout or settings.provider_timeout
        self.base_url = base_url or settings.public_base_url
        self.clock = clock

    @property
    def supported_types(self) -> list[str]:
        return list(self.providers)

    def provider_for(self, cape_type: str) -> CapeProvider:
        provider = self.providers.get(cape_type)
        if provider is None:
            raise UnsupportedType(cape_type, self.supported_types)
        return provider

    def cape_info(
        self, cape: Cape, *, changed: Optional[bool] = None, message: bool = True
    ) -> CapeInfo:
        provider = self.providers.get(cape.type)
        return make_cape_info(
            cape,
            base_url=self.base_url,
            capabilities=provider.capabilities if provider else None,
            changed=changed,
            message=message,
        )

    async def resolve(self, cape_type: str, player: str) -> CapeInfo:
        """Return the current cape of ``player`` for ``cape_type``.

        Raises:
            UnsupportedType: The cape type is not configured
            InvalidPlayerReference: ``player`` is neither a name nor a uuid
            PlayerNotFound: The identity service does not know the player
            UpstreamFetchFailure: Identity service or provider failed
            CollaboratorTimeout: An upstream call did not finish in time
            StorageFailure: Record or content store failed
        """
        provider = self.provider_for(cape_type)
        reference = parse_player_reference(player)
        if self.coalescer is None:
            return await self._resolve(cape_type, provider, reference)
        return await self.coalescer.run(
            (cape_type, reference.value),
            lambda: self._resolve(cape_type, provider, reference),
        )

    async def _resolve(
        self,
        cape_type: str,
        provider: CapeProvider,
        reference: PlayerReference,
    ) -> CapeInfo:
        existing = await self.records.find_latest(cape_type, reference)
        now = self.clock()
        if existing is not None and now - existing.time < self.freshness_seconds:
            return self.cape_info(existing)

        identity = await self._bounded(
            self.identity.resolve(reference), self.identity_timeout, "identity lookup"
        )
        if identity is None:
            raise PlayerNotFound()

        logger.info(
            f"Loading {cape_type} cape for {identity.name} ({identity.player_id})..."
        )
        data = await self._bounded(
            provider.fetch(identity.name, identity.player_id),
            self.provider_timeout,
            f"{cape_type} fetch",
        )
        image_hash = content_hash(data) if data else NO_CAPE

        if existing is not None and existing.player != identity.player_id:
            # The name now belongs to another player; continue that player's lineage
            existing = await self.records.find_latest(
                cape_type, PlayerReference(value=identity.player_id, is_id=True)
            )

        if existing is not None:
            # Observation times never go backwards within a lineage
            now = max(now, existing.time)
            if existing.image_hash == image_hash:
                logger.info(
                    f"Updating time of existing {cape_type} cape for {identity.name} "
                    f"({existing.hash})"
                )
                updated = await self.records.update_time(existing, now)
                return self.cape_info(updated, changed=False)

        cape = await self._store_new_cape(
            cape_type, provider, identity.name, identity.player_id, data, image_hash, now
        )
        return self.cape_info(cape, changed=True)

    async def _store_new_cape(
        self,
        cape_type: str,
        provider: CapeProvider,
        name: str,
        player_id: str,
        data: Optional[bytes],
        image_hash: str,
        now: int,
    ) -> Cape:
        cape_hash = record_hash(image_hash, player_id, cape_type, now)
        width = height = 0
        extension = ""
        frame_count = 0

        if data:
            try:
                image = sniff_image(data)
                width, height, extension = image.width, image.height, image.extension
                logger.info(
                    f"Saving new {cape_type} cape for {name} "
                    f"({cape_hash} {width}x{height})"
                )
                result = await self.pipeline.process(
                    data,
                    image_hash,
                    cape_type,
                    provider.capabilities,
                    (width, height),
                    extension=extension,
                )
            except ValueError as e:
                logger.warning(f"Unusable {cape_type} cape image for {name}: {e}")
                raise UpstreamFetchFailure(f"{cape_type} returned an unusable image") from e
            frame_count = result.frame_count
        else:
            logger.info(f"Saving {cape_type} no-cape state for {name} ({cape_hash})")

        cape = Cape(
            hash=cape_hash,
            player=player_id,
            player_name=name,
            lower_player_name=name.lower(),
            type=cape_type,
            time=now,
            extension=extension,
            image_hash=image_hash,
            width=width,
            height=height,
        )
        if frame_count > 0:
            cape.animated = True
            cape.animation_frames = frame_count
        try:
            return await self.records.insert(cape)
        except DuplicateObservation:
            # A concurrent resolution stored the identical observation first
            stored = await self.records.get_by_hash(cape_hash)
            if stored is None:
                raise
            return stored

    async def _bounded(self, awaitable: Awaitable[T], timeout: float, what: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"{what} timed out after {timeout}s")
            raise CollaboratorTimeout(f"{what} timed out") from e
