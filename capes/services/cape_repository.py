"""Record store for cape observations backed by SQLModel/asyncpg.

Each operation opens its own short-lived session so concurrent resolutions
never share one.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capes.errors import DuplicateObservation, StorageFailure
from capes.schemas.capes import Cape
from capes.utils.hashing import NO_CAPE
from capes.utils.players import PlayerReference

logger = logging.getLogger(__name__)


def _player_filter(reference: PlayerReference):
    if reference.is_id:
        return Cape.player == reference.value
    return Cape.lower_player_name == reference.value


class CapeRepository:
    """Queries and writes for the ``capes`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def find_latest(
        self, cape_type: str, reference: PlayerReference
    ) -> Optional[Cape]:
        """Most recent observation for a (type, player); newest insert wins ties."""
        stmt = (
            select(Cape)
            .where(Cape.type == cape_type, _player_filter(reference))
            .order_by(desc(Cape.time), desc(Cape.id))  # type: ignore[arg-type]
            .limit(1)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return result.scalars().first()
        except SQLAlchemyError as e:
            logger.exception("Failed to query latest cape")
            raise StorageFailure("database error") from e

    async def insert(self, cape: Cape) -> Cape:
        """Insert a new observation.

        Raises:
            DuplicateObservation: The record hash is already stored
            StorageFailure: Any other database error
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(cape)
                await session.refresh(cape)
                return cape
        except IntegrityError as e:
            logger.warning(f"Cape {cape.hash} is already stored")
            raise DuplicateObservation() from e
        except SQLAlchemyError as e:
            logger.exception(f"Failed to save cape {cape.hash}")
            raise StorageFailure("database error") from e

    async def update_time(self, cape: Cape, time: int) -> Cape:
        """Move an existing observation's time forward in place."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    stored = await session.get(Cape, cape.id)
                    if stored is None:
                        raise StorageFailure(f"cape {cape.hash} disappeared")
                    stored.time = time
                return stored
        except SQLAlchemyError as e:
            logger.exception(f"Failed to update time of cape {cape.hash}")
            raise StorageFailure("database error") from e

    async def history(
        self, reference: PlayerReference, cape_type: Optional[str] = None
    ) -> list[Cape]:
        """All observations of actual capes for a player, newest first."""
        stmt = select(Cape).where(_player_filter(reference), Cape.image_hash != NO_CAPE)
        if cape_type is not None:
            stmt = stmt.where(Cape.type == cape_type)
        stmt = stmt.order_by(desc(Cape.time), desc(Cape.id))  # type: ignore[arg-type]
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.exception("Failed to query cape history")
            raise StorageFailure("database error") from e

    async def get_by_hash(self, record_hash: str) -> Optional[Cape]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Cape).where(Cape.hash == record_hash))
                return result.scalars().first()
        except SQLAlchemyError as e:
            logger.exception("Failed to query cape by hash")
            raise StorageFailure("database error") from e

    async def find_by_image_hash(self, image_hash: str) -> Optional[Cape]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Cape).where(Cape.image_hash == image_hash).limit(1)
                )
                return result.scalars().first()
        except SQLAlchemyError as e:
            logger.exception("Failed to query cape by image hash")
            raise StorageFailure("database error") from e

    async def stats(self) -> dict:
        """Total observations, distinct players and observations per type."""
        try:
            async with self.session_factory() as session:
                total = await session.scalar(select(func.count()).select_from(Cape))
                players = await session.scalar(
                    select(func.count(func.distinct(Cape.player)))
                )
                per_type = await session.execute(
                    select(Cape.type, func.count()).group_by(Cape.type)
                )
        except SQLAlchemyError as e:
            logger.exception("Failed to compute stats")
            raise StorageFailure("database error") from e

        return {
            "total": total or 0,
            "players": players or 0,
            "types": {cape_type: count for cape_type, count in per_type.all()},
        }
