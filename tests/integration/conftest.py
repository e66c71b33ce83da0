"""Builders and fixtures for record store integration tests."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capes.schemas.capes import Cape
from capes.services.cape_repository import CapeRepository
from capes.utils.hashing import record_hash

PLAYER_ID = "069a79f444e94726a5befca90e38aaf5"
PLAYER_NAME = "Notch"


def make_cape(
    *,
    image_hash: str = "a" * 64,
    cape_type: str = "optifine",
    time: int = 1_700_000_000,
    player: str = PLAYER_ID,
    player_name: str = PLAYER_NAME,
    **overrides,
) -> Cape:
    """Build an unsaved Cape with a record hash derived from its fields."""
    values = dict(
        hash=record_hash(image_hash, player, cape_type, time),
        player=player,
        player_name=player_name,
        lower_player_name=player_name.lower(),
        type=cape_type,
        time=time,
        extension="png",
        image_hash=image_hash,
        width=64,
        height=32,
    )
    values.update(overrides)
    return Cape(**values)


@pytest.fixture()
def repository(session_factory: async_sessionmaker[AsyncSession]) -> CapeRepository:
    return CapeRepository(session_factory)
