"""Cape record table: one row per confirmed (type, player, content) observation."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Column, Index
from sqlmodel import Field, SQLModel


class Cape(SQLModel, table=True):  # type: ignore[call-arg]
    """A cape observation.

    ``hash`` is derived from (image_hash, player, type, time) and is unique per
    observation. ``image_hash`` identifies the raw image bytes and is shared by
    every observation of identical content; it holds ``NO_CAPE`` when the
    provider confirmed the player has no cape.
    """

    __tablename__ = "capes"
    __table_args__ = (
        Index("ix_capes_type_player_time", "type", "player", "time"),
        Index("ix_capes_type_lower_name_time", "type", "lower_player_name", "time"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    hash: str = Field(unique=True, index=True, max_length=64)
    player: str = Field(index=True, min_length=32, max_length=32)
    player_name: str = Field(min_length=2, max_length=16)
    lower_player_name: str = Field(index=True, max_length=16)
    type: str = Field(index=True, max_length=32)
    time: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    extension: str = Field(default="", max_length=8)
    image_hash: str = Field(index=True, max_length=64)
    width: int = Field(default=0)
    height: int = Field(default=0)
    animated: Optional[bool] = Field(default=None)
    animation_frames: Optional[int] = Field(default=None)
