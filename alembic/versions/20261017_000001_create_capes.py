"""create capes table

Revision ID: 20261017_000001
Revises:
Create Date: 2026-10-17
"""

from alembic import op  # type: ignore[attr-defined]
import sqlalchemy as sa
import sqlmodel

revision = "20261017_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "capes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("hash", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("player", sqlmodel.sql.sqltypes.AutoString(length=32), nullable=False),
        sa.Column(
            "player_name", sqlmodel.sql.sqltypes.AutoString(length=16), nullable=False
        ),
        sa.Column(
            "lower_player_name",
            sqlmodel.sql.sqltypes.AutoString(length=16),
            nullable=False,
        ),
        sa.Column("type", sqlmodel.sql.sqltypes.AutoString(length=32), nullable=False),
        sa.Column("time", sa.BigInteger(), nullable=False),
        sa.Column(
            "extension",
            sqlmodel.sql.sqltypes.AutoString(length=8),
            nullable=False,
            server_default="",
        ),
        sa.Column(
            "image_hash", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False
        ),
        sa.Column("width", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("height", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("animated", sa.Boolean(), nullable=True),
        sa.Column("animation_frames", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(op.f("ix_capes_hash"), "capes", ["hash"], unique=True)
    op.create_index(op.f("ix_capes_player"), "capes", ["player"], unique=False)
    op.create_index(
        op.f("ix_capes_lower_player_name"), "capes", ["lower_player_name"], unique=False
    )
    op.create_index(op.f("ix_capes_type"), "capes", ["type"], unique=False)
    op.create_index(op.f("ix_capes_time"), "capes", ["time"], unique=False)
    op.create_index(op.f("ix_capes_image_hash"), "capes", ["image_hash"], unique=False)
    op.create_index(
        "ix_capes_type_player_time", "capes", ["type", "player", "time"], unique=False
    )
    op.create_index(
        "ix_capes_type_lower_name_time",
        "capes",
        ["type", "lower_player_name", "time"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_capes_type_lower_name_time", table_name="capes")
    op.drop_index("ix_capes_type_player_time", table_name="capes")
    op.drop_index(op.f("ix_capes_image_hash"), table_name="capes")
    op.drop_index(op.f("ix_capes_time"), table_name="capes")
    op.drop_index(op.f("ix_capes_type"), table_name="capes")
    op.drop_index(op.f("ix_capes_lower_player_name"), table_name="capes")
    op.drop_index(op.f("ix_capes_player"), table_name="capes")
    op.drop_index(op.f("ix_capes_hash"), table_name="capes")
    op.drop_table("capes")
