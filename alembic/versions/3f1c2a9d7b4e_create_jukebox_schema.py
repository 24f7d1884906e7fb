"""create_jukebox_schema

Revision ID: 3f1c2a9d7b4e
Revises:
Create Date: 2026-10-17 09:12:41.318204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '3f1c2a9d7b4e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("spotify_id", sa.String(128), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("avatar_url", sa.String(512), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("favorite_genres", sa.JSON(), nullable=True),
        sa.Column("favorite_album_ids", sa.JSON(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("spotify_album_id", sa.String(32), nullable=False),
        sa.Column("rating", sa.SmallInteger(), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("rating >= 1 AND rating <= 10", name="ck_reviews_rating"),
    )
    op.create_index("ix_reviews_album", "reviews", ["spotify_album_id"])
    op.create_index("ix_reviews_user", "reviews", ["user_id"])

    op.create_table(
        "lists",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_ranked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_lists_user", "lists", ["user_id"])

    op.create_table(
        "list_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "list_id",
            sa.Integer(),
            sa.ForeignKey("lists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("spotify_album_id", sa.String(32), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("list_id", "spotify_album_id", name="uq_list_items_album"),
    )


def downgrade() -> None:
    op.drop_table("list_items")
    op.drop_index("ix_lists_user", table_name="lists")
    op.drop_table("lists")
    op.drop_index("ix_reviews_user", table_name="reviews")
    op.drop_index("ix_reviews_album", table_name="reviews")
    op.drop_table("reviews")
    op.drop_table("users")
