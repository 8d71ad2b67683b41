"""Create users, listings, likes and owner back-reference tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: users, listings (places and rockets), the likes set
       and each user's back-reference collection of owned listings.
How:   PostgreSQL types (UUID, TIMESTAMP WITH TIME ZONE) plus a GIN
       full-text index on listing titles for feed search.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column(
            "email",
            sa.String(255),
            nullable=False,
            comment="Stored lower-cased; unique index makes it case-insensitive",
        ),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("image", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "listings",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "category",
            sa.String(20),
            nullable=False,
            comment="place | rocket",
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(200), nullable=False),
        sa.Column("image", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("creator_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "shared",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
            comment="Visible in public feeds iff true",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint("category IN ('place', 'rocket')", name="listing_category"),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    # Public feeds: WHERE category = :c AND shared ORDER BY created_at DESC
    op.create_index(
        "idx_listings_feed",
        "listings",
        ["category", "shared", sa.text("created_at DESC")],
    )
    op.create_index("idx_listings_creator", "listings", ["creator_id", "category"])

    # Feed search: to_tsvector('simple', title) @@ plainto_tsquery(...)
    op.create_index(
        "idx_listings_title_search",
        "listings",
        [sa.text("to_tsvector('simple', title)")],
        postgresql_using="gin",
    )

    op.create_table(
        "listing_likes",
        sa.Column("listing_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("listing_id", "user_id"),
    )
    # "What did this user like": the primary key only serves listing_id lookups
    op.create_index("idx_listing_likes_user", "listing_likes", ["user_id"])

    op.create_table(
        "user_listing_refs",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("listing_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"]),
        sa.PrimaryKeyConstraint("user_id", "listing_id"),
    )


def downgrade() -> None:
    op.drop_table("user_listing_refs")
    op.drop_index("idx_listing_likes_user", table_name="listing_likes")
    op.drop_table("listing_likes")
    op.drop_index("idx_listings_title_search", table_name="listings")
    op.drop_index("idx_listings_creator", table_name="listings")
    op.drop_index("idx_listings_feed", table_name="listings")
    op.drop_table("listings")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
