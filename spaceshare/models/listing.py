"""
SpaceShare Backend — Listing SQLAlchemy Models
================================================

What:  ORM models for shareable content ("listings") and the two sets that
       hang off them.
How:   Places and rockets share one `listings` table, told apart by
       `category`.

Tables:
    listings           One row per listing. `creator_id` never changes after
                       creation. Visible in public feeds iff `shared` is true.
    listing_likes      The likes set: one row per (listing, user). The
                       composite primary key makes membership a set, so the
                       like count is always COUNT(*) over this table and is
                       never stored on the listing.
    user_listing_refs  Back-reference collection: the owner's index of their
                       listings. Must contain exactly the listings whose
                       creator_id is that user; written in the same
                       transaction as the listing row (services/consistency.py).

Query Patterns:
    - Public feed: WHERE category = :c AND shared ORDER BY created_at DESC
      → idx_listings_feed
    - Creator stats: WHERE creator_id = :u → idx_listings_creator
    - Like counts: GROUP BY listing_id over listing_likes (primary key prefix)
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    String,
    Uuid,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column

from spaceshare.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListingCategory(str, enum.Enum):
    """Kinds of shareable content. Each gets its own route prefix and image folder."""

    PLACE = "place"
    ROCKET = "rocket"

    @property
    def plural(self) -> str:
        return f"{self.value}s"


class Listing(Base):
    """A place or rocket shared by its creator."""

    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    category: Mapped[ListingCategory] = mapped_column(
        Enum(
            ListingCategory,
            name="listing_category",
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    # 3-200 characters, checked by the service before it reaches the store
    description: Mapped[str] = mapped_column(String(200), nullable=False)

    image: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Geolocation (optional for rockets) ────────────────────────────────
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    shared: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("idx_listings_feed", "category", "shared", created_at.desc()),
        Index("idx_listings_creator", "creator_id", "category"),
    )

    def __repr__(self) -> str:
        return (
            f"<Listing(id={self.id}, category='{self.category.value}', "
            f"shared={self.shared})>"
        )


class ListingLike(Base):
    """Membership of one user in one listing's likes set."""

    __tablename__ = "listing_likes"

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (Index("idx_listing_likes_user", "user_id"),)


class UserListingRef(Base):
    """One entry of a user's back-reference collection of owned listings."""

    __tablename__ = "user_listing_refs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), primary_key=True
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("listings.id"), primary_key=True
    )
