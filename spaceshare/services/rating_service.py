"""
SpaceShare Backend — Aggregate Rating Engine
==============================================

What:  Per-user statistics over their listings' likes.
How:   One grouped query per call; the rounding happens in Python so every
       caller rounds identically.

Rating:
    rating = round(total_likes / total_listings, 1)

    Python's round() is half-to-even. A user with no listings has no rating
    (None), which is different from a rating of 0.0 (listings, no likes).

    Example: 3 listings with 2, 5 and 1 likes → round(8 / 3, 1) = 2.7
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spaceshare.config import Settings, settings
from spaceshare.exceptions import DatabaseError
from spaceshare.models.listing import Listing, ListingCategory, ListingLike
from spaceshare.models.user import User
from spaceshare.schemas.listing import TopListing, UserRating
from spaceshare.schemas.user import RatedUser
from spaceshare.services.feed_query import likes_count_expr

logger = logging.getLogger(__name__)


def rating_from_totals(total_likes: int, total_listings: int) -> Optional[float]:
    if total_listings == 0:
        return None
    return round(total_likes / total_listings, 1)


class RatingService:
    """Computes user ratings and top listings."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    async def compute_user_rating(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        category: Optional[ListingCategory] = None,
    ) -> UserRating:
        """Rating over every listing the user created, shared or not."""
        stmt = (
            select(
                func.count(func.distinct(Listing.id)),
                func.count(ListingLike.user_id),
            )
            .select_from(Listing)
            .outerjoin(ListingLike, ListingLike.listing_id == Listing.id)
            .where(Listing.creator_id == user_id)
        )
        if category is not None:
            stmt = stmt.where(Listing.category == category)

        try:
            result = await db.execute(stmt)
            total_listings, total_likes = result.one()
        except SQLAlchemyError as e:
            logger.error("Database error computing rating for user %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        return UserRating(
            total_listings=total_listings,
            rating=rating_from_totals(total_likes, total_listings),
        )

    async def top_listings_for_user(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        limit: Optional[int] = None,
        category: Optional[ListingCategory] = None,
    ) -> List[TopListing]:
        """The user's most liked shared listings. Listings without likes are left out."""
        likes = likes_count_expr()
        stmt = (
            select(Listing.id, Listing.title, Listing.image, likes.label("likes"))
            .where(Listing.creator_id == user_id, Listing.shared.is_(True), likes > 0)
            .order_by(likes.desc(), Listing.id.asc())
            .limit(limit if limit is not None else self.config.top_listings_limit)
        )
        if category is not None:
            stmt = stmt.where(Listing.category == category)

        try:
            result = await db.execute(stmt)
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Database error loading top listings of user %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        return [
            TopListing(id=row.id, title=row.title, image=row.image, likes=row.likes)
            for row in rows
        ]

    async def top_users_by_rating(
        self,
        db: AsyncSession,
        limit: Optional[int] = None,
        category: Optional[ListingCategory] = None,
    ) -> List[RatedUser]:
        """
        Users with a positive rating, best first (ties by name).

        Users without listings, or whose listings have no likes, are omitted.
        """
        stmt = (
            select(
                User.id,
                User.name,
                User.image,
                func.count(func.distinct(Listing.id)).label("total_listings"),
                func.count(ListingLike.user_id).label("total_likes"),
            )
            .join(Listing, Listing.creator_id == User.id)
            .outerjoin(ListingLike, ListingLike.listing_id == Listing.id)
            .group_by(User.id, User.name, User.image)
        )
        if category is not None:
            stmt = stmt.where(Listing.category == category)

        try:
            result = await db.execute(stmt)
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Database error ranking users: %s", str(e))
            raise DatabaseError(message="Sorry, something went wrong, could not load users")

        rated = []
        for row in rows:
            rating = rating_from_totals(row.total_likes, row.total_listings)
            if rating:
                rated.append(RatedUser(id=row.id, name=row.name, image=row.image, rating=rating))

        rated.sort(key=lambda user: (-user.rating, user.name))
        if limit is not None:
            rated = rated[:limit]
        return rated


# ── Singleton Instance ────────────────────────────────────────────────────
rating_service = RatingService(settings)
