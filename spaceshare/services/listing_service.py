"""
SpaceShare Backend — Listing Service (Content Record Store)
=============================================================

What:  Create, edit, read, delete and like places and rockets.
How:   One service for both categories; every operation takes the
       ListingCategory it works on, so a rocket id never resolves through
       the places routes and vice versa.
Who:   Called by the /api/places and /api/rockets route handlers.

Ownership:
    Only the creator may edit or delete a listing, and a listing may only be
    created on behalf of the acting user. creator_id never changes.

Write Paths:
    create   listing row + owner back-reference  → ConsistencyCoordinator
    delete   likes + back-reference + listing    → ConsistencyCoordinator
    edit     single row                          → direct commit
    like     single (listing, user) row          → DELETE, INSERT if nothing
                                                   was deleted; no read-then-write

Images:
    A new image is stored before the write. If the write fails the new
    image is released; if it succeeds the replaced/deleted image is released.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spaceshare.config import Settings, settings
from spaceshare.exceptions import (
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    SpaceShareError,
)
from spaceshare.models.listing import Listing, ListingCategory, ListingLike, UserListingRef
from spaceshare.models.user import User
from spaceshare.schemas.common import MessageResponse
from spaceshare.schemas.listing import (
    CreatorSummary,
    FeedPage,
    ListingCreateCommand,
    ListingDetail,
    ListingDetailResponse,
    ListingEdit,
    ListingMutationResponse,
    LikeResponse,
    ShareToggle,
)
from spaceshare.services.consistency import ConsistencyCoordinator, coordinator
from spaceshare.services.feed_query import (
    FeedQueryEngine,
    FeedRequest,
    feed_engine,
    project_stage,
    to_listing_item,
)
from spaceshare.services.file_service import FileService, file_service
from spaceshare.services.rating_service import RatingService, rating_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LikeResult:
    liked: bool
    likes: int


def _label(category: ListingCategory) -> str:
    return category.value.capitalize()


class ListingService:
    """
    Business logic for listings of either category.

    Collaborators are passed in so tests can swap any of them; the module
    singleton at the bottom wires the application instances.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        files: Optional[FileService] = None,
        consistency: Optional[ConsistencyCoordinator] = None,
        feed: Optional[FeedQueryEngine] = None,
        ratings: Optional[RatingService] = None,
    ):
        self.config = config or settings
        self.files = files or file_service
        self.consistency = consistency or coordinator
        self.feed = feed or feed_engine
        self.ratings = ratings or rating_service

    # ── Lookups ───────────────────────────────────────────────────────────

    async def _get_listing(
        self,
        db: AsyncSession,
        listing_id: uuid.UUID,
        category: ListingCategory,
        operation: str,
    ) -> Listing:
        try:
            result = await db.execute(
                select(Listing).where(Listing.id == listing_id, Listing.category == category)
            )
            listing = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error loading %s %s: %s", category.value, listing_id, str(e))
            raise DatabaseError(message=f"Sorry, something went wrong, could not {operation}")

        if listing is None:
            raise NotFoundError(resource=category.value, resource_id=str(listing_id))
        return listing

    async def _get_user(
        self, db: AsyncSession, user_id: uuid.UUID, operation: str
    ) -> Optional[User]:
        try:
            return await db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("Database error loading user %s: %s", user_id, str(e))
            raise DatabaseError(message=f"Sorry, something went wrong, could not {operation}")

    async def _get_owned_listing(
        self,
        db: AsyncSession,
        listing_id: uuid.UUID,
        category: ListingCategory,
        acting_user_id: uuid.UUID,
        operation: str,
    ) -> Listing:
        """Load a listing and check that the acting user created it."""
        listing = await self._get_listing(db, listing_id, category, operation)
        creator = await self._get_user(db, listing.creator_id, operation)
        if creator is None:
            raise NotFoundError(
                resource="user",
                message=f"Could not find a user created the {category.value}",
            )
        if creator.id != acting_user_id:
            logger.warning(
                "User %s tried to %s owned by %s", acting_user_id, operation, creator.id
            )
            raise ForbiddenError()
        return listing

    async def _likes_count(self, db: AsyncSession, listing_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(ListingLike).where(ListingLike.listing_id == listing_id)
        )
        return int(result.scalar() or 0)

    async def _is_liked_by(
        self, db: AsyncSession, listing_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        result = await db.execute(
            select(ListingLike.user_id).where(
                ListingLike.listing_id == listing_id, ListingLike.user_id == user_id
            )
        )
        return result.first() is not None

    async def _owned_count(
        self, db: AsyncSession, user_id: uuid.UUID, category: ListingCategory
    ) -> int:
        """Size of the user's back-reference collection for one category."""
        result = await db.execute(
            select(func.count())
            .select_from(UserListingRef)
            .join(Listing, Listing.id == UserListingRef.listing_id)
            .where(UserListingRef.user_id == user_id, Listing.category == category)
        )
        return int(result.scalar() or 0)

    async def _add_owner_ref(
        self, db: AsyncSession, user_id: uuid.UUID, listing_id: uuid.UUID
    ) -> None:
        db.add(UserListingRef(user_id=user_id, listing_id=listing_id))
        await db.flush()

    # ── Create ────────────────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        command: ListingCreateCommand,
        acting_user_id: uuid.UUID,
    ) -> ListingMutationResponse:
        """
        Create a listing owned by the acting user.

        Raises:
            ForbiddenError: command.creator is someone else
            NotFoundError: the creator does not exist
            ValidationError: bad image
            DatabaseError: the transaction failed (nothing was written)
        """
        category = command.category
        operation = f"create {category.value}"

        if command.creator != acting_user_id:
            logger.warning(
                "User %s tried to create a %s for %s", acting_user_id, category.value, command.creator
            )
            raise ForbiddenError()

        creator = await self._get_user(db, command.creator, operation)
        if creator is None:
            raise NotFoundError(resource="user", resource_id=str(command.creator))
        creator_id = creator.id

        image_path = await self.files.store_image(command.image, category.plural)

        async def write(session: AsyncSession) -> Listing:
            listing = Listing(
                category=category,
                title=command.title,
                description=command.description,
                image=image_path,
                address=command.address,
                lat=command.lat,
                lng=command.lng,
                creator_id=creator_id,
                shared=command.shared,
            )
            session.add(listing)
            await session.flush()
            await self._add_owner_ref(session, creator_id, listing.id)
            return listing

        try:
            listing = await self.consistency.run_atomic(db, write, operation)
        except SpaceShareError:
            await self.files.release_image(image_path)
            raise

        logger.info("%s %s created by %s", _label(category), listing.id, creator_id)
        return ListingMutationResponse(
            message=f"{_label(category)} successfully created",
            listing=to_listing_item(listing),
        )

    # ── Edit ──────────────────────────────────────────────────────────────

    async def edit(
        self,
        db: AsyncSession,
        listing_id: uuid.UUID,
        category: ListingCategory,
        acting_user_id: uuid.UUID,
        request: ListingEdit,
    ) -> ListingMutationResponse:
        """
        Apply a share toggle or a content edit.

        A share toggle changes only `shared`; a content edit replaces title,
        description and image and leaves `shared` alone.
        """
        operation = f"update {category.value}"
        listing = await self._get_owned_listing(db, listing_id, category, acting_user_id, operation)

        new_image: Optional[str] = None
        old_image: Optional[str] = None

        if isinstance(request, ShareToggle):
            listing.shared = request.value
            verb = "shared" if request.value else "unshared"
            message = f"You have successfully {verb} the {category.value}"
        else:
            new_image = await self.files.store_image(request.image, category.plural)
            old_image = listing.image
            listing.title = request.title
            listing.description = request.description
            listing.image = new_image
            message = f"{_label(category)} successfully updated"

        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            await self.files.release_image(new_image)
            logger.error("Database error updating %s %s: %s", category.value, listing_id, str(e))
            raise DatabaseError(message=f"Sorry, something went wrong, could not {operation}")

        # Committed: the row now points at new_image, only the old one may go
        await self.files.release_image(old_image)

        try:
            likes = await self._likes_count(db, listing.id)
            favorite = await self._is_liked_by(db, listing.id, acting_user_id)
        except SQLAlchemyError as e:
            logger.error("Database error reloading %s %s: %s", category.value, listing_id, str(e))
            raise DatabaseError(
                message=f"Sorry, something went wrong, could not load {category.value}"
            )

        return ListingMutationResponse(
            message=message,
            listing=to_listing_item(listing, likes, favorite),
        )

    # ── Read ──────────────────────────────────────────────────────────────

    async def list_feed(self, db: AsyncSession, request: FeedRequest) -> FeedPage:
        return await self.feed.list_feed(db, request)

    async def get_by_id(
        self,
        db: AsyncSession,
        listing_id: uuid.UUID,
        category: ListingCategory,
        viewer_id: Optional[uuid.UUID] = None,
    ) -> ListingDetailResponse:
        """
        A single listing with its creator, plus the creator's top shared
        listings, listing count and rating in this category.
        """
        stmt = project_stage(
            select(Listing, User)
            .join(User, User.id == Listing.creator_id)
            .where(Listing.id == listing_id, Listing.category == category),
            viewer_id,
        )
        try:
            result = await db.execute(stmt)
            row = result.first()
        except SQLAlchemyError as e:
            logger.error("Database error loading %s %s: %s", category.value, listing_id, str(e))
            raise DatabaseError(
                message=f"Sorry, something went wrong, could not load {category.value}"
            )

        if row is None:
            raise NotFoundError(resource=category.value, resource_id=str(listing_id))

        listing, creator = row[0], row[1]
        item = to_listing_item(listing, row.likes, row.favorite)
        detail = ListingDetail(
            **item.model_dump(),
            creator=CreatorSummary(id=creator.id, name=creator.name, image=creator.image),
        )

        top = await self.ratings.top_listings_for_user(db, creator.id, category=category)
        rating = await self.ratings.compute_user_rating(db, creator.id, category)
        try:
            amount = await self._owned_count(db, creator.id, category)
        except SQLAlchemyError as e:
            logger.error("Database error counting listings of %s: %s", creator.id, str(e))
            raise DatabaseError(
                message=f"Sorry, something went wrong, could not load {category.value}"
            )

        return ListingDetailResponse(
            listing=detail,
            top_user_listings=top,
            user_listings_amount=amount,
            user_rating=rating.rating,
        )

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete(
        self,
        db: AsyncSession,
        listing_id: uuid.UUID,
        category: ListingCategory,
        acting_user_id: uuid.UUID,
    ) -> MessageResponse:
        """Remove the listing, its likes and its owner reference together."""
        operation = f"delete the {category.value}"
        listing = await self._get_owned_listing(db, listing_id, category, acting_user_id, operation)
        creator_id = listing.creator_id
        image_path = listing.image

        async def remove(session: AsyncSession) -> None:
            await session.execute(delete(ListingLike).where(ListingLike.listing_id == listing_id))
            await session.execute(
                delete(UserListingRef).where(
                    UserListingRef.user_id == creator_id,
                    UserListingRef.listing_id == listing_id,
                )
            )
            await session.execute(delete(Listing).where(Listing.id == listing_id))

        await self.consistency.run_atomic(db, remove, operation)
        await self.files.release_image(image_path)

        logger.info("%s %s deleted by %s", _label(category), listing_id, acting_user_id)
        return MessageResponse(message=f"{_label(category)} successfully deleted")

    # ── Like ──────────────────────────────────────────────────────────────

    async def toggle_like(
        self,
        db: AsyncSession,
        listing_id: uuid.UUID,
        category: ListingCategory,
        liker_id: uuid.UUID,
    ) -> LikeResult:
        """
        Flip the liker's membership in the listing's likes set.

        Two toggles by the same user restore the original set.
        """
        operation = f"like {category.value}"
        await self._get_listing(db, listing_id, category, operation)
        liker = await self._get_user(db, liker_id, operation)
        if liker is None:
            raise NotFoundError(resource="user", message="Sorry, user is not registered")

        try:
            removed = await db.execute(
                delete(ListingLike).where(
                    ListingLike.listing_id == listing_id, ListingLike.user_id == liker_id
                )
            )
            liked = removed.rowcount == 0
            if liked:
                db.add(ListingLike(listing_id=listing_id, user_id=liker_id))
                await db.flush()
            await db.commit()
        except IntegrityError:
            # A concurrent toggle inserted the same row first
            await db.rollback()
            liked = True
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error toggling like on %s: %s", listing_id, str(e))
            raise DatabaseError(message=f"Sorry, something went wrong, could not {operation}")

        try:
            likes = await self._likes_count(db, listing_id)
        except SQLAlchemyError as e:
            logger.error("Database error counting likes of %s: %s", listing_id, str(e))
            raise DatabaseError(message=f"Sorry, something went wrong, could not {operation}")

        return LikeResult(liked=liked, likes=likes)

    async def like_response(
        self,
        db: AsyncSession,
        listing_id: uuid.UUID,
        category: ListingCategory,
        liker_id: uuid.UUID,
    ) -> LikeResponse:
        result = await self.toggle_like(db, listing_id, category, liker_id)
        return LikeResponse(
            message=f"{_label(category)} successfully updated",
            liked=result.liked,
            likes=result.likes,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
listing_service = ListingService(
    settings,
    files=file_service,
    consistency=coordinator,
    feed=feed_engine,
    ratings=rating_service,
)
