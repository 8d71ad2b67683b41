"""
SpaceShare Backend — User Service (Identity & Credential Store)
=================================================================

What:  Sign-up, sign-in, profile updates, the owner's listing dashboard and
       the rated user list.
Who:   Called by the /api/users route handlers.

Credentials:
    Emails are compared lower-cased (normalized by the command schemas and
    stored that way), so Bob@x.io and bob@x.io are the same account.
    bcrypt hashing is CPU-bound and runs in a worker thread so it does not
    stall the event loop.

Errors the client sees:
    duplicate email  → 422 {"field": "email", "message": "Please use another email"}
    unknown email    → 401 {"field": "email", ...}
    wrong password   → 401 {"field": "password", ...}
"""

import asyncio
import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spaceshare.config import Settings, settings
from spaceshare.exceptions import (
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    SpaceShareError,
    UnauthorizedError,
)
from spaceshare.models.listing import ListingCategory
from spaceshare.models.user import User
from spaceshare.schemas.user import (
    AuthResponse,
    ProfilePage,
    ProfileUpdateCommand,
    ProfileUpdateResponse,
    SigninCommand,
    SignupCommand,
    UsersResponse,
    UserSummary,
)
from spaceshare.services.auth_service import AuthService, auth_service
from spaceshare.services.feed_query import (
    FeedQueryEngine,
    PageWindow,
    ProfileFilter,
    base_stage,
    feed_engine,
    normalize_page,
    profile_filter_stage,
    search_stage,
)
from spaceshare.services.file_service import FileService, file_service
from spaceshare.services.rating_service import RatingService, rating_service

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = {"field": "email", "message": "Please use another email"}


class UserService:
    """Accounts and per-user views."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        files: Optional[FileService] = None,
        auth: Optional[AuthService] = None,
        feed: Optional[FeedQueryEngine] = None,
        ratings: Optional[RatingService] = None,
    ):
        self.config = config or settings
        self.files = files or file_service
        self.auth = auth or auth_service
        self.feed = feed or feed_engine
        self.ratings = ratings or rating_service

    async def _find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    def _auth_response(self, user: User, message: str) -> AuthResponse:
        issued = self.auth.issue_token(user.id, user.email)
        return AuthResponse(
            message=message,
            token=issued.token,
            token_expiration=issued.expires_in_ms,
            user=UserSummary(id=user.id, name=user.name, image=user.image),
        )

    # ── Sign-up / Sign-in ─────────────────────────────────────────────────

    async def register_user(self, db: AsyncSession, command: SignupCommand) -> AuthResponse:
        """
        Create an account and sign it in.

        Raises:
            ConflictError: the email is taken (no record or image is left behind)
            ValidationError: bad image
            DatabaseError: the store failed
        """
        try:
            existing = await self._find_by_email(db, command.email)
        except SQLAlchemyError as e:
            logger.error("Database error during signup lookup: %s", str(e))
            raise DatabaseError(message="Signing up failed, please try again later")

        if existing is not None:
            raise ConflictError(
                message="User with provided email already exists, please login instead",
                errors=DUPLICATE_EMAIL,
            )

        password_hash = await asyncio.to_thread(self.auth.hash_password, command.password)
        image_path = await self.files.store_image(command.image, "users")

        user = User(
            name=command.name,
            email=command.email,
            password_hash=password_hash,
            image=image_path,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            await db.rollback()
            await self.files.release_image(image_path)
            raise ConflictError(
                message="User with provided email already exists, please login instead",
                errors=DUPLICATE_EMAIL,
            )
        except SQLAlchemyError as e:
            await db.rollback()
            await self.files.release_image(image_path)
            logger.error("Database error creating user: %s", str(e))
            raise DatabaseError(message="Signing up failed, please try again later")

        logger.info("User registered: %s", user.id)
        return self._auth_response(user, f"Hello {user.name}, now you are part of the space")

    async def authenticate(self, db: AsyncSession, command: SigninCommand) -> AuthResponse:
        """
        Check credentials and issue a fresh token.

        Raises:
            UnauthorizedError: unknown email or wrong password
        """
        try:
            user = await self._find_by_email(db, command.email)
        except SQLAlchemyError as e:
            logger.error("Database error during signin: %s", str(e))
            raise DatabaseError(message="Signing in failed, please try again later")

        if user is None:
            logger.info("Signin rejected: unknown email")
            raise UnauthorizedError(
                message="Couldn’t find a user with provided email",
                errors={"field": "email", "message": "Please use your existing email"},
            )

        valid = await asyncio.to_thread(
            self.auth.verify_password, command.password, user.password_hash
        )
        if not valid:
            logger.info("Signin rejected for user %s: wrong password", user.id)
            raise UnauthorizedError(
                message="Incorrect password",
                errors={"field": "password", "message": "Please enter the correct password"},
            )

        return self._auth_response(user, f"Hello {user.name}, glad to see you again")

    # ── Profile ───────────────────────────────────────────────────────────

    async def update_profile(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        command: ProfileUpdateCommand,
    ) -> ProfileUpdateResponse:
        """Replace name and picture. The old picture is released after commit."""
        if user_id != acting_user_id:
            logger.warning("User %s tried to edit profile %s", acting_user_id, user_id)
            raise ForbiddenError(message="You are not allowed to edit this profile")

        try:
            user = await db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("Database error loading user %s: %s", user_id, str(e))
            raise DatabaseError(message="Updating profile failed, please try again later")
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        new_image = await self.files.store_image(command.image, "users")
        old_image = user.image
        user.name = command.name
        user.image = new_image

        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            await self.files.release_image(new_image)
            logger.error("Database error updating user %s: %s", user_id, str(e))
            raise DatabaseError(message="Updating profile failed, please try again later")

        await self.files.release_image(old_image)
        return ProfileUpdateResponse(
            message="Profile successfully updated",
            user=UserSummary(id=user.id, name=user.name, image=user.image),
        )

    async def get_profile(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        category: ListingCategory = ListingCategory.PLACE,
        profile_filter: ProfileFilter = ProfileFilter.ALL,
        search: Optional[str] = None,
        page=1,
    ) -> ProfilePage:
        """
        The owner's dashboard of their listings in one category, shared or not.

        The three `amount*` counts ignore the search term; `current_amount`
        counts the active filter with the search applied and drives the
        page count.
        """
        if user_id != acting_user_id:
            raise ForbiddenError()

        window = PageWindow(page=normalize_page(page), page_size=self.config.profile_page_size)
        backend = self.config.database_backend

        try:
            user = await db.get(User, user_id)
            if user is None:
                raise NotFoundError(
                    resource="user",
                    message=f"Could not find {category.plural} for provided user",
                )

            def counted(which: ProfileFilter):
                return profile_filter_stage(base_stage(category), which, user_id)

            amount = await self.feed.count(db, counted(ProfileFilter.ALL))
            amount_favorites = await self.feed.count(db, counted(ProfileFilter.FAVORITES))
            amount_shared = await self.feed.count(db, counted(ProfileFilter.SHARED))

            predicate = search_stage(counted(profile_filter), search, backend)
            items, current_amount = await self.feed.fetch_page(db, predicate, window, user_id)
        except SpaceShareError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error loading profile %s: %s", user_id, str(e))
            raise DatabaseError(message="Sorry, something went wrong. Can't load profile")

        return ProfilePage(
            items=items,
            current_page=window.page,
            total_pages=window.total_pages(current_amount),
            has_next_page=window.has_next_page(current_amount),
            amount=amount,
            amount_favorites=amount_favorites,
            amount_shared=amount_shared,
            current_amount=current_amount,
        )

    # ── Directory ─────────────────────────────────────────────────────────

    async def list_rated_users(
        self,
        db: AsyncSession,
        limit: Optional[int] = None,
        category: Optional[ListingCategory] = None,
    ) -> UsersResponse:
        users = await self.ratings.top_users_by_rating(db, limit=limit, category=category)
        return UsersResponse(users=users)


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService(
    settings,
    files=file_service,
    auth=auth_service,
    feed=feed_engine,
    ratings=rating_service,
)
