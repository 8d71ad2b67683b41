"""
SpaceShare Backend — Listing Service Tests
=============================================

What we test:
    ✅ create: ownership, listing + owner reference written together
    ✅ A failure between the two writes leaves neither row nor image
    ✅ edit: share toggle vs content edit, old image released
    ✅ delete: likes, reference and listing go together
    ✅ like toggle: membership flips, two toggles restore the set
    ✅ get_by_id: computed fields, creator stats, category isolation
"""

import uuid
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from spaceshare.exceptions import DatabaseError, ForbiddenError, NotFoundError, ValidationError
from spaceshare.models import Listing, ListingCategory, ListingLike, UserListingRef
from spaceshare.schemas.listing import ContentEdit, ListingCreateCommand, ShareToggle
from spaceshare.services.file_service import ImageUpload

PLACE = ListingCategory.PLACE
ROCKET = ListingCategory.ROCKET


async def count_rows(session, model, *where) -> int:
    stmt = select(func.count()).select_from(model)
    if where:
        stmt = stmt.where(*where)
    result = await session.execute(stmt)
    return result.scalar()


def place_command(creator_id, image, **overrides):
    fields = dict(
        category=PLACE,
        creator=creator_id,
        title="Baikonur Cosmodrome",
        description="The first and largest spaceport",
        image=image,
        address="Baikonur, Kazakhstan",
        lat=45.96,
        lng=63.31,
    )
    fields.update(overrides)
    return ListingCreateCommand(**fields)


async def listing_row(session, listing_id):
    result = await session.execute(
        select(Listing.title, Listing.image, Listing.shared).where(Listing.id == listing_id)
    )
    return result.one()


def stored_files(root, namespace):
    folder = Path(root) / namespace
    if not folder.exists():
        return []
    return list(folder.iterdir())


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_writes_listing_and_reference(
        self, db_session, services, make_user, image_upload, temp_storage
    ):
        user = await make_user()

        response = await services.listings.create(
            db_session, place_command(user.id, image_upload), user.id
        )

        assert response.message == "Place successfully created"
        assert response.listing.creator_id == user.id
        assert response.listing.shared is False
        assert response.listing.likes == 0
        assert response.listing.location.lat == 45.96
        assert response.listing.image.startswith("places/")
        assert (Path(temp_storage) / response.listing.image).exists()
        assert await count_rows(
            db_session,
            UserListingRef,
            UserListingRef.user_id == user.id,
            UserListingRef.listing_id == response.listing.id,
        ) == 1

    @pytest.mark.asyncio
    async def test_create_for_someone_else(self, db_session, services, make_user, image_upload):
        user = await make_user()
        other = await make_user("Valentina")

        with pytest.raises(ForbiddenError):
            await services.listings.create(
                db_session, place_command(other.id, image_upload), user.id
            )
        assert await count_rows(db_session, Listing) == 0

    @pytest.mark.asyncio
    async def test_create_unknown_creator(self, db_session, services, image_upload):
        ghost = uuid.uuid4()
        with pytest.raises(NotFoundError):
            await services.listings.create(db_session, place_command(ghost, image_upload), ghost)

    @pytest.mark.asyncio
    async def test_create_rolls_back_when_reference_fails(
        self, db_session, services, make_user, image_upload, temp_storage, monkeypatch
    ):
        user = await make_user()
        user_id = user.id
        monkeypatch.setattr(
            services.listings,
            "_add_owner_ref",
            AsyncMock(side_effect=RuntimeError("connection reset")),
        )

        with pytest.raises(DatabaseError) as exc_info:
            await services.listings.create(
                db_session, place_command(user_id, image_upload), user_id
            )

        assert exc_info.value.message == "Sorry, something went wrong, could not create place"
        assert await count_rows(db_session, Listing) == 0
        assert await count_rows(db_session, UserListingRef) == 0
        assert stored_files(temp_storage, "places") == []

    @pytest.mark.asyncio
    async def test_create_rejects_bad_image_before_writing(
        self, db_session, services, make_user
    ):
        user = await make_user()
        upload = ImageUpload("doc.pdf", "application/pdf", b"%PDF-1.4")

        with pytest.raises(ValidationError):
            await services.listings.create(db_session, place_command(user.id, upload), user.id)

        assert await count_rows(db_session, Listing) == 0


class TestEdit:
    @pytest.mark.asyncio
    async def test_share_toggle(self, db_session, services, make_user, make_listing):
        user = await make_user()
        listing = await make_listing(user, shared=False)

        shared = await services.listings.edit(
            db_session, listing.id, PLACE, user.id, ShareToggle(value=True)
        )
        assert shared.message == "You have successfully shared the place"
        assert shared.listing.shared is True

        unshared = await services.listings.edit(
            db_session, listing.id, PLACE, user.id, ShareToggle(value=False)
        )
        assert unshared.message == "You have successfully unshared the place"
        assert unshared.listing.shared is False

    @pytest.mark.asyncio
    async def test_content_edit_replaces_image(
        self, db_session, services, make_user, image_upload, temp_storage
    ):
        user = await make_user()
        created = await services.listings.create(
            db_session, place_command(user.id, image_upload, shared=True), user.id
        )
        old_image = Path(temp_storage) / created.listing.image

        edited = await services.listings.edit(
            db_session,
            created.listing.id,
            PLACE,
            user.id,
            ContentEdit(title="Cape Canaveral", description="Florida launch site", image=image_upload),
        )

        assert edited.message == "Place successfully updated"
        assert edited.listing.title == "Cape Canaveral"
        assert edited.listing.shared is True
        assert edited.listing.image != created.listing.image
        assert (Path(temp_storage) / edited.listing.image).exists()
        assert not old_image.exists()

    @pytest.mark.asyncio
    async def test_committed_image_kept_when_reload_fails(
        self, db_session, services, make_user, image_upload, temp_storage, monkeypatch
    ):
        user = await make_user()
        created = await services.listings.create(
            db_session, place_command(user.id, image_upload), user.id
        )
        old_image = Path(temp_storage) / created.listing.image
        monkeypatch.setattr(
            services.listings,
            "_likes_count",
            AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection reset"))),
        )

        with pytest.raises(DatabaseError):
            await services.listings.edit(
                db_session,
                created.listing.id,
                PLACE,
                user.id,
                ContentEdit(title="Vandenberg", description="West coast pads", image=image_upload),
            )

        row = await listing_row(db_session, created.listing.id)
        assert row.title == "Vandenberg"
        assert row.image != created.listing.image
        assert (Path(temp_storage) / row.image).exists()
        assert not old_image.exists()

    @pytest.mark.asyncio
    async def test_edit_by_non_owner_leaves_listing_unchanged(
        self, db_session, services, make_user, make_listing, image_upload, temp_storage
    ):
        owner = await make_user()
        intruder = await make_user("Intruder")
        listing = await make_listing(owner, "Tanegashima", shared=True)
        before = await listing_row(db_session, listing.id)

        with pytest.raises(ForbiddenError):
            await services.listings.edit(
                db_session,
                listing.id,
                PLACE,
                intruder.id,
                ContentEdit(title="Hijacked", description="Not yours", image=image_upload),
            )
        with pytest.raises(ForbiddenError):
            await services.listings.edit(
                db_session, listing.id, PLACE, intruder.id, ShareToggle(value=False)
            )

        after = await listing_row(db_session, listing.id)
        assert (after.title, after.image, after.shared) == (before.title, before.image, True)
        assert stored_files(temp_storage, "places") == []

    @pytest.mark.asyncio
    async def test_edit_through_wrong_category(self, db_session, services, make_user, make_listing):
        user = await make_user()
        rocket = await make_listing(user, "Saturn V", ROCKET)

        with pytest.raises(NotFoundError) as exc_info:
            await services.listings.edit(
                db_session, rocket.id, PLACE, user.id, ShareToggle(value=True)
            )
        assert exc_info.value.message == "Could not find a place with provided id"


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_everything(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        fans = [await make_user(f"Fan {i}") for i in range(2)]
        listing = await make_listing(owner, "Energia", ROCKET, likers=fans)
        keep = await make_listing(owner, "Buran", ROCKET, likers=fans[:1])

        response = await services.listings.delete(db_session, listing.id, ROCKET, owner.id)

        assert response.message == "Rocket successfully deleted"
        assert await count_rows(db_session, Listing, Listing.id == listing.id) == 0
        assert await count_rows(db_session, ListingLike, ListingLike.listing_id == listing.id) == 0
        assert await count_rows(
            db_session, UserListingRef, UserListingRef.listing_id == listing.id
        ) == 0
        assert await count_rows(db_session, ListingLike, ListingLike.listing_id == keep.id) == 1

    @pytest.mark.asyncio
    async def test_delete_rolls_back_when_listing_delete_fails(
        self, db_session, services, make_user, image_upload, temp_storage, monkeypatch
    ):
        owner = await make_user()
        fan = await make_user("Fan")
        created = await services.listings.create(
            db_session, place_command(owner.id, image_upload, shared=True), owner.id
        )
        listing_id = created.listing.id
        await services.listings.toggle_like(db_session, listing_id, PLACE, fan.id)

        real_execute = AsyncSession.execute

        async def failing_execute(session, statement, *args, **kwargs):
            # Likes and the back-reference are already deleted at this point
            if getattr(statement, "is_delete", False) and statement.table.name == "listings":
                raise RuntimeError("connection lost")
            return await real_execute(session, statement, *args, **kwargs)

        monkeypatch.setattr(AsyncSession, "execute", failing_execute)

        with pytest.raises(DatabaseError) as exc_info:
            await services.listings.delete(db_session, listing_id, PLACE, owner.id)

        assert exc_info.value.message == "Sorry, something went wrong, could not delete the place"
        assert await count_rows(db_session, Listing, Listing.id == listing_id) == 1
        assert await count_rows(db_session, ListingLike, ListingLike.listing_id == listing_id) == 1
        assert await count_rows(
            db_session,
            UserListingRef,
            UserListingRef.user_id == owner.id,
            UserListingRef.listing_id == listing_id,
        ) == 1
        assert (Path(temp_storage) / created.listing.image).exists()

    @pytest.mark.asyncio
    async def test_delete_by_non_owner(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        intruder = await make_user("Intruder")
        listing = await make_listing(owner)

        with pytest.raises(ForbiddenError):
            await services.listings.delete(db_session, listing.id, PLACE, intruder.id)
        assert await count_rows(db_session, Listing) == 1

    @pytest.mark.asyncio
    async def test_delete_missing(self, db_session, services, make_user):
        user = await make_user()
        with pytest.raises(NotFoundError):
            await services.listings.delete(db_session, uuid.uuid4(), PLACE, user.id)


class TestLikes:
    @pytest.mark.asyncio
    async def test_toggle_twice_restores_set(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        fan = await make_user("Fan")
        other = await make_user("Other")
        listing = await make_listing(owner, likers=[other])

        first = await services.listings.toggle_like(db_session, listing.id, PLACE, fan.id)
        assert (first.liked, first.likes) == (True, 2)

        second = await services.listings.toggle_like(db_session, listing.id, PLACE, fan.id)
        assert (second.liked, second.likes) == (False, 1)

        likers = await db_session.execute(
            select(ListingLike.user_id).where(ListingLike.listing_id == listing.id)
        )
        assert set(likers.scalars()) == {other.id}

    @pytest.mark.asyncio
    async def test_owner_may_like_own_listing(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        listing = await make_listing(owner)

        response = await services.listings.like_response(db_session, listing.id, PLACE, owner.id)

        assert response.message == "Place successfully updated"
        assert (response.liked, response.likes) == (True, 1)

    @pytest.mark.asyncio
    async def test_likes_feed_the_rating(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        fan = await make_user("Fan")
        listing = await make_listing(owner)

        await services.listings.toggle_like(db_session, listing.id, PLACE, fan.id)
        rating = await services.ratings.compute_user_rating(db_session, owner.id, PLACE)

        assert rating.rating == 1.0

    @pytest.mark.asyncio
    async def test_unregistered_liker(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        listing = await make_listing(owner)

        with pytest.raises(NotFoundError) as exc_info:
            await services.listings.toggle_like(db_session, listing.id, PLACE, uuid.uuid4())
        assert exc_info.value.message == "Sorry, user is not registered"

    @pytest.mark.asyncio
    async def test_like_through_wrong_category(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        listing = await make_listing(owner)

        with pytest.raises(NotFoundError):
            await services.listings.toggle_like(db_session, listing.id, ROCKET, owner.id)


class TestGetById:
    @pytest.mark.asyncio
    async def test_detail_with_creator_stats(self, db_session, services, make_user, make_listing):
        owner = await make_user("Sergei Korolev")
        viewer = await make_user("Viewer")
        fan = await make_user("Fan")
        listing = await make_listing(owner, "Plesetsk", likers=[viewer, fan])
        await make_listing(owner, "Kapustin Yar", likers=[fan])
        await make_listing(owner, "Secret site", shared=False)
        await make_listing(owner, "Soyuz", ROCKET, likers=[fan, viewer])

        response = await services.listings.get_by_id(db_session, listing.id, PLACE, viewer.id)

        assert response.listing.title == "Plesetsk"
        assert response.listing.likes == 2
        assert response.listing.favorite is True
        assert response.listing.creator.name == "Sergei Korolev"
        assert [item.title for item in response.top_user_listings] == ["Plesetsk", "Kapustin Yar"]
        assert response.user_listings_amount == 3
        assert response.user_rating == 1.0

    @pytest.mark.asyncio
    async def test_detail_anonymous_viewer(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        listing = await make_listing(owner, likers=[owner])

        response = await services.listings.get_by_id(db_session, listing.id, PLACE)
        assert response.listing.favorite is False
        assert response.listing.likes == 1

    @pytest.mark.asyncio
    async def test_detail_wrong_category(self, db_session, services, make_user, make_listing):
        owner = await make_user()
        listing = await make_listing(owner)

        with pytest.raises(NotFoundError) as exc_info:
            await services.listings.get_by_id(db_session, listing.id, ROCKET)
        assert exc_info.value.status == 404
