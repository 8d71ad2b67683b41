"""
SpaceShare Backend — Aggregate Rating Engine Tests
=====================================================

What we test:
    ✅ rating = round(total likes / total listings, 1), e.g. 8 / 3 → 2.7
    ✅ No listings → no rating; listings without likes → 0.0
    ✅ Unshared listings count toward the rating but not the top list
    ✅ User ranking: positive ratings only, best first, ties by name
"""

import pytest

from spaceshare.models import ListingCategory
from spaceshare.services.rating_service import RatingService, rating_from_totals


class TestRatingMath:
    def test_example(self):
        assert rating_from_totals(8, 3) == 2.7

    def test_no_listings(self):
        assert rating_from_totals(0, 0) is None

    def test_no_likes(self):
        assert rating_from_totals(0, 4) == 0.0

    def test_half_to_even(self):
        # 0.25 is exact in binary; Python rounds it to the even neighbour
        assert rating_from_totals(1, 4) == 0.2


class TestRatingService:
    @pytest.fixture(autouse=True)
    def _service(self, test_settings):
        self.service = RatingService(test_settings)

    @pytest.mark.asyncio
    async def test_compute_user_rating(self, db_session, make_user, make_listing):
        creator = await make_user("Sergei Korolev")
        fans = [await make_user(f"Fan {i}") for i in range(5)]
        await make_listing(creator, "R-7", likers=fans[:2])
        await make_listing(creator, "Soyuz", likers=fans)
        await make_listing(creator, "Proton", likers=fans[:1], shared=False)

        rating = await self.service.compute_user_rating(db_session, creator.id)

        assert rating.total_listings == 3
        assert rating.rating == 2.7

    @pytest.mark.asyncio
    async def test_compute_user_rating_by_category(self, db_session, make_user, make_listing):
        creator = await make_user()
        fan = await make_user("Fan")
        await make_listing(creator, "Baikonur", ListingCategory.PLACE, likers=[fan])
        await make_listing(creator, "Vostok", ListingCategory.ROCKET)

        places = await self.service.compute_user_rating(db_session, creator.id, ListingCategory.PLACE)
        rockets = await self.service.compute_user_rating(db_session, creator.id, ListingCategory.ROCKET)

        assert (places.total_listings, places.rating) == (1, 1.0)
        assert (rockets.total_listings, rockets.rating) == (1, 0.0)

    @pytest.mark.asyncio
    async def test_compute_user_rating_without_listings(self, db_session, make_user):
        user = await make_user()
        rating = await self.service.compute_user_rating(db_session, user.id)
        assert rating.total_listings == 0
        assert rating.rating is None

    @pytest.mark.asyncio
    async def test_top_listings_for_user(self, db_session, make_user, make_listing):
        creator = await make_user()
        fans = [await make_user(f"Fan {i}") for i in range(4)]
        await make_listing(creator, "One like", likers=fans[:1])
        await make_listing(creator, "Four likes", likers=fans)
        await make_listing(creator, "Two likes", likers=fans[:2])
        await make_listing(creator, "Three likes hidden", likers=fans[:3], shared=False)
        await make_listing(creator, "No likes")

        top = await self.service.top_listings_for_user(db_session, creator.id, limit=2)

        assert [item.title for item in top] == ["Four likes", "Two likes"]
        assert [item.likes for item in top] == [4, 2]

    @pytest.mark.asyncio
    async def test_top_listings_zero_limit(self, db_session, make_user, make_listing):
        creator = await make_user()
        fan = await make_user("Fan")
        await make_listing(creator, "Liked", likers=[fan])

        assert await self.service.top_listings_for_user(db_session, creator.id, limit=0) == []

    @pytest.mark.asyncio
    async def test_top_users_by_rating(self, db_session, make_user, make_listing):
        fans = [await make_user(f"Fan {i}") for i in range(3)]
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        carol = await make_user("Carol")
        await make_user("Dave")  # no listings

        await make_listing(bob, likers=fans[:2])
        await make_listing(alice, likers=fans[:2])
        await make_listing(carol)  # rated 0.0, left out

        users = await self.service.top_users_by_rating(db_session)

        assert [(u.name, u.rating) for u in users] == [("Alice", 2.0), ("Bob", 2.0)]

        capped = await self.service.top_users_by_rating(db_session, limit=1)
        assert [u.name for u in capped] == ["Alice"]
