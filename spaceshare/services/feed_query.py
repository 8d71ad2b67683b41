"""
SpaceShare Backend — Feed Query Engine
========================================

What:  Paginated, filterable, searchable listing feeds with computed like
       counts and per-viewer favorite flags.
How:   A feed query is composed from small stages, each a pure function
       Select → Select, so every stage can be inspected on its own:

           base_stage          category
             → filter_stage    shared / creator / favorites
             → search_stage    title text match
             → top_stage       drop zero-like listings (top mode only)
           ──────── the same predicate feeds COUNT(*) ────────
             → project_stage   + likes, + favorite
             → order_stage     newest first, or most liked first
             → paginate_stage  OFFSET/LIMIT

       `total_count` is computed from the predicate part only, so it always
       matches the filter and search of the page and ignores pagination.

Computed Fields:
    likes     = COUNT(*) of listing_likes rows for the listing
    favorite  = EXISTS a listing_likes row for (listing, viewer); false when
                there is no viewer

Pagination:
    page is 1-indexed; skip = (page - 1) * page_size
    total_pages = max(1, ceil(total_count / page_size))
    has_next_page = page < total_pages
"""

import enum
import logging
import math
import uuid
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from sqlalchemy import Select, and_, exists, false, func, literal_column, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from spaceshare.config import Settings, settings
from spaceshare.exceptions import DatabaseError, SpaceShareError, ValidationError
from spaceshare.models.listing import Listing, ListingCategory, ListingLike
from spaceshare.schemas.listing import FeedPage, ListingItem, Location

logger = logging.getLogger(__name__)


class FeedFilter(str, enum.Enum):
    """Public feed filters. Both only ever show shared listings."""

    ALL = "all"
    USER = "user"


class ProfileFilter(str, enum.Enum):
    """Filters of an owner's own dashboard (shared or not)."""

    ALL = "all"
    FAVORITES = "favorites"
    SHARED = "shared"


# ══════════════════════════════════════════════════════════════════════════
# Pagination
# ══════════════════════════════════════════════════════════════════════════


def normalize_page(raw: Any) -> int:
    """Parse a page query value; anything missing, non-numeric or < 1 is page 1."""
    try:
        page = int(raw)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


@dataclass(frozen=True)
class PageWindow:
    page: int
    page_size: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    def total_pages(self, total_count: int) -> int:
        return max(1, math.ceil(total_count / self.page_size))

    def has_next_page(self, total_count: int) -> bool:
        return self.page < self.total_pages(total_count)


# ══════════════════════════════════════════════════════════════════════════
# Computed columns
# ══════════════════════════════════════════════════════════════════════════


def likes_count_expr():
    """Correlated COUNT(*) of the listing's likes set."""
    return (
        select(func.count())
        .select_from(ListingLike)
        .where(ListingLike.listing_id == Listing.id)
        .correlate(Listing)
        .scalar_subquery()
    )


def favorite_expr(viewer_id: Optional[uuid.UUID]):
    """Whether the viewer is in the listing's likes set."""
    if viewer_id is None:
        return false()
    return exists().where(
        and_(ListingLike.listing_id == Listing.id, ListingLike.user_id == viewer_id)
    )


# ══════════════════════════════════════════════════════════════════════════
# Stages
# ══════════════════════════════════════════════════════════════════════════


def base_stage(category: ListingCategory) -> Select:
    return select(Listing).where(Listing.category == category)


def filter_stage(
    stmt: Select,
    feed_filter: FeedFilter,
    creator_id: Optional[uuid.UUID] = None,
) -> Select:
    stmt = stmt.where(Listing.shared.is_(True))
    if feed_filter is FeedFilter.USER:
        if creator_id is None:
            raise ValidationError(
                message="A creator id is required for the 'user' filter",
                field="creator",
            )
        stmt = stmt.where(Listing.creator_id == creator_id)
    return stmt


def profile_filter_stage(
    stmt: Select,
    profile_filter: ProfileFilter,
    owner_id: uuid.UUID,
) -> Select:
    stmt = stmt.where(Listing.creator_id == owner_id)
    if profile_filter is ProfileFilter.FAVORITES:
        stmt = stmt.where(favorite_expr(owner_id))
    elif profile_filter is ProfileFilter.SHARED:
        stmt = stmt.where(Listing.shared.is_(True))
    return stmt


def _escape_like(token: str) -> str:
    return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_stage(stmt: Select, term: Optional[str], backend: str) -> Select:
    """
    Restrict to listings whose title matches any token of `term`.

    PostgreSQL uses the full-text index (to_tsvector('simple', title));
    other backends fall back to case-insensitive substring matching.
    """
    tokens = (term or "").split()
    if not tokens:
        return stmt

    if backend == "postgresql":
        config = literal_column("'simple'::regconfig")
        document = func.to_tsvector(config, Listing.title)
        conditions = [
            document.op("@@")(func.plainto_tsquery(config, token)) for token in tokens
        ]
    else:
        conditions = [
            Listing.title.ilike(f"%{_escape_like(token)}%", escape="\\")
            for token in tokens
        ]
    return stmt.where(or_(*conditions))


def top_stage(stmt: Select, top: bool) -> Select:
    if not top:
        return stmt
    return stmt.where(likes_count_expr() > 0)


def project_stage(stmt: Select, viewer_id: Optional[uuid.UUID]) -> Select:
    return stmt.add_columns(
        likes_count_expr().label("likes"),
        favorite_expr(viewer_id).label("favorite"),
    )


def order_stage(stmt: Select, top: bool) -> Select:
    if top:
        # Ties broken by id so equal like counts page deterministically
        return stmt.order_by(likes_count_expr().desc(), Listing.id.asc())
    return stmt.order_by(Listing.created_at.desc(), Listing.id.desc())


def paginate_stage(stmt: Select, window: PageWindow) -> Select:
    return stmt.offset(window.skip).limit(window.page_size)


def count_stage(stmt: Select) -> Select:
    return select(func.count()).select_from(stmt.order_by(None).subquery())


# ══════════════════════════════════════════════════════════════════════════
# Row mapping
# ══════════════════════════════════════════════════════════════════════════


def to_listing_item(listing: Listing, likes: int = 0, favorite: bool = False) -> ListingItem:
    location = None
    if listing.lat is not None and listing.lng is not None:
        location = Location(lat=listing.lat, lng=listing.lng)
    return ListingItem(
        id=listing.id,
        category=listing.category,
        title=listing.title,
        description=listing.description,
        image=listing.image,
        shared=listing.shared,
        created_at=listing.created_at,
        creator_id=listing.creator_id,
        address=listing.address,
        location=location,
        likes=int(likes or 0),
        favorite=bool(favorite),
    )


# ══════════════════════════════════════════════════════════════════════════
# Engine
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FeedRequest:
    category: ListingCategory
    # Raw query value; normalized by normalize_page
    page: Union[int, str, None] = 1
    page_size: int = 6
    feed_filter: FeedFilter = FeedFilter.ALL
    search: Optional[str] = None
    viewer_id: Optional[uuid.UUID] = None
    creator_id: Optional[uuid.UUID] = None
    top: bool = False


class FeedQueryEngine:
    """Builds and runs feed queries. Stateless apart from its configuration."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    def page_size_for(self, category: ListingCategory) -> int:
        if category is ListingCategory.PLACE:
            return self.config.places_page_size
        return self.config.rockets_page_size

    def predicate(self, request: FeedRequest) -> Select:
        """The filter + search (+ top) part shared by the page and its count."""
        stmt = base_stage(request.category)
        stmt = filter_stage(stmt, request.feed_filter, request.creator_id)
        stmt = search_stage(stmt, request.search, self.config.database_backend)
        return top_stage(stmt, request.top)

    def page_query(self, predicate: Select, window: PageWindow, viewer_id, top: bool) -> Select:
        stmt = project_stage(predicate, viewer_id)
        stmt = order_stage(stmt, top)
        return paginate_stage(stmt, window)

    async def fetch_page(
        self,
        db: AsyncSession,
        predicate: Select,
        window: PageWindow,
        viewer_id: Optional[uuid.UUID],
        top: bool = False,
    ) -> Tuple[List[ListingItem], int]:
        """Run the page and count queries for a predicate."""
        result = await db.execute(self.page_query(predicate, window, viewer_id, top))
        rows: Sequence = result.all()
        items = [to_listing_item(row[0], row.likes, row.favorite) for row in rows]
        total_count = await self.count(db, predicate)
        return items, total_count

    async def count(self, db: AsyncSession, predicate: Select) -> int:
        result = await db.execute(count_stage(predicate))
        return int(result.scalar() or 0)

    async def list_feed(self, db: AsyncSession, request: FeedRequest) -> FeedPage:
        """
        Return one page of a public feed.

        Raises:
            ValidationError: 'user' filter without a creator id
            DatabaseError: the store failed
        """
        window = PageWindow(page=normalize_page(request.page), page_size=request.page_size)
        try:
            predicate = self.predicate(request)
            items, total_count = await self.fetch_page(
                db, predicate, window, request.viewer_id, request.top
            )
        except SpaceShareError:
            raise
        except Exception as e:
            logger.error("Database error listing %s feed: %s", request.category.value, str(e))
            raise DatabaseError(
                message=f"Sorry, something went wrong, could not load {request.category.plural}",
                context={"error_type": type(e).__name__},
            )

        return FeedPage(
            items=items,
            total_count=total_count,
            current_page=window.page,
            total_pages=window.total_pages(total_count),
            next_page=window.page + 1,
            has_next_page=window.has_next_page(total_count),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
feed_engine = FeedQueryEngine(settings)
