"""
SpaceShare Backend — Test Configuration (conftest.py)
======================================================

Shared fixtures for the whole suite.

Environment variables are set before anything from `spaceshare` is
imported, so the module-level settings (and the singletons built from
them) never point at a real database or the default JWT secret.

Fixtures:
    test_settings       Settings for directly constructed services
    db_engine           in-memory SQLite with the ORM schema
    db_session          AsyncSession on that engine
    services            every service wired to test_settings + temp storage
    make_user           insert a user row
    make_listing        insert a listing (+ owner ref, + likes)
    image_upload        a small valid PNG upload
    mock_db_session     AsyncMock session for pure unit tests
    test_client         httpx AsyncClient bound to the app and db_engine
"""

import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="spaceshare_test_")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta, timezone  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Iterable, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from spaceshare.config import Settings  # noqa: E402
from spaceshare.database import Base  # noqa: E402
from spaceshare.models import Listing, ListingCategory, ListingLike, User, UserListingRef  # noqa: E402
from spaceshare.services.auth_service import AuthService  # noqa: E402
from spaceshare.services.consistency import ConsistencyCoordinator  # noqa: E402
from spaceshare.services.feed_query import FeedQueryEngine  # noqa: E402
from spaceshare.services.file_service import FileService, ImageUpload  # noqa: E402
from spaceshare.services.listing_service import ListingService  # noqa: E402
from spaceshare.services.rating_service import RatingService  # noqa: E402
from spaceshare.services.user_service import UserService  # noqa: E402

# 8-byte PNG signature followed by an IHDR-sized tail; enough for type checks
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 17

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def test_settings(temp_storage):
    return Settings(
        database_url="sqlite+aiosqlite://",
        jwt_secret="test-secret-not-for-production",
        storage_root=temp_storage,
        bcrypt_rounds=4,
        retry_min_wait=0,
        retry_max_wait=0,
        places_page_size=2,
        rockets_page_size=3,
        profile_page_size=2,
    )


@pytest.fixture
def sample_image_bytes():
    return PNG_BYTES


@pytest.fixture
def image_upload():
    return ImageUpload(filename="photo.png", content_type="image/png", content=PNG_BYTES)


@pytest.fixture
def mock_db_session():
    """AsyncSession stand-in for tests that never reach a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def db_engine():
    # StaticPool: every session shares the one in-memory database
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def services(test_settings, temp_storage):
    files = FileService(test_settings, storage_root=temp_storage)
    feed = FeedQueryEngine(test_settings)
    ratings = RatingService(test_settings)
    auth = AuthService(test_settings)
    consistency = ConsistencyCoordinator(test_settings)
    return SimpleNamespace(
        files=files,
        feed=feed,
        ratings=ratings,
        auth=auth,
        consistency=consistency,
        listings=ListingService(
            test_settings, files=files, consistency=consistency, feed=feed, ratings=ratings
        ),
        users=UserService(test_settings, files=files, auth=auth, feed=feed, ratings=ratings),
    )


@pytest.fixture
def make_user(db_session):
    async def _make(name: str = "Yuri Gagarin", email: Optional[str] = None) -> User:
        user = User(
            name=name,
            email=email or f"{uuid4().hex[:10]}@space.io",
            password_hash="not-a-real-hash",
            image="users/avatar.png",
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_listing(db_session):
    """
    Insert a listing with its owner reference and likes.

    `minutes` offsets created_at from a fixed base time, so tests control
    the newest-first order.
    """

    async def _make(
        creator: User,
        title: str = "Launch pad",
        category: ListingCategory = ListingCategory.PLACE,
        shared: bool = True,
        likers: Iterable[User] = (),
        minutes: int = 0,
    ) -> Listing:
        listing = Listing(
            category=category,
            title=title,
            description="A fine description",
            image=f"{category.plural}/{uuid4().hex}.png",
            address="Baikonur" if category is ListingCategory.PLACE else None,
            creator_id=creator.id,
            shared=shared,
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )
        db_session.add(listing)
        await db_session.flush()
        db_session.add(UserListingRef(user_id=creator.id, listing_id=listing.id))
        for liker in likers:
            db_session.add(ListingLike(listing_id=listing.id, user_id=liker.id))
        await db_session.commit()
        return listing

    return _make


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    httpx client for the FastAPI app, with the request session bound to
    the in-memory test database.
    """
    from spaceshare.database import get_db_session
    from spaceshare.main import app

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
