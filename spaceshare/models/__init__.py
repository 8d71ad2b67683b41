"""
SpaceShare Backend — ORM Models
================================

Importing this package registers every table with `Base.metadata`
(Alembic autogenerate and the test-suite's in-memory schema rely on it).
"""

from spaceshare.models.listing import Listing, ListingCategory, ListingLike, UserListingRef
from spaceshare.models.user import User

__all__ = ["Listing", "ListingCategory", "ListingLike", "User", "UserListingRef"]
