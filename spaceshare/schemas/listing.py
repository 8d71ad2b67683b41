"""
SpaceShare Backend — Listing Schemas
======================================

What:  Validated commands for creating and editing listings, and the response
       models for single listings, feeds, and like toggles.

Edit requests are a tagged union decided once at the HTTP boundary:

    ShareToggle(value)                        ← PATCH /api/places/{id}?shared=true
    ContentEdit(title, description, image)    ← PATCH /api/places/{id} (multipart)

The service pattern-matches on the type and never inspects raw request fields.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from spaceshare.models.listing import ListingCategory
from spaceshare.schemas.common import CamelModel
from spaceshare.services.file_service import ImageUpload

TITLE_MESSAGE = "Title must not be empty and contain at least 3 characters"
DESCRIPTION_MESSAGE = (
    "Description must not be empty and contain at least 3 and at most 200 characters"
)
IMAGE_MESSAGE = "Image must not be empty"
ADDRESS_MESSAGE = "Address must not be empty"


def _check_title(value: str) -> str:
    value = (value or "").strip()
    if len(value) < 3:
        raise ValueError(TITLE_MESSAGE)
    return value


def _check_description(value: str) -> str:
    value = (value or "").strip()
    if not 3 <= len(value) <= 200:
        raise ValueError(DESCRIPTION_MESSAGE)
    return value


def _check_image(value: Optional[ImageUpload]) -> ImageUpload:
    if value is None or not value.content:
        raise ValueError(IMAGE_MESSAGE)
    return value


# ══════════════════════════════════════════════════════════════════════════
# Commands
# ══════════════════════════════════════════════════════════════════════════


class ListingCreateCommand(BaseModel):
    """Fields of a new listing. `creator` must equal the acting user."""

    category: ListingCategory
    creator: uuid.UUID
    title: str
    description: str
    image: Optional[ImageUpload] = Field(default=None, validate_default=True)
    shared: bool = False
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _check_description(v)

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: Optional[ImageUpload]) -> ImageUpload:
        return _check_image(v)

    @field_validator("address")
    @classmethod
    def strip_address(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def check_location(self) -> "ListingCreateCommand":
        if self.category is ListingCategory.PLACE and not self.address:
            raise ValueError(ADDRESS_MESSAGE)
        if (self.lat is None) != (self.lng is None):
            raise ValueError("Both lat and lng must be provided together")
        return self


class ShareToggle(BaseModel):
    """Flip a listing's visibility in public feeds. Touches nothing else."""

    kind: Literal["share"] = "share"
    value: bool


class ContentEdit(BaseModel):
    """Replace a listing's title, description and image."""

    kind: Literal["content"] = "content"
    title: str
    description: str
    image: Optional[ImageUpload] = Field(default=None, validate_default=True)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _check_description(v)

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: Optional[ImageUpload]) -> ImageUpload:
        return _check_image(v)


ListingEdit = Annotated[Union[ShareToggle, ContentEdit], Field(discriminator="kind")]


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class Location(CamelModel):
    lat: float
    lng: float


class CreatorSummary(CamelModel):
    id: uuid.UUID
    name: str
    image: str


class ListingItem(CamelModel):
    """
    A listing as it appears in feeds and mutation responses.

    `likes` is the size of the likes set and `favorite` tells whether the
    viewer is in it; both are computed at read time.
    """
    id: uuid.UUID
    category: ListingCategory
    title: str
    description: str
    image: str
    shared: bool
    created_at: datetime
    creator_id: uuid.UUID
    address: Optional[str] = None
    location: Optional[Location] = None
    likes: int = 0
    favorite: bool = False


class ListingDetail(ListingItem):
    creator: CreatorSummary


class TopListing(CamelModel):
    id: uuid.UUID
    title: str
    image: str
    likes: int


class UserRating(CamelModel):
    total_listings: int
    # None when the user has no listings
    rating: Optional[float] = None


class FeedPage(CamelModel):
    items: List[ListingItem]
    total_count: int
    current_page: int
    total_pages: int
    next_page: int
    has_next_page: bool


class ListingDetailResponse(CamelModel):
    listing: ListingDetail
    top_user_listings: List[TopListing]
    user_listings_amount: int
    user_rating: Optional[float] = None


class ListingMutationResponse(CamelModel):
    message: str
    listing: ListingItem


class LikeResponse(CamelModel):
    message: str
    liked: bool
    likes: int
