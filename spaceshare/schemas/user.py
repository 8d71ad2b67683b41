"""
SpaceShare Backend — User Schemas
==================================

Commands (validated input) and responses for the /api/users endpoints.
Validation messages match what the web client displays next to each field.
"""

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import validate_email
from pydantic_core import PydanticCustomError

from spaceshare.schemas.common import CamelModel
from spaceshare.schemas.listing import ListingItem
from spaceshare.services.file_service import ImageUpload


def _check_name(value: str) -> str:
    value = (value or "").strip()
    if len(value) < 3:
        raise ValueError("Name must not be empty and contain at least 3 characters")
    return value


def normalize_email(value: str) -> str:
    """Trim and lower-case an email address (the store's uniqueness key)."""
    return (value or "").strip().lower()


# ══════════════════════════════════════════════════════════════════════════
# Commands
# ══════════════════════════════════════════════════════════════════════════


class SignupCommand(BaseModel):
    name: str
    email: str
    password: str
    image: Optional[ImageUpload] = Field(default=None, validate_default=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: str) -> str:
        v = normalize_email(v)
        try:
            validate_email(v)
        except (PydanticCustomError, ValueError):
            raise ValueError("Email entered incorrectly")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len((v or "").strip()) < 6:
            raise ValueError("Password must not be empty and contain at least 6 characters")
        return v

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: Optional[ImageUpload]) -> ImageUpload:
        if v is None or not v.content:
            raise ValueError("Image must not be empty")
        return v


class SigninCommand(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_email(v)


class ProfileUpdateCommand(BaseModel):
    name: str
    image: Optional[ImageUpload] = Field(default=None, validate_default=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: Optional[ImageUpload]) -> ImageUpload:
        if v is None or not v.content:
            raise ValueError("Image must not be empty")
        return v


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class UserSummary(CamelModel):
    id: uuid.UUID
    name: str
    image: str


class AuthResponse(CamelModel):
    """Returned by signup (201) and signin (200)."""
    message: str
    token: str
    # Milliseconds until the token expires
    token_expiration: int
    user: UserSummary


class ProfileUpdateResponse(CamelModel):
    message: str
    user: UserSummary


class RatedUser(CamelModel):
    id: uuid.UUID
    name: str
    image: str
    rating: float


class UsersResponse(CamelModel):
    users: List[RatedUser]


class ProfilePage(CamelModel):
    """The owner's dashboard of their own listings."""
    items: List[ListingItem]
    current_page: int
    total_pages: int
    has_next_page: bool
    amount: int
    amount_favorites: int
    amount_shared: int
    current_amount: int
