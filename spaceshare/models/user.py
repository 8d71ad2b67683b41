"""
SpaceShare Backend — User SQLAlchemy Model
============================================

What:  ORM model representing the `users` table.
Who:   Used by UserService (signup, signin, profile) and the rating engine.

Table Design:
    - UUID primary key
    - email: unique, stored lower-cased so uniqueness is case-insensitive
    - password_hash: bcrypt hash produced by passlib (never the raw password)
    - image: storage-relative path of the profile picture
    Users are never deleted.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from spaceshare.database import Base


class User(Base):
    """A registered account that can own and like listings."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(120), nullable=False)

    # Uniqueness is enforced by the store, not only by the signup pre-check
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    image: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
