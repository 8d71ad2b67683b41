"""
SpaceShare Backend — Image Storage Service
============================================

What:  Validates uploaded images, stores them, and releases them when the
       owning record replaces or drops them.
How:   Checks extension, declared MIME type, and size; writes the bytes with
       aiofiles under a per-namespace folder with a UUID filename.
Who:   Called by UserService (profile pictures) and ListingService (listing
       images).

Directory Structure:
    uploads/
    ├── users/
    │   └── 1f0c...e9.png
    ├── places/
    │   └── a1b2...34.jpeg
    └── rockets/
        └── 9d8e...07.jpg

Ownership:
    An image belongs to exactly one user or listing row. A replacement is
    always written before the old file is released, and releasing is
    best-effort: failures are logged, never raised.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from spaceshare.config import Settings, settings
from spaceshare.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# Declared MIME type → stored file extension
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpeg",
    "image/jpg": ".jpg",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg"}

NAMESPACES = {"users", "places", "rockets"}


@dataclass(frozen=True)
class ImageUpload:
    """An uploaded image file held in memory (bounded by max_file_size)."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class FileService:
    """
    Manages image validation, storage, and release.

    Lifecycle of an uploaded image:
        1. Route reads the multipart file into an ImageUpload
        2. validate() checks extension, MIME type, size
        3. store_image() writes it under <storage_root>/<namespace>/<uuid><ext>
        4. The storage-relative path is saved on the owning row
        5. release_image() deletes it once the row no longer references it
    """

    def __init__(self, config: Optional[Settings] = None, storage_root: Optional[str] = None):
        """
        Args:
            config: Settings to read limits from (defaults to the app settings).
            storage_root: Override the storage path (used in tests).
        """
        self.config = config or settings
        self.storage_root = Path(storage_root or self.config.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_extension(self, filename: str) -> str:
        """Returns the normalized extension (lowercase with dot)."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext},
            )
        return ext

    def validate_mime_type(self, content_type: str) -> str:
        """Checks the declared content type against png/jpeg/jpg."""
        mime_type = (content_type or "").split(";")[0].strip().lower()
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message="Invalid mime type",
                field="image",
                context={"mime_type": mime_type},
            )
        return mime_type

    def validate_size(self, size: int) -> None:
        if size == 0:
            raise ValidationError(message="Image must not be empty", field="image")
        if size > self.config.max_file_size:
            raise ValidationError(
                message=(
                    f"Image is too large ({size} bytes). "
                    f"Maximum allowed size is {self.config.max_file_size} bytes."
                ),
                field="image",
                context={"size": size, "max_size": self.config.max_file_size},
            )

    def validate(self, upload: ImageUpload) -> str:
        """
        Runs every check, cheapest first.

        Returns:
            The extension the stored file will carry.
        """
        self.validate_extension(upload.filename)
        mime_type = self.validate_mime_type(upload.content_type)
        self.validate_size(upload.size)
        return ALLOWED_MIME_TYPES[mime_type]

    # ── Storage ───────────────────────────────────────────────────────────

    def resolve(self, relative_path: str) -> Path:
        """
        Map a storage-relative path to an absolute one inside the storage root.

        Raises:
            ValidationError if the path escapes the storage root.
        """
        full_path = (self.storage_root / relative_path).resolve()
        if full_path != self.storage_root and self.storage_root not in full_path.parents:
            raise ValidationError(message="Invalid file path", field="path")
        return full_path

    async def store_image(self, upload: ImageUpload, namespace: str) -> str:
        """
        Validate and write an image.

        Returns:
            Storage-relative path, e.g. "places/3f2a...c1.jpeg".

        Raises:
            ValidationError: bad type or size
            FileStorageError: the write failed
        """
        if namespace not in NAMESPACES:
            raise ValueError(f"Unknown image namespace '{namespace}'")

        extension = self.validate(upload)
        relative_path = f"{namespace}/{uuid.uuid4()}{extension}"
        absolute_path = self.storage_root / relative_path

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(upload.content)
        except OSError as e:
            logger.error("Failed to store image at %s: %s", absolute_path, str(e))
            raise FileStorageError(context={"path": str(absolute_path), "os_error": str(e)})

        logger.info("Image stored: %s (%d bytes)", relative_path, upload.size)
        return relative_path

    async def release_image(self, relative_path: Optional[str]) -> None:
        """
        Delete an image that no record references any more.

        Best-effort: a missing file is fine and any other failure is logged
        at WARNING without raising.
        """
        if not relative_path:
            return
        try:
            path = self.resolve(relative_path)
            if await aiofiles.os.path.exists(path):
                await aiofiles.os.remove(path)
                logger.info("Released image: %s", relative_path)
            else:
                logger.debug("Release: image already gone: %s", relative_path)
        except Exception as e:
            logger.warning("Failed to release image %s: %s", relative_path, str(e))


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService(settings)
