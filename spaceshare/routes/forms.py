"""
SpaceShare Backend — Request Body Helpers
===========================================

Small adapters from raw request fields (multipart forms, query strings)
to the values the command schemas validate.
"""

from typing import Any, Dict, Optional

from fastapi import Request, UploadFile

from spaceshare.config import settings
from spaceshare.exceptions import ValidationError
from spaceshare.services.file_service import ImageUpload


async def read_image(file: Optional[UploadFile]) -> Optional[ImageUpload]:
    """
    Read an uploaded file into memory.

    At most max_file_size + 1 bytes are read, enough for the size check to
    reject an oversized image without buffering all of it.
    """
    if file is None or not file.filename:
        return None
    try:
        content = await file.read(settings.max_file_size + 1)
    finally:
        await file.close()
    return ImageUpload(
        filename=file.filename,
        content_type=file.content_type or "",
        content=content,
    )


def parse_flag(value: Optional[str]) -> bool:
    """Form/query booleans arrive as strings; only 'true' is true."""
    return (value or "").strip().lower() == "true"


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


async def read_fields(request: Request) -> Dict[str, Any]:
    """Body fields of a JSON or form-encoded request."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError(message="Request body is not valid JSON")
        if not isinstance(body, dict):
            raise ValidationError(message="Request body must be a JSON object")
        return body
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}
