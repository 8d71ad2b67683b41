"""
SpaceShare Backend — Stored Image Route
=========================================

GET /uploads/{path} serves images written by FileService. Paths resolve
inside the storage root only; anything escaping it is rejected.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from spaceshare.exceptions import NotFoundError
from spaceshare.services.file_service import file_service

router = APIRouter(tags=["Uploads"])


@router.get(
    "/uploads/{file_path:path}",
    responses={404: {"description": "File not found"}},
    summary="Serve a stored image",
)
async def serve_upload(file_path: str) -> FileResponse:
    full_path = file_service.resolve(file_path)
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    # FileResponse guesses the media type from the extension
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
