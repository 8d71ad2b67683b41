"""
SpaceShare Backend — Listing Route Handlers
=============================================

What:  The /api/places and /api/rockets endpoints.
How:   `build_listing_router(category)` produces the same set of handlers
       for each category; payload keys follow the category, e.g.
       {"place": {...}} / {"rockets": [...]}.

Endpoints (shown for places):
    GET    /api/places                  feed   → 200 {places, totalCount, currentPage, ...}
    POST   /api/places                  auth   → 201 {message, place}
    GET    /api/places/{id}                    → 200 {place, topUserListings, ...}
    PATCH  /api/places/{id}?shared=     auth   → 201 {message, place}   share toggle
    PATCH  /api/places/{id}             auth   → 201 {message, place}   content edit
    DELETE /api/places/{id}             auth   → 200 {message}
    PATCH  /api/places/{id}/favorite?userId=   → 201 {message, liked, likes}
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from spaceshare.database import get_db_session
from spaceshare.exceptions import ForbiddenError, UnauthorizedError
from spaceshare.middleware.auth import AuthContext, optional_auth, require_auth
from spaceshare.models.listing import ListingCategory
from spaceshare.routes.forms import blank_to_none, parse_flag, read_image
from spaceshare.schemas.common import ErrorResponse, MessageResponse, build_command
from spaceshare.schemas.listing import (
    ContentEdit,
    LikeResponse,
    ListingCreateCommand,
    ShareToggle,
)
from spaceshare.services.feed_query import FeedFilter, FeedRequest, feed_engine
from spaceshare.services.listing_service import listing_service

logger = logging.getLogger(__name__)

AUTH_ERRORS = {
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    403: {"description": "Not the creator", "model": ErrorResponse},
    404: {"description": "Listing not found", "model": ErrorResponse},
}


def _rekey(payload: Dict[str, Any], old: str, new: str) -> Dict[str, Any]:
    payload[new] = payload.pop(old)
    return payload


def build_listing_router(category: ListingCategory) -> APIRouter:
    """Create the router serving one listing category."""
    router = APIRouter(prefix=f"/api/{category.plural}", tags=[category.plural.capitalize()])
    item_key = category.value
    items_key = category.plural

    @router.get("", summary=f"Feed of shared {category.plural}")
    async def list_listings(
        page: Optional[str] = Query(default=None),
        search: Optional[str] = Query(default=None),
        feed_filter: FeedFilter = Query(default=FeedFilter.ALL, alias="filter"),
        creator: Optional[UUID] = Query(default=None),
        top: bool = Query(default=False),
        user: Optional[UUID] = Query(default=None, description="Viewer id for favorites"),
        auth: Optional[AuthContext] = Depends(optional_auth),
        db: AsyncSession = Depends(get_db_session),
    ) -> Dict[str, Any]:
        request = FeedRequest(
            category=category,
            page=page,
            page_size=feed_engine.page_size_for(category),
            feed_filter=feed_filter,
            search=search,
            viewer_id=auth.user_id if auth else user,
            creator_id=creator,
            top=top,
        )
        result = await listing_service.list_feed(db, request)
        return _rekey(result.model_dump(by_alias=True, mode="json"), "items", items_key)

    @router.post("", status_code=201, responses=AUTH_ERRORS, summary=f"Create a {item_key}")
    async def create_listing(
        title: str = Form(default=""),
        description: str = Form(default=""),
        creator: str = Form(default=""),
        shared: Optional[str] = Form(default=None),
        address: Optional[str] = Form(default=None),
        lat: Optional[str] = Form(default=None),
        lng: Optional[str] = Form(default=None),
        image: Optional[UploadFile] = File(default=None),
        auth: AuthContext = Depends(require_auth),
        db: AsyncSession = Depends(get_db_session),
    ) -> Dict[str, Any]:
        command = build_command(
            ListingCreateCommand,
            category=category,
            creator=creator,
            title=title,
            description=description,
            image=await read_image(image),
            shared=parse_flag(shared),
            address=address,
            lat=blank_to_none(lat),
            lng=blank_to_none(lng),
        )
        result = await listing_service.create(db, command, auth.user_id)
        return _rekey(result.model_dump(by_alias=True, mode="json"), "listing", item_key)

    @router.get("/{listing_id}", responses={404: AUTH_ERRORS[404]}, summary=f"A single {item_key}")
    async def get_listing(
        listing_id: UUID,
        user: Optional[UUID] = Query(default=None, description="Viewer id for favorites"),
        auth: Optional[AuthContext] = Depends(optional_auth),
        db: AsyncSession = Depends(get_db_session),
    ) -> Dict[str, Any]:
        viewer_id = auth.user_id if auth else user
        result = await listing_service.get_by_id(db, listing_id, category, viewer_id)
        return _rekey(result.model_dump(by_alias=True, mode="json"), "listing", item_key)

    @router.patch(
        "/{listing_id}",
        status_code=201,
        responses=AUTH_ERRORS,
        summary=f"Share/unshare or edit a {item_key}",
    )
    async def edit_listing(
        listing_id: UUID,
        shared: Optional[str] = Query(default=None),
        title: str = Form(default=""),
        description: str = Form(default=""),
        image: Optional[UploadFile] = File(default=None),
        auth: AuthContext = Depends(require_auth),
        db: AsyncSession = Depends(get_db_session),
    ) -> Dict[str, Any]:
        """A non-empty ?shared= makes this a share toggle; otherwise it is a content edit."""
        if shared:
            edit = ShareToggle(value=parse_flag(shared))
        else:
            edit = build_command(
                ContentEdit,
                title=title,
                description=description,
                image=await read_image(image),
            )
        result = await listing_service.edit(db, listing_id, category, auth.user_id, edit)
        return _rekey(result.model_dump(by_alias=True, mode="json"), "listing", item_key)

    @router.delete(
        "/{listing_id}",
        response_model=MessageResponse,
        responses=AUTH_ERRORS,
        summary=f"Delete a {item_key}",
    )
    async def delete_listing(
        listing_id: UUID,
        auth: AuthContext = Depends(require_auth),
        db: AsyncSession = Depends(get_db_session),
    ) -> MessageResponse:
        return await listing_service.delete(db, listing_id, category, auth.user_id)

    @router.patch(
        "/{listing_id}/favorite",
        status_code=201,
        response_model=LikeResponse,
        responses={404: AUTH_ERRORS[404]},
        summary=f"Like or unlike a {item_key}",
    )
    async def toggle_favorite(
        listing_id: UUID,
        user_id: Optional[UUID] = Query(default=None, alias="userId"),
        auth: Optional[AuthContext] = Depends(optional_auth),
        db: AsyncSession = Depends(get_db_session),
    ) -> LikeResponse:
        """
        The liker is the token's user when a token is sent, otherwise the
        userId query parameter. A token and a different userId conflict.
        """
        if auth is not None:
            if user_id is not None and user_id != auth.user_id:
                raise ForbiddenError()
            liker_id = auth.user_id
        elif user_id is not None:
            liker_id = user_id
        else:
            raise UnauthorizedError()
        return await listing_service.like_response(db, listing_id, category, liker_id)

    return router


places_router = build_listing_router(ListingCategory.PLACE)
rockets_router = build_listing_router(ListingCategory.ROCKET)
