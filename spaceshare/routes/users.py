"""
SpaceShare Backend — User Route Handlers
==========================================

What:  /api/users: sign-up, sign-in, the rated user list, and the owner's
       profile dashboard and profile edit.
How:   Thin handlers: collect fields, build a validated command, call
       UserService. Errors become the standard envelope in main.py.

Endpoints:
    POST  /api/users/signup      multipart  → 201 {message, token, tokenExpiration, user}
    POST  /api/users/signin      JSON/form  → 200 same shape
    GET   /api/users             ?max=      → 200 {users: [{id, name, image, rating}]}
    GET   /api/users/{id}        auth, self → 200 {<places|rockets>, currentPage, ...}
    PATCH /api/users/{id}        auth, self → 201 {message, user}
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from spaceshare.database import get_db_session
from spaceshare.middleware.auth import AuthContext, require_auth
from spaceshare.models.listing import ListingCategory
from spaceshare.routes.forms import read_fields, read_image
from spaceshare.schemas.common import ErrorResponse, build_command
from spaceshare.schemas.user import (
    AuthResponse,
    ProfileUpdateCommand,
    ProfileUpdateResponse,
    SigninCommand,
    SignupCommand,
    UsersResponse,
)
from spaceshare.services.feed_query import ProfileFilter
from spaceshare.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post(
    "/signup",
    status_code=201,
    response_model=AuthResponse,
    responses={
        422: {"description": "Invalid fields or email already taken", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def signup(
    name: str = Form(default=""),
    email: str = Form(default=""),
    password: str = Form(default=""),
    image: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    command = build_command(
        SignupCommand,
        name=name,
        email=email,
        password=password,
        image=await read_image(image),
    )
    return await user_service.register_user(db, command)


@router.post(
    "/signin",
    response_model=AuthResponse,
    responses={401: {"description": "Unknown email or wrong password", "model": ErrorResponse}},
    summary="Sign in with email and password",
)
async def signin(request: Request, db: AsyncSession = Depends(get_db_session)) -> AuthResponse:
    fields = await read_fields(request)
    command = build_command(
        SigninCommand,
        email=str(fields.get("email") or ""),
        password=str(fields.get("password") or ""),
    )
    return await user_service.authenticate(db, command)


@router.get(
    "",
    response_model=UsersResponse,
    summary="Users ranked by rating",
)
async def list_users(
    max_users: Optional[int] = Query(default=None, alias="max", ge=1),
    category: Optional[ListingCategory] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> UsersResponse:
    return await user_service.list_rated_users(db, limit=max_users, category=category)


@router.get(
    "/{user_id}",
    responses={
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        403: {"description": "Not the profile owner", "model": ErrorResponse},
    },
    summary="The signed-in user's own listings",
)
async def get_profile(
    user_id: UUID,
    profile_filter: ProfileFilter = Query(default=ProfileFilter.ALL, alias="filter"),
    search: Optional[str] = Query(default=None),
    page: Optional[str] = Query(default=None),
    category: ListingCategory = Query(default=ListingCategory.PLACE),
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """
    Items are keyed by the category plural, so rockets come back as
    {"rockets": [...], "currentPage": 1, ...}.
    """
    result = await user_service.get_profile(
        db,
        user_id=user_id,
        acting_user_id=auth.user_id,
        category=category,
        profile_filter=profile_filter,
        search=search,
        page=page,
    )
    payload = result.model_dump(by_alias=True, mode="json")
    payload[category.plural] = payload.pop("items")
    return payload


@router.patch(
    "/{user_id}",
    status_code=201,
    response_model=ProfileUpdateResponse,
    responses={
        403: {"description": "Not the profile owner", "model": ErrorResponse},
        422: {"description": "Invalid fields", "model": ErrorResponse},
    },
    summary="Change name and profile picture",
)
async def update_profile(
    user_id: UUID,
    name: str = Form(default=""),
    image: Optional[UploadFile] = File(default=None),
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileUpdateResponse:
    command = build_command(ProfileUpdateCommand, name=name, image=await read_image(image))
    return await user_service.update_profile(db, user_id, auth.user_id, command)
