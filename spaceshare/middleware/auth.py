"""
SpaceShare Backend — Authorization Guard
==========================================

What:  Resolves the acting user of a request from its bearer token.
How:   FastAPI dependencies. A request moves through

           Unauthenticated → TokenPresent → TokenValid → Identified

       and any failed step stops it with UnauthorizedError (401,
       "Authentication failed") before the route handler runs.

Usage:
    @router.delete("/{listing_id}")
    async def delete(listing_id: UUID, auth: AuthContext = Depends(require_auth)):
        ...

    `optional_auth` never fails: it yields None for anonymous callers or
    unusable tokens (public feeds use it to mark favorites).

CORS preflight (OPTIONS) requests pass through without a token.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from spaceshare.exceptions import UnauthorizedError
from spaceshare.services.auth_service import auth_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """The identified acting user."""

    user_id: uuid.UUID
    email: str


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of an 'Authorization: Bearer <token>' header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


async def require_auth(request: Request) -> Optional[AuthContext]:
    if request.method == "OPTIONS":
        return None

    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        logger.info("Rejected %s %s: no bearer token", request.method, request.url.path)
        raise UnauthorizedError()

    claims = auth_service.decode_token(token)
    context = AuthContext(user_id=claims.user_id, email=claims.email)
    request.state.auth = context
    return context


async def optional_auth(request: Request) -> Optional[AuthContext]:
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        return None
    try:
        claims = auth_service.decode_token(token)
    except UnauthorizedError:
        return None
    return AuthContext(user_id=claims.user_id, email=claims.email)
