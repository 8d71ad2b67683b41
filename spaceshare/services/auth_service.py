"""
SpaceShare Backend — Credentials & Session Tokens
===================================================

What:  Password hashing and signed session tokens.
How:   passlib's CryptContext (bcrypt) for passwords; python-jose for HS256
       JWTs carrying {userId, email, exp}.
Who:   UserService (signup/signin) and the authorization guard.

Token Lifecycle:
    issue_token()  → signed token, valid for jwt_expiration_hours
    decode_token() → TokenClaims, or UnauthorizedError when the signature,
                     expiry or claims are invalid. Expired and tampered
                     tokens fail the same way so clients cannot tell them
                     apart.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from spaceshare.config import Settings, settings
from spaceshare.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    email: str


@dataclass(frozen=True)
class IssuedToken:
    token: str
    # Milliseconds from issue until expiry
    expires_in_ms: int


class AuthService:
    """Hashes passwords and issues/verifies session tokens."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=self.config.bcrypt_rounds,
        )

    # ── Passwords ─────────────────────────────────────────────────────────

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return self.pwd_context.verify(password, password_hash)
        except ValueError:
            # Malformed hash in the store
            logger.warning("Password hash could not be parsed")
            return False

    # ── Tokens ────────────────────────────────────────────────────────────

    def issue_token(self, user_id: uuid.UUID, email: str) -> IssuedToken:
        expires_at = datetime.now(timezone.utc) + timedelta(
            hours=self.config.jwt_expiration_hours
        )
        claims = {"userId": str(user_id), "email": email, "exp": expires_at}
        token = jwt.encode(claims, self.config.jwt_secret, algorithm=self.config.jwt_algorithm)
        return IssuedToken(token=token, expires_in_ms=self.config.token_expiration_ms)

    def decode_token(self, token: str) -> TokenClaims:
        """
        Verify a token and return its claims.

        Raises:
            UnauthorizedError: bad signature, expired, or missing claims
        """
        try:
            payload = jwt.decode(
                token, self.config.jwt_secret, algorithms=[self.config.jwt_algorithm]
            )
        except ExpiredSignatureError:
            logger.info("Rejected expired token")
            raise UnauthorizedError()
        except JWTError as e:
            logger.info("Rejected invalid token: %s", str(e))
            raise UnauthorizedError()

        try:
            return TokenClaims(user_id=uuid.UUID(payload["userId"]), email=payload["email"])
        except (KeyError, TypeError, ValueError):
            logger.info("Rejected token with malformed claims")
            raise UnauthorizedError()


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService(settings)
