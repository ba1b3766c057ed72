"""
Bearer token verification.

Access tokens are HS256 JWTs whose subject is the user's UUID. The upload
pipeline only ever sees the resulting user id.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import jwt

from ...core.media.errors import Unauthenticated

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_ISSUER = "tubely-access"


def get_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header value."""
    if not authorization:
        raise Unauthenticated("Couldn't find JWT")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Malformed authorization header")

    return token.strip()


class TokenVerifier:
    """Validates access tokens and returns the caller's user id."""

    def __init__(self, secret: str, issuer: str = DEFAULT_ISSUER) -> None:
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self._issuer = issuer

    def verify(self, token: str) -> UUID:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthenticated("Token expired")
        except jwt.InvalidTokenError as e:
            logger.info("Rejected access token", extra={"error": str(e)})
            raise Unauthenticated("Couldn't validate JWT")

        try:
            return UUID(str(claims["sub"]))
        except ValueError:
            raise Unauthenticated("Token subject is not a user id")


def issue_access_token(
    user_id: UUID,
    secret: str,
    expires_in: timedelta = timedelta(hours=1),
    issuer: str = DEFAULT_ISSUER,
) -> str:
    """Mint an access token. Used by the seeding script and tests."""
    now = datetime.now(timezone.utc)
    claims = {
        "iss": issuer,
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)
