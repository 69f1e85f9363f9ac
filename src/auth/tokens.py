"""Bearer JWT verification — resolves the caller identity."""

from __future__ import annotations

from typing import Optional

import structlog
from jose import JWTError, jwt

from src.config import settings
from src.errors import AuthenticationError

logger = structlog.get_logger()

BEARER_SCHEME = "bearer"


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Token part of an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthenticationError: If the header is missing, empty, uses another
            scheme or carries no token.
    """
    if not authorization or not authorization.strip():
        raise AuthenticationError()

    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != BEARER_SCHEME or not token:
        raise AuthenticationError()
    return token


def verify_token(token: str, secret: Optional[str] = None) -> str:
    """Verify a signed JWT and return its subject (the user id).

    Args:
        token: Encoded JWT
        secret: Signing secret, defaults to the configured one

    Raises:
        AuthenticationError: If the token is invalid, expired or has no subject.
    """
    try:
        payload = jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.info("token_rejected", error=str(e))
        raise AuthenticationError("Invalid or expired token") from e

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid or expired token")
    return str(user_id)
