"""FastAPI dependencies for caller authentication."""

from __future__ import annotations

from typing import Optional

from fastapi import Header

from src.auth.tokens import extract_bearer_token, verify_token


async def get_current_user_id(
    authorization: Optional[str] = Header(None),
) -> str:
    """Authenticated user id from the bearer token.

    Raises AuthenticationError (401) when absent or invalid.
    """
    return verify_token(extract_bearer_token(authorization))
