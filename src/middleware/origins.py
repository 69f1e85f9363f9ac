"""Origin guard for browser-facing endpoints.

Answers CORS preflights and rejects requests from origins outside the
allow-list before any route code runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Pattern

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()

DEFAULT_ALLOWED_ORIGINS: tuple[str, ...] = (
    "https://diagauto.app",
    "https://www.diagauto.app",
)

# Any subdomain of the product domain (preview deployments, workshops)
DEFAULT_ALLOWED_PATTERNS: tuple[str, ...] = (
    r"https://[a-z0-9-]+(\.[a-z0-9-]+)*\.diagauto\.app",
)

CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"
CORS_ALLOW_METHODS = "POST, OPTIONS"
CORS_MAX_AGE = "86400"


@dataclass(frozen=True)
class OriginPolicy:
    """Immutable origin allow-list: exact strings plus full-match patterns."""

    exact: frozenset[str]
    patterns: tuple[Pattern[str], ...] = ()

    @classmethod
    def build(
        cls,
        origins: Iterable[str] = DEFAULT_ALLOWED_ORIGINS,
        patterns: Iterable[str] = DEFAULT_ALLOWED_PATTERNS,
        extra_origin: str = "",
    ) -> "OriginPolicy":
        exact = {origin.rstrip("/") for origin in origins if origin}
        if extra_origin.strip():
            exact.add(extra_origin.strip().rstrip("/"))
        return cls(
            exact=frozenset(exact),
            patterns=tuple(re.compile(p) for p in patterns),
        )

    def allows(self, origin: Optional[str]) -> bool:
        if not origin:
            return False
        if origin in self.exact:
            return True
        return any(p.fullmatch(origin) for p in self.patterns)

    def cors_headers(self, origin: Optional[str]) -> dict[str, str]:
        headers = {
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
            "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
            "Access-Control-Max-Age": CORS_MAX_AGE,
            "Vary": "Origin",
        }
        if self.allows(origin):
            headers["Access-Control-Allow-Origin"] = origin  # type: ignore[assignment]
        return headers


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """Applies an OriginPolicy to the given path prefixes."""

    def __init__(self, app, policy: OriginPolicy, paths: Iterable[str]):
        super().__init__(app)
        self.policy = policy
        self.paths = tuple(paths)

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.paths):
            return await call_next(request)

        origin = request.headers.get("origin")
        cors_headers = self.policy.cors_headers(origin)

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=cors_headers)

        if not self.policy.allows(origin):
            logger.warning("origin_rejected", origin=origin, path=request.url.path)
            return JSONResponse({"error": "Origin not allowed"}, status_code=403)

        response = await call_next(request)
        response.headers.update(cors_headers)
        return response
