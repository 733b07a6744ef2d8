"""Request-scoped dependencies: service lookup, bearer gate and rate limiting."""

from __future__ import annotations

import logging

from fastapi import Header, Request

from ..domain.errors import RateLimited, Unauthorized
from ..domain.service import AuthService
from ..security.rate_limiter import FixedWindowRateLimiter
from ..security.redis_rate_limiter import RedisFixedWindowRateLimiter
from ..security.tokens import TokenClaims

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def get_service(request: Request) -> AuthService:
    """Resolve the `AuthService` stored on the FastAPI application state."""
    service: AuthService = request.app.state.auth_service
    return service


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter | RedisFixedWindowRateLimiter | None:
    return getattr(request.app.state, "rate_limiter", None)


def enforce_rate_limit(request: Request) -> None:
    """Reject the request with 429 once the caller exhausts the window for this route."""
    limiter = get_rate_limiter(request)
    if limiter is None:
        return
    client = request.client.host if request.client else "unknown"
    decision = limiter.hit(f"{request.url.path}:{client}")
    if not decision.allowed:
        logger.warning("rate limit exceeded for %s on %s", client, request.url.path)
        raise RateLimited(retry_after=decision.reset_after)


def require_identity(
    request: Request,
    authorization: str | None = Header(default=None),
) -> TokenClaims:
    """Resolve the bearer token into identity claims and attach them to ``request.state``."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthorized()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token or " " in token:
        raise Unauthorized("Malformed authorization header.")

    claims = get_service(request).authenticate(token)
    request.state.account_id = claims.account_id
    request.state.email = claims.email
    return claims
