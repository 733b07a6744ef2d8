"""Utilities for issuing and validating bearer JWTs and email-verification tokens."""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import jwt

from ..domain.errors import TokenExpired, TokenInvalid

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
VERIFICATION_TOKEN_BYTES = 32


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Identity resolved from a verified bearer token."""

    account_id: str
    email: str


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    expires_in: int


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies HS256 bearer tokens signed with a single process secret."""

    def __init__(
        self,
        secret: str,
        *,
        issuer: str,
        ttl_seconds: int = 86400,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not secret:
            raise ValueError("token signing secret must not be empty")
        self._secret = secret
        self._issuer = issuer
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, account_id: str, email: str) -> IssuedToken:
        """Create a signed JWT representing an authenticated account.

        Parameters
        ----------
        account_id:
            Account identifier embedded in the ``sub`` claim.
        email:
            Normalised email embedded alongside the subject.

        Returns
        -------
        IssuedToken
            The encoded JWT string and its TTL in seconds.
        """
        issued_at = self._clock()
        expires_at = issued_at + timedelta(seconds=self._ttl_seconds)
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": account_id,
            "email": email,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_in=self._ttl_seconds)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT returning the embedded identity.

        Raises
        ------
        TokenExpired
            The signature is valid but the ``exp`` claim has passed.
        TokenInvalid
            The token is malformed, carries a bad signature or issuer, or is
            missing the identity claims.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except jwt.PyJWTError as exc:
            logger.info("rejected bearer token: %s", exc.__class__.__name__)
            raise TokenInvalid() from exc

        account_id = payload.get("sub")
        email = payload.get("email")
        if not account_id or not email:
            raise TokenInvalid("Invalid token structure.")
        return TokenClaims(account_id=str(account_id), email=str(email))


def generate_verification_token() -> tuple[str, str]:
    """Generate a random verification token string and its SHA-256 hash."""
    token = secrets.token_hex(VERIFICATION_TOKEN_BYTES)
    return token, hash_verification_token(token)


def hash_verification_token(token: str) -> str:
    """Return the SHA-256 hex digest for a verification token string."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
