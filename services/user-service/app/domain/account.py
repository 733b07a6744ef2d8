from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from .errors import ValidationFailed

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
BIO_MAX_LENGTH = 500
PASSWORD_MIN_LENGTH = 6

_EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


@dataclass(frozen=True, slots=True)
class VerificationTicket:
    """Outstanding email-verification request: token digest and its expiry, always together."""

    token_digest: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user identity.

    ``password_hash`` and ``verification`` are only populated when the store
    was explicitly asked for them; default reads leave both as ``None``.
    """

    account_id: str
    name: str
    email: str
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
    is_email_verified: bool = False
    bio: str = ""
    avatar: str = ""
    password_hash: str | None = None
    verification: VerificationTicket | None = None


def normalize_email(email: str) -> str:
    """Trim and lowercase an address, rejecting anything not shaped like ``local@domain.tld``."""
    normalized = (email or "").strip().lower()
    if not normalized:
        raise ValidationFailed("Email is required")
    if not _EMAIL_PATTERN.match(normalized):
        raise ValidationFailed("Please provide a valid email")
    return normalized


def normalize_name(name: str) -> str:
    normalized = (name or "").strip()
    if not normalized:
        raise ValidationFailed("Name is required")
    if len(normalized) < NAME_MIN_LENGTH:
        raise ValidationFailed(f"Name must be at least {NAME_MIN_LENGTH} characters")
    if len(normalized) > NAME_MAX_LENGTH:
        raise ValidationFailed(f"Name cannot exceed {NAME_MAX_LENGTH} characters")
    return normalized


def validate_password(password: str) -> str:
    if not password:
        raise ValidationFailed("Password is required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationFailed(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    return password


def validate_bio(bio: str) -> str:
    if len(bio) > BIO_MAX_LENGTH:
        raise ValidationFailed(f"Bio cannot exceed {BIO_MAX_LENGTH} characters")
    return bio
