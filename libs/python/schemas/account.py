"""Account-related DTOs shared across services."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel


class AccountSummary(BaseModel):
    """Public view of an account returned by authentication flows."""

    account_id: str
    name: str
    email: str
    is_email_verified: bool = False


class PublicProfile(BaseModel):
    """Profile fields other services and clients may display."""

    account_id: str
    name: str
    email: str
    bio: str = ""
    avatar: str = ""
    created_at: datetime
