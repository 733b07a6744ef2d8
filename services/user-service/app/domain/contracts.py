"""Domain-level contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from .account import Account, VerificationTicket


@dataclass(slots=True)
class AccountDraft:
    """Validated, hashed inputs required to persist a new account."""

    name: str
    email: str
    password_hash: str
    verification: VerificationTicket
    is_email_verified: bool = False
    is_active: bool = True


@dataclass(slots=True)
class ProfileUpdate:
    """Partial profile change; ``None`` leaves a field untouched."""

    name: str | None = None
    bio: str | None = None
    avatar: str | None = None

    def is_empty(self) -> bool:
        return self.name is None and self.bio is None and self.avatar is None


class AccountStore(Protocol):
    """Persistence capability the authentication core depends on."""

    def find_by_email(self, email: str, *, include_password: bool = False) -> Account | None:
        ...

    def find_by_id(self, account_id: str) -> Account | None:
        ...

    def find_by_verification_token(self, token_digest: str) -> Account | None:
        ...

    def create(self, draft: AccountDraft) -> Account:
        """Persist a new account, raising ``ConflictError`` when the email is taken."""
        ...

    def mark_verified(self, account_id: str, token_digest: str, now: datetime) -> Account | None:
        """Verify and clear the ticket only while ``token_digest`` is still outstanding and unexpired.

        Returns ``None`` when another writer already consumed or replaced the ticket.
        """
        ...

    def reissue_verification(self, account_id: str, ticket: VerificationTicket) -> Account | None:
        """Replace the ticket of a still-unverified account; ``None`` if it is verified or gone."""
        ...

    def update_profile(self, account_id: str, changes: ProfileUpdate) -> Account | None:
        ...


class Mailer(Protocol):
    """Transport able to deliver a single HTML message."""

    def send(self, recipient: str, subject: str, html_body: str) -> None:
        ...
