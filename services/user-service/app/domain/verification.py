"""Email-verification state machine: issue, verify and re-issue tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from .account import Account, VerificationTicket, normalize_email
from .contracts import AccountStore
from .errors import AccountNotFound, AlreadyVerified, InvalidOrExpiredToken
from ..mail import MailDispatcher, OutboundMessage, build_verification_url, render_verification_email
from ..security.tokens import generate_verification_token, hash_verification_token, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IssuedVerification:
    """Raw token handed to the mailer plus the ticket persisted for it."""

    token: str
    ticket: VerificationTicket


class EmailVerificationService:
    """Moves accounts from ``Unverified{token, expiry}`` to ``Verified``."""

    def __init__(
        self,
        store: AccountStore,
        dispatcher: MailDispatcher,
        *,
        frontend_url: str,
        ttl_seconds: int = 600,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._frontend_url = frontend_url
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def issue_token(self) -> IssuedVerification:
        """Mint a fresh token; only its digest is ever persisted."""
        token, digest = generate_verification_token()
        ticket = VerificationTicket(token_digest=digest, expires_at=self._clock() + self._ttl)
        return IssuedVerification(token=token, ticket=ticket)

    def build_email(self, account: Account, token: str) -> OutboundMessage:
        url = build_verification_url(self._frontend_url, token)
        ttl_minutes = int(self._ttl.total_seconds() // 60)
        return render_verification_email(
            account.email, account.name, url, ttl_minutes, reference=account.account_id
        )

    def verify(self, token: str) -> Account:
        """Mark the account owning ``token`` as verified and clear its ticket.

        Unknown and expired tokens fail identically so callers cannot probe
        for valid tokens.
        """
        if not token:
            raise InvalidOrExpiredToken()
        account = self._store.find_by_verification_token(hash_verification_token(token))
        if account is None or account.verification is None:
            logger.info("verification token did not match any account")
            raise InvalidOrExpiredToken()
        now = self._clock()
        if account.verification.is_expired(now):
            logger.info("verification token expired for account %s", account.account_id)
            raise InvalidOrExpiredToken()

        updated = self._store.mark_verified(account.account_id, account.verification.token_digest, now)
        if updated is None:
            logger.info("verification token for account %s was consumed concurrently", account.account_id)
            raise InvalidOrExpiredToken()
        logger.info("email verified for account %s", account.account_id)
        return updated

    def resend(self, email: str) -> Account:
        """Replace the outstanding ticket and deliver a new link, propagating mail failures."""
        account = self._store.find_by_email(normalize_email(email))
        if account is None:
            raise AccountNotFound()
        if account.is_email_verified:
            raise AlreadyVerified()

        issued = self.issue_token()
        updated = self._store.reissue_verification(account.account_id, issued.ticket)
        if updated is None:
            if self._store.find_by_id(account.account_id) is None:
                raise AccountNotFound()
            raise AlreadyVerified()
        self._dispatcher.send(self.build_email(updated, issued.token))
        logger.info("verification email re-issued for account %s", account.account_id)
        return updated
