"""Password-credential workflows: registration and login."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .account import Account, normalize_email, normalize_name, validate_password
from .contracts import AccountDraft, AccountStore
from .errors import (
    AccountDeactivated,
    ConflictError,
    EmailNotVerified,
    EmailTaken,
    InvalidCredentials,
    ValidationFailed,
)
from .verification import EmailVerificationService
from ..mail import MailDispatcher
from ..security.passwords import PasswordHasher
from ..security.tokens import IssuedToken, TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoginOutcome:
    account: Account
    token: IssuedToken


class CredentialService:
    """Registers accounts and exchanges email/password pairs for bearer tokens."""

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        verification: EmailVerificationService,
        dispatcher: MailDispatcher,
        tokens: TokenService,
        *,
        check_password_first: bool = False,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._verification = verification
        self._dispatcher = dispatcher
        self._tokens = tokens
        self._check_password_first = check_password_first

    def register(self, name: str, email: str, password: str) -> Account:
        """Create an unverified account and queue its verification email."""
        name = normalize_name(name)
        email = normalize_email(email)
        validate_password(password)

        if self._store.find_by_email(email) is not None:
            raise EmailTaken()

        issued = self._verification.issue_token()
        draft = AccountDraft(
            name=name,
            email=email,
            password_hash=self._hasher.hash(password),
            verification=issued.ticket,
        )
        try:
            account = self._store.create(draft)
        except ConflictError as exc:
            logger.info("concurrent registration lost the race on the unique email index")
            raise EmailTaken() from exc

        self._dispatcher.send_best_effort(self._verification.build_email(account, issued.token))
        logger.info("registered account %s", account.account_id)
        return account

    def login(self, email: str, password: str) -> LoginOutcome:
        """Authenticate credentials and issue a bearer token.

        Verification and activation status are checked before the password
        unless ``check_password_first`` is set.
        """
        try:
            email = normalize_email(email)
        except ValidationFailed:
            self._hasher.dummy_verify()
            raise InvalidCredentials() from None

        account = self._store.find_by_email(email, include_password=True)
        if account is None:
            self._hasher.dummy_verify()
            logger.info("login rejected: unknown email")
            raise InvalidCredentials()

        if self._check_password_first:
            self._check_password(account, password)
            self._check_status(account)
        else:
            self._check_status(account)
            self._check_password(account, password)

        token = self._tokens.issue(account.account_id, account.email)
        logger.info("login succeeded for account %s", account.account_id)
        return LoginOutcome(account=account, token=token)

    def _check_status(self, account: Account) -> None:
        if not account.is_email_verified:
            logger.info("login rejected: email not verified for account %s", account.account_id)
            raise EmailNotVerified()
        if not account.is_active:
            logger.info("login rejected: account %s deactivated", account.account_id)
            raise AccountDeactivated()

    def _check_password(self, account: Account, password: str) -> None:
        if not self._hasher.verify(password, account.password_hash):
            logger.info("login rejected: bad password for account %s", account.account_id)
            raise InvalidCredentials()
