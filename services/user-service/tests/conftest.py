from __future__ import annotations

import re
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.domain.account import Account, VerificationTicket
from app.domain.contracts import AccountDraft, ProfileUpdate
from app.domain.errors import ConflictError
from app.mail import MailDispatcher
from app.main import build_auth_service, create_app
from app.security.rate_limiter import FixedWindowRateLimiter

TOKEN_PATTERN = re.compile(r"token=([0-9a-f]{64})")


class FakeRepository:
    """In-memory store mimicking the Postgres repository's read and write rules."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()
        self.fail_reads = False

    def create(self, draft: AccountDraft) -> Account:
        with self._lock:
            if any(account.email == draft.email for account in self._accounts.values()):
                raise ConflictError(draft.email)
            now = datetime.now(timezone.utc)
            account = Account(
                account_id=str(uuid.uuid4()),
                name=draft.name,
                email=draft.email,
                created_at=now,
                updated_at=now,
                is_active=draft.is_active,
                is_email_verified=draft.is_email_verified,
                password_hash=draft.password_hash,
                verification=draft.verification,
            )
            self._accounts[account.account_id] = account
            return self._public(account)

    def find_by_email(self, email: str, *, include_password: bool = False) -> Account | None:
        if self.fail_reads:
            raise RuntimeError("connection refused")
        with self._lock:
            for account in self._accounts.values():
                if account.email == email:
                    public = self._public(account)
                    if include_password:
                        public.password_hash = account.password_hash
                    return public
        return None

    def find_by_id(self, account_id: str) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return self._public(account) if account else None

    def find_by_verification_token(self, token_digest: str) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if account.verification and account.verification.token_digest == token_digest:
                    return replace(account, password_hash=None)
        return None

    def mark_verified(self, account_id: str, token_digest: str, now: datetime) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            if (
                account is None
                or account.is_email_verified
                or account.verification is None
                or account.verification.token_digest != token_digest
                or account.verification.is_expired(now)
            ):
                return None
            account.verification = None
            account.is_email_verified = True
            account.updated_at = datetime.now(timezone.utc)
            return self._public(account)

    def reissue_verification(self, account_id: str, ticket: VerificationTicket) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None or account.is_email_verified:
                return None
            account.verification = ticket
            account.updated_at = datetime.now(timezone.utc)
            return self._public(account)

    def update_profile(self, account_id: str, changes: ProfileUpdate) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return None
            for field in ("name", "bio", "avatar"):
                value = getattr(changes, field)
                if value is not None:
                    setattr(account, field, value)
            account.updated_at = datetime.now(timezone.utc)
            return self._public(account)

    # helpers used only by tests

    def stored(self, email: str) -> Account:
        with self._lock:
            return next(a for a in self._accounts.values() if a.email == email)

    def deactivate(self, email: str) -> None:
        self.stored(email).is_active = False

    def delete(self, account_id: str) -> None:
        with self._lock:
            self._accounts.pop(account_id, None)

    def expire_ticket(self, email: str) -> None:
        account = self.stored(email)
        assert account.verification is not None
        account.verification = replace(
            account.verification, expires_at=datetime(2000, 1, 1, tzinfo=timezone.utc)
        )

    @staticmethod
    def _public(account: Account) -> Account:
        return replace(account, password_hash=None, verification=None)


class RecordingMailer:
    """Mailer double that records messages and can be told to fail."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str, str]] = []
        self.fail = False
        self._condition = threading.Condition()

    def send(self, recipient: str, subject: str, html_body: str) -> None:
        with self._condition:
            if self.fail:
                self._condition.notify_all()
                raise OSError("smtp relay unavailable")
            self.messages.append((recipient, subject, html_body))
            self._condition.notify_all()

    def wait_for(self, count: int, timeout: float = 2.0) -> list[tuple[str, str, str]]:
        with self._condition:
            self._condition.wait_for(lambda: len(self.messages) >= count, timeout=timeout)
            return list(self.messages)

    def token_for(self, recipient: str, index: int = -1) -> str:
        bodies = [body for to, _, body in self.wait_for(1) if to == recipient]
        match = TOKEN_PATTERN.search(bodies[index])
        assert match is not None
        return match.group(1)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        environment="test",
        jwt_secret="test-secret",
        jwt_issuer="user-service-test",
        password_hash_rounds=1000,
        frontend_url="http://frontend.test",
        rate_limit_requests=1000,
    )


@pytest.fixture()
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def dispatcher(mailer):
    dispatcher = MailDispatcher(mailer, timeout_seconds=2.0)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture()
def auth_service(repository, dispatcher, settings):
    return build_auth_service(repository, dispatcher, settings)


@pytest.fixture()
def api_client(auth_service, settings):
    """Provide a FastAPI test client with isolated state."""
    app = create_app(settings, use_lifespan=False)
    app.state.auth_service = auth_service
    app.state.rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    with TestClient(app) as client:
        yield client
