"""Authentication façade orchestrating credentials, verification and bearer tokens."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable

from schemas import AccountSummary, PublicProfile

from .account import Account, normalize_name, validate_bio
from .contracts import AccountStore, ProfileUpdate
from .credentials import CredentialService
from .errors import AccountNotFound, AuthError, InternalError, ValidationFailed
from .verification import EmailVerificationService
from ..metrics import record_auth_event
from ..security.tokens import TokenClaims, TokenService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthResult:
    """Uniform envelope returned to the transport layer for every flow."""

    success: bool
    message: str
    status_code: int
    data: dict[str, Any] | None = None
    code: str | None = None
    error: str | None = None

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        if self.code is not None:
            body["code"] = self.code
        if self.error is not None:
            body["error"] = self.error
        return body


def summarize(account: Account) -> AccountSummary:
    return AccountSummary(
        account_id=account.account_id,
        name=account.name,
        email=account.email,
        is_email_verified=account.is_email_verified,
    )


def public_profile(account: Account) -> PublicProfile:
    return PublicProfile(
        account_id=account.account_id,
        name=account.name,
        email=account.email,
        bio=account.bio,
        avatar=account.avatar,
        created_at=account.created_at,
    )


class AuthService:
    """Maps register, login, verify-email, resend and whoami onto the core services."""

    def __init__(
        self,
        store: AccountStore,
        credentials: CredentialService,
        verification: EmailVerificationService,
        tokens: TokenService,
        *,
        expose_errors: bool = False,
    ) -> None:
        """Store dependencies used to orchestrate every authentication flow."""
        self._store = store
        self._credentials = credentials
        self._verification = verification
        self._tokens = tokens
        self._expose_errors = expose_errors

    def register(self, name: str, email: str, password: str) -> AuthResult:
        def flow() -> AuthResult:
            account = self._credentials.register(name, email, password)
            return AuthResult(
                success=True,
                message="Registration successful. Please check your email to verify your account.",
                status_code=201,
                data=summarize(account).model_dump(),
            )

        return self._run("register", flow)

    def login(self, email: str, password: str) -> AuthResult:
        def flow() -> AuthResult:
            outcome = self._credentials.login(email, password)
            data = summarize(outcome.account).model_dump()
            data["token"] = outcome.token.token
            data["expires_in"] = outcome.token.expires_in
            return AuthResult(success=True, message="Login successful", status_code=200, data=data)

        return self._run("login", flow)

    def verify_email(self, token: str) -> AuthResult:
        def flow() -> AuthResult:
            account = self._verification.verify(token)
            return AuthResult(
                success=True,
                message="Email verified successfully. You can now log in.",
                status_code=200,
                data=summarize(account).model_dump(),
            )

        return self._run("verify_email", flow)

    def resend_verification(self, email: str) -> AuthResult:
        def flow() -> AuthResult:
            self._verification.resend(email)
            return AuthResult(
                success=True,
                message="Verification email sent. Please check your inbox.",
                status_code=200,
            )

        return self._run("resend_verification", flow)

    def authenticate(self, token: str) -> TokenClaims:
        """Resolve a raw bearer token into identity claims, raising ``Unauthorized`` subclasses."""
        return self._tokens.verify(token)

    def verify_token(self, claims: TokenClaims) -> AuthResult:
        def flow() -> AuthResult:
            account = self._require_account(claims.account_id)
            return AuthResult(
                success=True,
                message="Token is valid",
                status_code=200,
                data=summarize(account).model_dump(),
            )

        return self._run("verify_token", flow)

    def get_profile(self, account_id: str) -> AuthResult:
        def flow() -> AuthResult:
            account = self._require_account(account_id)
            return AuthResult(
                success=True,
                message="Profile retrieved",
                status_code=200,
                data=public_profile(account).model_dump(mode="json"),
            )

        return self._run("get_profile", flow)

    def update_profile(self, account_id: str, changes: ProfileUpdate) -> AuthResult:
        def flow() -> AuthResult:
            if changes.is_empty():
                raise ValidationFailed("No profile fields supplied")
            normalized = ProfileUpdate(
                name=normalize_name(changes.name) if changes.name is not None else None,
                bio=validate_bio(changes.bio) if changes.bio is not None else None,
                avatar=changes.avatar,
            )
            account = self._store.update_profile(account_id, normalized)
            if account is None:
                raise AccountNotFound()
            return AuthResult(
                success=True,
                message="Profile updated successfully",
                status_code=200,
                data=public_profile(account).model_dump(mode="json"),
            )

        return self._run("update_profile", flow)

    def failure(self, error: AuthError) -> AuthResult:
        """Render a domain error raised outside a façade flow (e.g. the bearer gate)."""
        return AuthResult(
            success=False,
            message=error.message,
            status_code=error.status_code,
            code=error.code,
        )

    def _require_account(self, account_id: str) -> Account:
        account = self._store.find_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        return account

    def _run(self, operation: str, flow: Callable[[], AuthResult]) -> AuthResult:
        try:
            result = flow()
        except AuthError as exc:
            record_auth_event(operation, exc.code)
            return self.failure(exc)
        except Exception as exc:
            logger.exception("unexpected failure during %s", operation)
            record_auth_event(operation, InternalError.code)
            result = self.failure(InternalError(f"Server error during {operation.replace('_', ' ')}"))
            if self._expose_errors:
                result.error = str(exc)
            return result
        record_auth_event(operation, "success")
        return result
