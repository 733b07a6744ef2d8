"""Typed failures raised by the authentication core and rendered by the façade."""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every expected failure of an authentication flow."""

    code: str = "internal"
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationFailed(AuthError):
    code = "validation_failed"
    status_code = 400
    message = "Validation failed"


class EmailTaken(AuthError):
    code = "email_taken"
    status_code = 400
    message = "User with this email already exists"


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    status_code = 401
    message = "Invalid credentials"


class EmailNotVerified(AuthError):
    code = "email_not_verified"
    status_code = 403
    message = "Please verify your email before logging in"


class AccountDeactivated(AuthError):
    code = "account_deactivated"
    status_code = 403
    message = "Account is deactivated. Please contact support."


class InvalidOrExpiredToken(AuthError):
    code = "invalid_or_expired_token"
    status_code = 400
    message = "Invalid or expired verification token"


class AlreadyVerified(AuthError):
    code = "already_verified"
    status_code = 400
    message = "Email is already verified"


class AccountNotFound(AuthError):
    code = "not_found"
    status_code = 404
    message = "User not found"


class Unauthorized(AuthError):
    code = "unauthorized"
    status_code = 401
    message = "No token provided. Authorization denied."


class TokenExpired(Unauthorized):
    code = "token_expired"
    message = "Token expired. Please login again."


class TokenInvalid(Unauthorized):
    code = "token_invalid"
    message = "Invalid token. Authorization denied."


class RateLimited(AuthError):
    code = "rate_limited"
    status_code = 429
    message = "Too many attempts. Please try again later."

    def __init__(self, retry_after: int | None = None) -> None:
        super().__init__()
        self.retry_after = retry_after


class MailDeliveryFailed(AuthError):
    code = "mail_delivery_failed"
    status_code = 500
    message = "Failed to send verification email"


class InternalError(AuthError):
    pass


class ConflictError(Exception):
    """Raised by a store when a write violates the unique email constraint."""
