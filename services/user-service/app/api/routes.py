"""HTTP route definitions for the authentication flows."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..domain.service import AuthResult, AuthService
from ..security.tokens import TokenClaims
from .deps import enforce_rate_limit, get_service, require_identity

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    """Payload accepted when registering a new account."""

    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    """Credentials exchanged for a bearer token."""

    email: str
    password: str


class ResendVerificationRequest(BaseModel):
    email: str


def render(result: AuthResult) -> JSONResponse:
    """Translate a façade envelope into an HTTP response."""
    return JSONResponse(status_code=result.status_code, content=result.to_body())


@router.post("/register", status_code=201, dependencies=[Depends(enforce_rate_limit)])
def register(payload: RegisterRequest, service: AuthService = Depends(get_service)) -> JSONResponse:
    """Register an account and send its verification email."""
    return render(service.register(payload.name, payload.email, payload.password))


@router.post("/login", dependencies=[Depends(enforce_rate_limit)])
def login(payload: LoginRequest, service: AuthService = Depends(get_service)) -> JSONResponse:
    """Exchange verified credentials for a bearer token."""
    return render(service.login(payload.email, payload.password))


@router.get("/verify-email")
def verify_email(
    token: str = Query(default=""),
    service: AuthService = Depends(get_service),
) -> JSONResponse:
    """Consume an email-verification token."""
    return render(service.verify_email(token))


@router.post("/resend-verification", dependencies=[Depends(enforce_rate_limit)])
def resend_verification(
    payload: ResendVerificationRequest,
    service: AuthService = Depends(get_service),
) -> JSONResponse:
    """Issue a new verification token and email it."""
    return render(service.resend_verification(payload.email))


@router.get("/verify-token")
def verify_token(
    claims: TokenClaims = Depends(require_identity),
    service: AuthService = Depends(get_service),
) -> JSONResponse:
    """Confirm the bearer token still maps to an existing account."""
    return render(service.verify_token(claims))
