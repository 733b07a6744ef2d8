"""Profile routes for authenticated users and public lookups."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..domain.contracts import ProfileUpdate
from ..domain.service import AuthService
from ..security.tokens import TokenClaims
from .deps import get_service, require_identity
from .routes import render

router = APIRouter(prefix="/api/users", tags=["users"])


class ProfileUpdateRequest(BaseModel):
    name: str | None = None
    bio: str | None = None
    avatar: str | None = None


@router.get("/profile")
def get_profile(
    claims: TokenClaims = Depends(require_identity),
    service: AuthService = Depends(get_service),
) -> JSONResponse:
    return render(service.get_profile(claims.account_id))


@router.put("/profile")
def update_profile(
    payload: ProfileUpdateRequest,
    claims: TokenClaims = Depends(require_identity),
    service: AuthService = Depends(get_service),
) -> JSONResponse:
    """Update the caller's name, bio or avatar; omitted fields are left unchanged."""
    changes = ProfileUpdate(name=payload.name, bio=payload.bio, avatar=payload.avatar)
    return render(service.update_profile(claims.account_id, changes))


@router.get("/{account_id}")
def get_user(account_id: str, service: AuthService = Depends(get_service)) -> JSONResponse:
    return render(service.get_profile(account_id))
