"""
Authentication router for identity-provider session sync and profile retrieval.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, auth_scheme, get_auth_context
from services.accounts import decode_identity_token, get_account, serialize_account, sync_account
from services.session_token import create_session_token

router = APIRouter()


class SyncProfileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    referral_code: Optional[str] = Field(default=None, alias="referralCode")


@router.post("/sync-profile")
async def sync_profile(
    request: Optional[SyncProfileRequest] = None,
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange an identity-provider access token for a backend session.

    The account is created with welcome credits the first time it is seen.
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="No token provided")

    try:
        claims = decode_identity_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    referral_code = request.referral_code if request else None
    account, created = await sync_account(db, claims, referral_code=referral_code)
    session = create_session_token(account.id, account.email)
    return {
        "success": True,
        "created": created,
        "profile": serialize_account(account),
        "session_token": session["token"],
        "session_expires_at": session["expires_at"],
    }


@router.get("/me")
async def get_current_account(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the current account profile and credit balance."""
    account = await get_account(db, auth.account_id)
    if not account:
        raise HTTPException(status_code=404, detail="User profile not found")
    return {"success": True, "profile": serialize_account(account)}


@router.post("/signout")
async def signout(_auth: AuthContext = Depends(get_auth_context)):
    """Frontend-managed sign-out acknowledgment endpoint."""
    return {"success": True}
