"""Authentication dependencies for account scoping."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    account_id: str
    email: Optional[str] = None


def ensure_account_scope(auth_account_id: str, supplied_account_id: Optional[str]) -> str:
    """Return the authenticated account id and reject cross-account attempts."""
    if supplied_account_id and supplied_account_id != auth_account_id:
        raise HTTPException(status_code=403, detail="userId does not match authenticated session.")
    return auth_account_id


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve the authenticated account from a Bearer session token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")

    try:
        payload = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    return AuthContext(
        account_id=str(payload.get("sub", "")),
        email=str(payload.get("email", "")) or None,
    )


async def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    admins = {email.strip().lower() for email in settings.ADMIN_EMAILS if email.strip()}
    if not auth.email or auth.email.lower() not in admins:
        raise HTTPException(status_code=403, detail="Admin access required.")
    return auth
